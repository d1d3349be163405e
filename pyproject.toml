[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bwalign"
version = "0.1.0"
description = "Reference packing, suffix sorting, seed chaining and SAM output helpers for short-read alignment"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bioinformatics",
    "alignment",
    "short reads",
    "suffix array",
    "FASTA",
    "FASTQ",
    "SAM",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bwalign-fa2pac = "bwalign.refseq:main"

[tool.hatch.build.targets.wheel]
packages = ["bwalign"]

[tool.hatch.build.targets.sdist]
include = ["bwalign", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
