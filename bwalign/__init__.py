"""Reference packing, suffix sorting, seed chaining and SAM output helpers for short-read alignment."""

__version__ = "0.1.0"