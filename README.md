# bwalign

Building blocks for a Burrows–Wheeler short-read aligner, in pure Python.

- `bwalign.qsufsort` – suffix sorting (Larsson–Sadakane doubling with a
  ternary-split quicksort). `suffix_array(symbols)` returns the zero-based
  suffix array of a sequence of integers, with the virtual terminator
  position `n` first. `suffix_sort` returns the inverse suffix array and
  `sa_from_inverse` turns it into one-based positions by rank.
- `bwalign.refseq` – the packed reference. `fasta_to_pac` turns a FASTA
  file (plain, gzipped, or `-` for standard input) into `.pac`, `.ann` and
  `.amb` files; `RefSeq.restore` loads them back and marks contigs listed in
  an optional `.alt` file. `RefSeq` maps coordinates to sequences
  (`depos`, `pos_to_rid`, `intv_to_rid`), counts ambiguous bases
  (`count_ambiguous`) and fetches subsequences clipped to one sequence
  (`fetch_seq`); `get_seq` reads 2-bit codes from either strand of the packed
  reference. `read_sequences` yields `(name, comment, seq, qual)` from FASTA
  or FASTQ lines and `nt4` gives a base's 2-bit code. Ambiguous bases are
  replaced by pseudo-random ones from a `Rand48` generator with a fixed seed,
  so the output is reproducible.
- `bwalign.common` – `SeqRecord`, read batching for single and paired input
  (`read_batches`, `classify_pairs`, `trim_readno`), the 5x5 scoring matrix
  (`fill_scoring_matrix`), index prefix lookup (`infer_index_prefix`), and
  SAM header helpers (`unescape`, `parse_read_group`, which raises
  `ReadGroupError`, `insert_header`, `sam_header`).
- `bwalign.memopt` – alignment options (`MemOptions`, `MemFlag`) and the
  records passed between stages: `Seed`, `Chain`, `AlnReg`, `Aln`, `PeStat`.
- `bwalign.chain` – adding seeds to chains (`merge_seed`), chain weight and
  filtering (`chain_weight`, `filter_chains`), removal of redundant and
  identical hits (`sort_dedup`), single-end mapping quality
  (`approx_mapq_se`) and `reorder_primary5`.
- `bwalign.samout` – SAM lines from final alignments: `aln_to_sam`,
  `format_cigar`, `ref_length`.

## Installing

```
pip install .
```

Python 3.10 or newer; no third-party dependencies.

## Packing a reference

```
bwalign-fa2pac ref.fa
bwalign-fa2pac -f ref.fa out/ref
```

This writes `<prefix>.pac`, `<prefix>.ann` and `<prefix>.amb`; the prefix
defaults to the FASTA path. Without `-f` the reverse complement is appended
to the packed sequence.

The same from Python:

```python
from bwalign.refseq import RefSeq, fasta_to_pac

fasta_to_pac("ref.fa", "ref", False)
ref = RefSeq.restore("ref")
rid = ref.pos_to_rid(1000)
```

## Suffix arrays

```python
from bwalign.qsufsort import suffix_array

sa = suffix_array([2, 0, 1, 0, 1, 0])
```

## SAM output

```python
from bwalign.common import SeqRecord, sam_header
from bwalign.memopt import Aln, MemOptions
from bwalign.samout import aln_to_sam

opt = MemOptions()
read = SeqRecord(name="r1", seq="ACGT")
print(sam_header(ref), end="")
print(aln_to_sam(opt, ref, read, [Aln.unmapped()], 0), end="")
```

## What the package does not do

It builds no BWT or FM-index and searches none, so it does not find seeds
in a reference or align reads end to end: seeds, chains and aligned regions
must come from elsewhere. It performs no Smith-Waterman extension and no
CIGAR generation. It does not read or write BAM files.

## Running the tests

```
pip install .[test]
pytest
```