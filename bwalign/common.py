"""Shared helpers: batched read input, scoring matrices, index lookup and SAM headers."""

from __future__ import annotations

import itertools
import warnings
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from bwalign.refseq import RefSeq

MAX_RG_ID_LENGTH = 255

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "\\": "\\"}


class ReadGroupError(ValueError):
    """A read group line given by the user is malformed."""


@dataclass
class SeqRecord:
    """One input read; ``comment`` and ``qual`` are None when absent."""

    name: str
    seq: str
    comment: str | None = None
    qual: str | None = None
    id: int = 0
    sam: str | None = None

    @property
    def l_seq(self) -> int:
        return len(self.seq)


def trim_readno(name: str) -> str:
    """Drop a trailing ``/1``-style read number from a read name."""
    if len(name) > 2 and name[-2] == "/" and name[-1].isdigit():
        return name[:-2]
    return name


def _record(entry: tuple[str, str, str, str], record_id: int) -> SeqRecord:
    name, comment, seq, qual = entry
    return SeqRecord(
        name=trim_readno(name),
        seq=seq,
        comment=comment or None,
        qual=qual or None,
        id=record_id,
    )


def read_batches(
    reads: Iterable[tuple[str, str, str, str]],
    mates: Iterable[tuple[str, str, str, str]] | None = None,
    chunk_size: int = 10_000_000,
) -> Iterator[list[SeqRecord]]:
    """Yield batches of reads holding at least ``chunk_size`` bases each.

    Entries are ``(name, comment, seq, qual)`` tuples.  With ``mates`` the
    two inputs are interleaved, so a batch always holds whole pairs.  Ids
    count from 0 within each batch.  If one input runs out before the
    other a warning is issued; a short second input ends reading.
    """
    mate_iter = iter(mates) if mates is not None else None
    batch: list[SeqRecord] = []
    size = 0
    exhausted = True
    for entry in reads:
        mate = None
        if mate_iter is not None:
            mate = next(mate_iter, None)
            if mate is None:
                warnings.warn("the 2nd file has fewer sequences.", stacklevel=2)
                exhausted = False
                break
        rec = _record(entry, len(batch))
        batch.append(rec)
        size += rec.l_seq
        if mate is not None:
            rec = _record(mate, len(batch))
            batch.append(rec)
            size += rec.l_seq
        if size >= chunk_size and len(batch) % 2 == 0:
            yield batch
            batch, size = [], 0
    if batch:
        yield batch
    if exhausted and mate_iter is not None and next(mate_iter, None) is not None:
        warnings.warn("the 1st file has fewer sequences.", stacklevel=2)


def classify_pairs(seqs: Sequence[SeqRecord]) -> tuple[list[SeqRecord], list[SeqRecord]]:
    """Split reads into singletons and adjacent pairs sharing a name."""
    singles: list[SeqRecord] = []
    pairs: list[SeqRecord] = []
    has_last = True
    for prev, cur in itertools.pairwise(seqs):
        if has_last:
            if cur.name == prev.name:
                pairs.extend((prev, cur))
                has_last = False
            else:
                singles.append(prev)
        else:
            has_last = True
    if has_last and seqs:
        singles.append(seqs[-1])
    return singles, pairs


def fill_scoring_matrix(a: int, b: int) -> list[int]:
    """Return the 5x5 scoring matrix: ``a`` on matches, ``-b`` on mismatches, -1 for N."""
    mat: list[int] = []
    for i in range(4):
        mat.extend(a if i == j else -b for j in range(4))
        mat.append(-1)
    mat.extend([-1] * 5)
    return mat


def _readable(path: str) -> bool:
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


def infer_index_prefix(hint: str) -> str | None:
    """Return the index prefix for ``hint``, preferring a ``.64`` index, or None."""
    if _readable(f"{hint}.64.bwt"):
        return f"{hint}.64"
    if _readable(f"{hint}.bwt"):
        return hint
    return None


def unescape(text: str) -> str:
    r"""Expand ``\t``, ``\n``, ``\r`` and ``\\``; other escapes are dropped."""
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, ""))
        else:
            out.append(ch)
    return "".join(out)


def parse_read_group(line: str) -> tuple[str, str]:
    """Validate an escaped ``@RG`` line; return the unescaped line and its ID."""
    if not line.startswith("@RG"):
        raise ReadGroupError("the read group line is not started with @RG")
    if "\t" in line:
        raise ReadGroupError(
            "the read group line contained literal <tab> characters -- "
            "replace with escaped tabs: \\t"
        )
    rg_line = unescape(line)
    start = rg_line.find("\tID:")
    if start < 0:
        raise ReadGroupError("no ID within the read group line")
    rest = rg_line[start + 4 :]
    rg_id = rest.split("\t", 1)[0].split("\n", 1)[0]
    if len(rg_id) > MAX_RG_ID_LENGTH:
        raise ReadGroupError("@RG:ID is longer than 255 characters")
    return rg_line, rg_id


def insert_header(line: str | None, header: str | None) -> str | None:
    """Append an escaped header line starting with '@' to ``header``."""
    if not line or not line.startswith("@"):
        return header
    if header:
        return f"{header}\n{unescape(line)}"
    return unescape(line)


def sam_header(refseq: RefSeq, header: str | None = None, program_line: str | None = None) -> str:
    """Return the SAM header text.

    ``@SQ`` lines come from ``refseq`` unless ``header`` already has some.
    """
    lines: list[str] = []
    n_sq = 0
    if header:
        n_sq = sum(1 for part in header.split("\n") if part.startswith("@SQ\t"))
    if n_sq == 0:
        for ann in refseq.anns:
            entry = f"@SQ\tSN:{ann.name}\tLN:{ann.length}"
            if ann.is_alt:
                entry += "\tAH:*"
            lines.append(entry)
    if header:
        lines.append(header)
    if program_line:
        lines.append(program_line)
    return "".join(f"{entry}\n" for entry in lines)