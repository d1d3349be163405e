"""Reference sequences: 2-bit packed bases plus their annotation files.

An index prefix owns three files.  ``.pac`` holds the concatenated
reference, four bases to a byte with the first base in the two high bits.
``.ann`` lists every sequence with its name, comment, offset and length.
``.amb`` lists every run of ambiguous bases ("holes").  An optional
``.alt`` file marks some sequences as alternate contigs.
"""

from __future__ import annotations

import getopt
import gzip
import io
import re
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

NT4_TABLE = bytes(
    0 if ch in "Aa" else
    1 if ch in "Cc" else
    2 if ch in "Gg" else
    3 if ch in "Tt" else
    5 if ch == "-" else
    4
    for ch in map(chr, range(256))
)

DEFAULT_SEED = 11
_HEADER_RE = re.compile(r"([^\s]*)(?:\s(.*))?", re.DOTALL)
_ANN_LINE_RE = re.compile(r"\s*(\S+)\s+(\S+)(.*)", re.DOTALL)


def nt4(base: str | int) -> int:
    """Return the 2-bit code of a base: A/C/G/T are 0-3, '-' is 5, others 4."""
    code = ord(base) if isinstance(base, str) else base
    return NT4_TABLE[code & 0xFF]


class Rand48:
    """The 48-bit linear congruential generator of ``srand48``/``lrand48``."""

    _A = 0x5DEECE66D
    _C = 0xB
    _MASK = (1 << 48) - 1

    def __init__(self, seed: int) -> None:
        self._state = ((seed & 0xFFFFFFFF) << 16) | 0x330E

    def lrand48(self) -> int:
        """Return the next non-negative 31-bit value."""
        self._state = (self._A * self._state + self._C) & self._MASK
        return self._state >> 17


@dataclass
class Annotation:
    """One reference sequence."""

    name: str
    anno: str = ""
    offset: int = 0
    length: int = 0
    n_ambs: int = 0
    gi: int = 0
    is_alt: bool = False


@dataclass
class Ambiguity:
    """A run of identical ambiguous bases in the forward reference."""

    offset: int
    length: int
    amb: str


def _get_pac(pac: bytes | bytearray, pos: int) -> int:
    return pac[pos >> 2] >> ((~pos & 3) << 1) & 3


def _pack(codes: Iterable[int]) -> bytearray:
    codes = list(codes)
    pac = bytearray((len(codes) + 3) // 4)
    for pos, code in enumerate(codes):
        pac[pos >> 2] |= code << ((~pos & 3) << 1)
    return pac


def _complement_codes(codes: Iterable[int]) -> list[int]:
    return [3 - c for c in codes]


def get_seq(l_pac: int, pac: bytes | bytearray, beg: int, end: int) -> bytes:
    """Return the 2-bit codes of ``[beg, end)`` on the forward-reverse reference.

    Positions from ``l_pac`` on read the reverse complement of ``pac``.  The
    bounds are swapped if reversed and clipped to ``0 .. 2*l_pac``.  A range
    that bridges the two strands gives an empty result.
    """
    if end < beg:
        beg, end = end, beg
    end = min(end, l_pac << 1)
    beg = max(beg, 0)
    if beg >= l_pac:
        beg_f = (l_pac << 1) - 1 - end
        end_f = (l_pac << 1) - 1 - beg
        return bytes(3 - _get_pac(pac, k) for k in range(end_f, beg_f, -1))
    if end <= l_pac:
        return bytes(_get_pac(pac, k) for k in range(beg, end))
    return b""


@dataclass
class RefSeq:
    """Sequences and ambiguous runs of a packed reference."""

    l_pac: int = 0
    seed: int = DEFAULT_SEED
    anns: list[Annotation] = field(default_factory=list)
    ambs: list[Ambiguity] = field(default_factory=list)
    pac_path: str | None = None

    @property
    def n_seqs(self) -> int:
        return len(self.anns)

    @property
    def n_holes(self) -> int:
        return len(self.ambs)

    def dump(self, prefix: str) -> None:
        """Write ``prefix.ann`` and ``prefix.amb``."""
        with open(f"{prefix}.ann", "w", encoding="latin-1", newline="") as fh:
            fh.write(f"{self.l_pac} {self.n_seqs} {self.seed}\n")
            for ann in self.anns:
                fh.write(f"{ann.gi} {ann.name}")
                fh.write(f" {ann.anno}\n" if ann.anno else "\n")
                fh.write(f"{ann.offset} {ann.length} {ann.n_ambs}\n")
        with open(f"{prefix}.amb", "w", encoding="latin-1", newline="") as fh:
            fh.write(f"{self.l_pac} {self.n_seqs} {self.n_holes}\n")
            for amb in self.ambs:
                fh.write(f"{amb.offset} {amb.length} {amb.amb}\n")

    @classmethod
    def restore_core(cls, ann_path: str, amb_path: str, pac_path: str) -> RefSeq:
        """Read the annotation files; the packed file must exist."""
        refseq = cls()
        with open(ann_path, encoding="latin-1", newline="") as fh:
            lines = iter(fh.read().split("\n"))

        def next_line() -> str:
            try:
                return next(lines)
            except StopIteration:
                raise ValueError(
                    f"error reading {ann_path}: unexpected end of file"
                ) from None

        l_pac, n_seqs, seed = _ints(next_line().split(), 3, ann_path)
        refseq.l_pac, refseq.seed = l_pac, seed
        for _ in range(n_seqs):
            match = _ANN_LINE_RE.fullmatch(next_line())
            if match is None:
                raise ValueError(f"parse error reading {ann_path}")
            (gi,) = _ints([match.group(1)], 1, ann_path)
            rest = match.group(3)
            anno = rest[1:] if len(rest) > 1 and rest != " (null)" else ""
            offset, length, n_ambs = _ints(next_line().split(), 3, ann_path)
            refseq.anns.append(
                Annotation(match.group(2), anno, offset, length, n_ambs, gi)
            )

        with open(amb_path, encoding="latin-1") as fh:
            tokens = fh.read().split()
        amb_l_pac, amb_n_seqs, n_holes = _ints(tokens[:3], 3, amb_path)
        if amb_l_pac != refseq.l_pac or amb_n_seqs != refseq.n_seqs:
            raise ValueError("inconsistent .ann and .amb files.")
        for i in range(n_holes):
            fields = tokens[3 + 3 * i : 6 + 3 * i]
            offset, length = _ints(fields[:2], 2, amb_path)
            if len(fields) < 3:
                raise ValueError(f"parse error reading {amb_path}")
            refseq.ambs.append(Ambiguity(offset, length, fields[2][0]))

        with open(pac_path, "rb"):
            pass
        refseq.pac_path = pac_path
        return refseq

    @classmethod
    def restore(cls, prefix: str) -> RefSeq:
        """Read the files of ``prefix``, marking contigs listed in ``.alt``."""
        refseq = cls.restore_core(f"{prefix}.ann", f"{prefix}.amb", f"{prefix}.pac")
        alt_path = Path(f"{prefix}.alt")
        if alt_path.is_file():
            by_name: dict[str, int] = {}
            for i, ann in enumerate(refseq.anns):
                by_name[ann.name] = i
            segments = alt_path.read_text(encoding="latin-1").split("\n")
            last = segments.pop()
            if re.search(r"[\t\r]", last):
                segments.append(last)
            for segment in segments:
                name = re.split(r"[\t\r]", segment, maxsplit=1)[0]
                if name.startswith("@"):
                    continue
                rid = by_name.get(name)
                if rid is not None:
                    refseq.anns[rid].is_alt = True
        return refseq

    def depos(self, pos: int) -> tuple[int, bool]:
        """Map a forward-reverse coordinate to the forward strand."""
        is_rev = pos >= self.l_pac
        return ((self.l_pac << 1) - 1 - pos if is_rev else pos), is_rev

    def pos_to_rid(self, pos: int) -> int:
        """Return the index of the sequence holding forward position ``pos``."""
        if pos >= self.l_pac:
            return -1
        left, mid, right = 0, 0, self.n_seqs
        while left < right:
            mid = (left + right) >> 1
            if pos >= self.anns[mid].offset:
                if mid == self.n_seqs - 1:
                    break
                if pos < self.anns[mid + 1].offset:
                    break
                left = mid + 1
            else:
                right = mid
        return mid

    def intv_to_rid(self, rb: int, re: int) -> int:
        """Sequence index of ``[rb, re)``; -1 across sequences, -2 across strands."""
        if rb < self.l_pac < re:
            return -2
        if rb > re:
            raise ValueError("interval begins after it ends")
        rid_b = self.pos_to_rid(self.depos(rb)[0])
        rid_e = self.pos_to_rid(self.depos(re - 1)[0]) if rb < re else rid_b
        return rid_b if rid_b == rid_e else -1

    def count_ambiguous(self, pos: int, length: int) -> int:
        """Count ambiguous bases of the first hole found overlapping the range."""
        left, right = 0, self.n_holes
        while left < right:
            mid = (left + right) >> 1
            hole = self.ambs[mid]
            hole_end = hole.offset + hole.length
            if pos >= hole_end:
                left = mid + 1
            elif pos + length <= hole.offset:
                right = mid
            else:
                if pos >= hole.offset:
                    return hole_end - pos if hole_end < pos + length else length
                return hole.length if hole_end < pos + length else length - (hole.offset - pos)
        return 0

    def fetch_seq(
        self, pac: bytes | bytearray, beg: int, mid: int, end: int
    ) -> tuple[bytes, int, int, int]:
        """Fetch ``[beg, end)`` clipped to the sequence holding ``mid``.

        Returns the codes, the clipped bounds and the sequence index.
        """
        if end < beg:
            beg, end = end, beg
        if not beg <= mid < end:
            raise ValueError("mid lies outside [beg, end)")
        forward, is_rev = self.depos(mid)
        rid = self.pos_to_rid(forward)
        far_beg = self.anns[rid].offset
        far_end = far_beg + self.anns[rid].length
        if is_rev:
            far_beg, far_end = (self.l_pac << 1) - far_end, (self.l_pac << 1) - far_beg
        beg = max(beg, far_beg)
        end = min(end, far_end)
        seq = get_seq(self.l_pac, pac, beg, end)
        if end - beg != len(seq):
            raise RuntimeError(
                f"failed to fetch [{beg}, {end}) around {mid} in sequence {rid}"
            )
        return seq, beg, end, rid


def _ints(fields: list[str], count: int, path: str) -> list[int]:
    if len(fields) < count:
        raise ValueError(f"parse error reading {path}")
    try:
        return [int(f) for f in fields[:count]]
    except ValueError:
        raise ValueError(f"parse error reading {path}") from None


def _split_header(body: str) -> tuple[str, str]:
    match = _HEADER_RE.match(body)
    assert match is not None
    return match.group(1), match.group(2) or ""


def read_sequences(stream: Iterable[str]) -> Iterator[tuple[str, str, str, str]]:
    """Yield ``(name, comment, seq, qual)`` from FASTA or FASTQ lines.

    ``qual`` is empty for FASTA records.  A FASTQ record whose quality
    string differs in length from its sequence raises ``ValueError``.
    """
    lines = (line.rstrip("\r\n") for line in stream)
    header = None
    for line in lines:
        if line[:1] in (">", "@"):
            header = line
            break
    while header is not None:
        name, comment = _split_header(header[1:])
        parts: list[str] = []
        next_header = None
        has_qual = False
        for line in lines:
            if line[:1] in (">", "@"):
                next_header = line
                break
            if line[:1] == "+":
                has_qual = True
                break
            parts.append(line.rstrip())
        seq = "".join(parts)
        qual = ""
        if has_qual:
            qual_parts: list[str] = []
            total = 0
            if seq:
                for line in lines:
                    qual_parts.append(line)
                    total += len(line)
                    if total >= len(seq):
                        break
            qual = "".join(qual_parts)
            if len(qual) != len(seq):
                raise ValueError(f"quality string of {name!r} differs in length")
            for line in lines:
                if line[:1] in (">", "@"):
                    next_header = line
                    break
        yield name, comment, seq, qual
        header = next_header


def _open_text(path: str) -> TextIO:
    if path == "-":
        return io.TextIOWrapper(sys.stdin.buffer, encoding="latin-1")
    with open(path, "rb") as fh:
        magic = fh.read(2)
    if magic == b"\x1f\x8b":
        return gzip.open(path, "rt", encoding="latin-1")
    return open(path, encoding="latin-1")


def _add_sequence(
    refseq: RefSeq, codes: bytearray, name: str, comment: str, seq: str, rng: Rand48
) -> None:
    offset = refseq.anns[-1].offset + refseq.anns[-1].length if refseq.anns else 0
    ann = Annotation(name, comment if comment else "(null)", offset, len(seq))
    last_char = None
    for i, ch in enumerate(seq):
        code = nt4(ch)
        if code >= 4:
            if last_char == ch:
                refseq.ambs[-1].length += 1
            else:
                refseq.ambs.append(Ambiguity(offset + i, 1, ch))
                ann.n_ambs += 1
            code = rng.lrand48() & 3
        last_char = ch
        codes.append(code)
    refseq.anns.append(ann)


def fasta_to_pac(fasta_path: str, prefix: str, forward_only: bool = False) -> int:
    """Pack a FASTA file into ``prefix.pac``, ``.ann`` and ``.amb``.

    Ambiguous bases are replaced by pseudo-random ones from a fixed seed.
    Unless ``forward_only``, the reverse complement is appended.  Returns
    the number of packed bases.
    """
    refseq = RefSeq(seed=DEFAULT_SEED)
    rng = Rand48(refseq.seed)
    codes = bytearray()
    with _open_text(fasta_path) as fh:
        for name, comment, seq, _qual in read_sequences(fh):
            _add_sequence(refseq, codes, name, comment, seq, rng)
    if not forward_only:
        codes.extend(_complement_codes(reversed(codes)))
    refseq.l_pac = len(codes)

    tail = bytearray()
    if refseq.l_pac % 4 == 0:
        tail.append(0)
    tail.append(refseq.l_pac % 4)
    with open(f"{prefix}.pac", "wb") as fh:
        fh.write(_pack(codes))
        fh.write(tail)
    refseq.dump(prefix)
    return refseq.l_pac


def main(argv: list[str] | None = None) -> int:
    """Command line: ``fa2pac [-f] <in.fasta> [<out.prefix>]``."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts, rest = getopt.gnu_getopt(args, "f")
    except getopt.GetoptError as exc:
        print(f"fa2pac: {exc}", file=sys.stderr)
        return 1
    forward_only = any(opt == "-f" for opt, _ in opts)
    if not rest:
        print("Usage: fa2pac [-f] <in.fasta> [<out.prefix>]", file=sys.stderr)
        return 1
    fasta_to_pac(rest[0], rest[1] if len(rest) > 1 else rest[0], forward_only)
    return 0