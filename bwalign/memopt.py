"""Options and data records of the seed-chain-extend aligner."""

from __future__ import annotations

import enum
import math
import struct
from dataclasses import dataclass, field

from bwalign.common import fill_scoring_matrix

MEM_MAPQ_COEF = 30.0
MEM_MAPQ_MAX = 60


def _f32(value: float) -> float:
    """Round a value to single precision, as the option fields are stored."""
    return struct.unpack("<f", struct.pack("<f", value))[0]


class MemFlag(enum.IntFlag):
    """Bits of :attr:`MemOptions.flag`."""

    NONE = 0
    PE = 0x2
    NOPAIRING = 0x4
    ALL = 0x8
    NO_MULTI = 0x10
    NO_RESCUE = 0x20
    REF_HDR = 0x100
    SOFTCLIP = 0x200
    SMARTPE = 0x400
    PRIMARY5 = 0x800
    KEEP_SUPP_MAPQ = 0x1000


@dataclass
class MemOptions:
    """Alignment parameters with their default values.

    ``mat`` is the 5x5 scoring matrix; it is built from ``a`` and ``b``
    when not given.  ``mapq_coef_fac`` is the integer part of the log of
    ``mapq_coef_len`` unless given.
    """

    a: int = 1  # match score
    b: int = 4  # mismatch penalty
    o_del: int = 6
    e_del: int = 1
    o_ins: int = 6
    e_ins: int = 1
    pen_unpaired: int = 17
    pen_clip5: int = 5
    pen_clip3: int = 5
    w: int = 100  # band width
    zdrop: int = 100
    max_mem_intv: int = 20
    min_output_score: int = 30
    flag: MemFlag = MemFlag.NONE
    min_seed_len: int = 19
    min_chain_weight: int = 0
    max_chain_extend: int = 1 << 30
    split_factor: float = 1.5
    split_width: int = 10
    max_occ: int = 500
    max_chain_gap: int = 10000
    n_threads: int = 1
    chunk_size: int = 10000000
    mask_level: float = 0.50
    drop_ratio: float = 0.50
    xa_drop_ratio: float = 0.80
    mask_level_redun: float = 0.95
    mapq_coef_len: float = 50.0
    mapq_coef_fac: int | None = None
    max_ins: int = 10000
    max_matesw: int = 50
    max_xa_hits: int = 5
    max_xa_hits_alt: int = 200
    mat: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.flag = MemFlag(self.flag)
        for name in (
            "split_factor",
            "mask_level",
            "drop_ratio",
            "xa_drop_ratio",
            "mask_level_redun",
            "mapq_coef_len",
        ):
            setattr(self, name, _f32(getattr(self, name)))
        if self.mapq_coef_fac is None:
            self.mapq_coef_fac = (
                int(math.log(self.mapq_coef_len)) if self.mapq_coef_len > 0 else 0
            )
        if not self.mat:
            self.mat = fill_scoring_matrix(self.a, self.b)
        elif len(self.mat) != 25:
            raise ValueError("the scoring matrix must have 25 entries")


@dataclass
class Seed:
    """An exact match between the query and the forward-reverse reference."""

    rbeg: int
    qbeg: int
    length: int
    score: int = 0

    @property
    def qend(self) -> int:
        return self.qbeg + self.length

    @property
    def rend(self) -> int:
        return self.rbeg + self.length


@dataclass
class Chain:
    """Colinear seeds on one reference sequence, ordered as they were added."""

    seeds: list[Seed] = field(default_factory=list)
    rid: int = 0
    pos: int = 0
    w: int = 0
    kept: int = 0
    is_alt: bool = False
    frac_rep: float = 0.0
    first: int = -1

    @property
    def n(self) -> int:
        return len(self.seeds)

    @property
    def beg(self) -> int:
        """Query start of the first seed."""
        return self.seeds[0].qbeg

    @property
    def end(self) -> int:
        """Query end of the last seed."""
        return self.seeds[-1].qend


@dataclass
class AlnReg:
    """An aligned region: ``[qb, qe)`` of the query against ``[rb, re)``."""

    rb: int = 0
    re: int = 0
    qb: int = 0
    qe: int = 0
    rid: int = 0
    score: int = 0
    truesc: int = 0
    sub: int = 0
    alt_sc: int = 0
    csub: int = 0
    sub_n: int = 0
    w: int = 0
    seedcov: int = 0
    secondary: int = 0
    secondary_all: int = 0
    seedlen0: int = 0
    n_comp: int = 0
    is_alt: bool = False
    frac_rep: float = 0.0
    hash: int = 0


@dataclass
class Aln:
    """A final alignment with its CIGAR and forward-strand position.

    ``cigar`` holds ``(length, op)`` pairs with ops 0-4 standing for
    M, I, D, S and H; ``md`` is the MD string.
    """

    pos: int = 0
    rid: int = 0
    flag: int = 0
    is_rev: bool = False
    is_alt: bool = False
    mapq: int = 0
    nm: int = 0
    cigar: list[tuple[int, int]] = field(default_factory=list)
    md: str = ""
    xa: str | None = None
    score: int = 0
    sub: int = 0
    alt_sc: int = 0

    @property
    def n_cigar(self) -> int:
        return len(self.cigar)

    @classmethod
    def unmapped(cls) -> Aln:
        """Return the record of a read without a mapping."""
        return cls(pos=-1, rid=-1, flag=0x4)


@dataclass
class PeStat:
    """Insert-size distribution of one read-pair orientation."""

    low: int = 0
    high: int = 0
    failed: bool = False
    avg: float = 0.0
    std: float = 0.0