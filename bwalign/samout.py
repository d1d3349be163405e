"""Formatting of final alignments as SAM lines."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

from bwalign.common import SeqRecord
from bwalign.memopt import Aln, MemFlag, MemOptions
from bwalign.refseq import RefSeq, nt4

_OPS = "MIDSH"
_FORWARD = "ACGTN"
_REVERSE = "TGCAN"
_CLIP_OPS = (3, 4)


def ref_length(cigar: Sequence[tuple[int, int]]) -> int:
    """Return the number of reference bases a CIGAR spans (M and D operations)."""
    return sum(length for length, op in cigar if op in (0, 2))


def format_cigar(opt: MemOptions, aln: Aln, which: int) -> str:
    """Return the CIGAR string of ``aln``, or ``*`` if it has none.

    Clipping of a non-primary record (``which`` non-zero) is written as hard
    clipping unless soft clipping is requested or the hit is on an ALT contig.
    """
    if not aln.cigar:
        return "*"
    hard_for_supp = not (opt.flag & MemFlag.SOFTCLIP) and not aln.is_alt
    parts = []
    for length, op in aln.cigar:
        if hard_for_supp and op in _CLIP_OPS:
            op = 4 if which else 3
        parts.append(f"{length}{_OPS[op]}")
    return "".join(parts)


def _codes(seq: str | bytes) -> list[int]:
    codes = []
    for ch in seq:
        value = ch if isinstance(ch, int) else ord(ch)
        code = value if value < 5 else nt4(value)
        codes.append(min(code, 4))
    return codes


def _tlen(p: Aln, m: Aln) -> int:
    p0 = p.pos + (ref_length(p.cigar) - 1 if p.is_rev else 0)
    p1 = m.pos + (ref_length(m.cigar) - 1 if m.is_rev else 0)
    diff = p0 - p1
    sign = (diff > 0) - (diff < 0)
    return -(diff + sign)


def _query_range(opt: MemOptions, p: Aln, which: int, l_seq: int) -> tuple[int, int]:
    qb, qe = 0, l_seq
    if p.cigar and which and not (opt.flag & MemFlag.SOFTCLIP) and not p.is_alt:
        first_len, first_op = p.cigar[0]
        last_len, last_op = p.cigar[-1]
        head = first_len if first_op in _CLIP_OPS else 0
        tail = last_len if last_op in _CLIP_OPS else 0
        if p.is_rev:
            qe -= head
            qb += tail
        else:
            qb += head
            qe -= tail
    return qb, qe


def aln_to_sam(
    opt: MemOptions,
    refseq: RefSeq,
    read: SeqRecord,
    alns: Sequence[Aln],
    which: int,
    mate: Aln | None = None,
    rg_id: str = "",
) -> str:
    """Return the SAM line, with its newline, for ``alns[which]`` of ``read``.

    ``alns`` holds all records written for the read, so that the others can
    be listed in the SA tag.  ``mate`` is the mate's primary record of a pair.
    Neither ``alns`` nor ``mate`` is modified.
    """
    p = dataclasses.replace(alns[which])
    m = dataclasses.replace(mate) if mate is not None else None

    if m is not None:
        p.flag |= 0x1
    if p.rid < 0:
        p.flag |= 0x4
    if m is not None and m.rid < 0:
        p.flag |= 0x8
    if p.rid < 0 and m is not None and m.rid >= 0:  # take the mate's coordinate
        p.rid, p.pos, p.is_rev, p.cigar = m.rid, m.pos, m.is_rev, []
    if m is not None and m.rid < 0 and p.rid >= 0:  # give the mate our coordinate
        m.rid, m.pos, m.is_rev, m.cigar = p.rid, p.pos, p.is_rev, []
    if p.is_rev:
        p.flag |= 0x10
    if m is not None and m.is_rev:
        p.flag |= 0x20

    fields = [read.name, str((p.flag & 0xFFFF) | (0x100 if p.flag & 0x10000 else 0))]
    if p.rid >= 0:
        fields += [
            refseq.anns[p.rid].name,
            str(p.pos + 1),
            str(p.mapq),
            format_cigar(opt, p, which),
        ]
    else:
        fields += ["*", "0", "0", "*"]

    if m is not None and m.rid >= 0:
        same = p.rid == m.rid
        fields.append("=" if same else refseq.anns[m.rid].name)
        fields.append(str(m.pos + 1))
        if same and m.cigar and p.cigar:
            fields.append(str(_tlen(p, m)))
        else:
            fields.append("0")
    else:
        fields += ["*", "0", "0"]

    if p.flag & 0x100:  # secondary: no sequence or qualities
        fields += ["*", "*"]
    else:
        codes = _codes(read.seq)
        qb, qe = _query_range(opt, p, which, read.l_seq)
        if p.is_rev:
            fields.append("".join(_REVERSE[c] for c in reversed(codes[qb:qe])))
            fields.append(read.qual[qb:qe][::-1] if read.qual else "*")
        else:
            fields.append("".join(_FORWARD[c] for c in codes[qb:qe]))
            fields.append(read.qual[qb:qe] if read.qual else "*")

    if p.cigar:
        fields.append(f"NM:i:{p.nm}")
        fields.append(f"MD:Z:{p.md}")
    if m is not None and m.cigar:
        fields.append(f"MC:Z:{format_cigar(opt, m, which)}")
    if p.score >= 0:
        fields.append(f"AS:i:{p.score}")
    if p.sub >= 0:
        fields.append(f"XS:i:{p.sub}")
    if rg_id:
        fields.append(f"RG:Z:{rg_id}")
    if not p.flag & 0x100:
        others = [
            r for i, r in enumerate(alns) if i != which and not r.flag & 0x100
        ]
        if others:
            entries = []
            for r in others:
                cigar = "".join(f"{length}{_OPS[op]}" for length, op in r.cigar)
                entries.append(
                    f"{refseq.anns[r.rid].name},{r.pos + 1},{'+-'[r.is_rev]},"
                    f"{cigar},{r.mapq},{r.nm};"
                )
            fields.append("SA:Z:" + "".join(entries))
        if p.alt_sc > 0:
            fields.append(f"pa:f:{p.score / p.alt_sc:.3f}")
    if p.xa:
        fields.append(f"XA:Z:{p.xa}")
    if read.comment:
        fields.append(read.comment)
    if opt.flag & MemFlag.REF_HDR and p.rid >= 0 and refseq.anns[p.rid].anno:
        fields.append("XR:Z:" + refseq.anns[p.rid].anno.replace("\t", " "))
    return "\t".join(fields) + "\n"