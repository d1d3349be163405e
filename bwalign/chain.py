"""Seed chaining, chain filtering, de-duplication of hits and mapping quality."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from bwalign.memopt import MEM_MAPQ_COEF, MEM_MAPQ_MAX, AlnReg, Chain, MemOptions, Seed

_MAX_WEIGHT = (1 << 30) - 1


def merge_seed(opt: MemOptions, l_pac: int, chain: Chain, seed: Seed, rid: int) -> bool:
    """Try to add ``seed`` to ``chain``.

    Returns True if the seed now belongs to the chain, either because it
    lies inside the span the chain already covers or because it extends the
    chain colinearly.  Returns False if a new chain is needed.
    """
    first = chain.seeds[0]
    last = chain.seeds[-1]
    qend = last.qbeg + last.length
    rend = last.rbeg + last.length
    if rid != chain.rid:
        return False
    if (
        seed.qbeg >= first.qbeg
        and seed.qbeg + seed.length <= qend
        and seed.rbeg >= first.rbeg
        and seed.rbeg + seed.length <= rend
    ):
        return True  # contained in the chain
    if (last.rbeg < l_pac or first.rbeg < l_pac) and seed.rbeg >= l_pac:
        return False  # on the other strand
    x = seed.qbeg - last.qbeg
    y = seed.rbeg - last.rbeg
    if (
        y >= 0
        and x - y <= opt.w
        and y - x <= opt.w
        and x - last.length < opt.max_chain_gap
        and y - last.length < opt.max_chain_gap
    ):
        chain.seeds.append(seed)
        return True
    return False


def _coverage(spans: Iterable[tuple[int, int]]) -> int:
    covered = 0
    end = 0
    for beg, length in spans:
        if beg >= end:
            covered += length
        elif beg + length > end:
            covered += beg + length - end
        end = max(end, beg + length)
    return covered


def chain_weight(chain: Chain) -> int:
    """Return the smaller of the query and reference lengths covered by seeds."""
    q_cov = _coverage((s.qbeg, s.length) for s in chain.seeds)
    r_cov = _coverage((s.rbeg, s.length) for s in chain.seeds)
    return min(q_cov, r_cov, _MAX_WEIGHT)


def filter_chains(opt: MemOptions, chains: Iterable[Chain]) -> list[Chain]:
    """Drop light chains and chains shadowed by a much heavier overlapping one.

    The result is ordered by decreasing weight.  Each chain's ``kept`` is 3
    for a chain without significant overlap, 2 for a kept chain that
    overlaps a better one, and 1 for the first chain shadowed by a kept one.
    """
    candidates: list[Chain] = []
    for chain in chains:
        chain.first = -1
        chain.kept = 0
        chain.w = chain_weight(chain)
        if chain.w >= opt.min_chain_weight:
            candidates.append(chain)
    if not candidates:
        return []
    a = sorted(candidates, key=lambda c: -c.w)

    a[0].kept = 3
    kept_idx = [0]
    for i in range(1, len(a)):
        large_ovlp = False
        shadowed = False
        for j in kept_idx:
            b_max = max(a[j].beg, a[i].beg)
            e_min = min(a[j].end, a[i].end)
            if e_min > b_max and (not a[j].is_alt or a[i].is_alt):
                li = a[i].end - a[i].beg
                lj = a[j].end - a[j].beg
                min_l = min(li, lj)
                if e_min - b_max >= min_l * opt.mask_level and min_l < opt.max_chain_gap:
                    large_ovlp = True
                    if a[j].first < 0:
                        a[j].first = i  # keep the first shadowed hit for mapq
                    if (
                        a[i].w < a[j].w * opt.drop_ratio
                        and a[j].w - a[i].w >= opt.min_seed_len << 1
                    ):
                        shadowed = True
                        break
        if not shadowed:
            kept_idx.append(i)
            a[i].kept = 2 if large_ovlp else 3
    for j in kept_idx:
        if a[j].first >= 0:
            a[a[j].first].kept = 1

    # Extend at most max_chain_extend chains of kind 1 or 2.
    stop = len(a)
    extended = 0
    for i, chain in enumerate(a):
        if chain.kept in (0, 3):
            continue
        extended += 1
        if extended >= opt.max_chain_extend:
            stop = i
            break
    for chain in a[stop:]:
        if chain.kept < 3:
            chain.kept = 0
    return [chain for chain in a if chain.kept != 0]


def sort_dedup(opt: MemOptions, regs: Iterable[AlnReg]) -> list[AlnReg]:
    """Remove redundant and identical hits; order the rest by decreasing score.

    Of two hits that overlap by more than ``mask_level_redun`` on both the
    query and the reference, the lower-scoring one is dropped.
    """
    a = sorted(regs, key=lambda r: r.re)
    if len(a) <= 1:
        return a
    for reg in a:
        reg.n_comp = 1
    for i in range(1, len(a)):
        p = a[i]
        if p.rid != a[i - 1].rid or p.rb >= a[i - 1].re + opt.max_chain_gap:
            continue
        j = i - 1
        while j >= 0 and p.rid == a[j].rid and p.rb < a[j].re + opt.max_chain_gap:
            q = a[j]
            j -= 1
            if q.qe == q.qb:
                continue  # already excluded
            overlap_r = q.re - p.rb
            overlap_q = q.qe - p.qb if q.qb < p.qb else p.qe - q.qb
            min_r = min(q.re - q.rb, p.re - p.rb)
            min_q = min(q.qe - q.qb, p.qe - p.qb)
            if (
                overlap_r > opt.mask_level_redun * min_r
                and overlap_q > opt.mask_level_redun * min_q
            ):
                if p.score < q.score:
                    p.qe = p.qb
                    break
                q.qe = q.qb
    a = [reg for reg in a if reg.qe > reg.qb]
    if not a:
        return a
    a.sort(key=lambda r: (-r.score, r.rb, r.qb))
    for prev, cur in zip(a, a[1:]):
        if cur.score == prev.score and cur.rb == prev.rb and cur.qb == prev.qb:
            cur.qe = cur.qb
    return [a[0]] + [reg for reg in a[1:] if reg.qe > reg.qb]


def approx_mapq_se(opt: MemOptions, reg: AlnReg) -> int:
    """Return the approximate single-end mapping quality of a hit, 0 to 60."""
    sub = reg.sub if reg.sub else opt.min_seed_len * opt.a
    sub = max(reg.csub, sub)
    if sub >= reg.score:
        return 0
    length = max(reg.qe - reg.qb, reg.re - reg.rb)
    identity = 1.0 - (length * opt.a - reg.score) / (opt.a + opt.b) / length
    if reg.score == 0:
        mapq = 0
    elif opt.mapq_coef_len > 0:
        factor = 1.0 if length < opt.mapq_coef_len else opt.mapq_coef_fac / math.log(length)
        factor *= identity * identity
        mapq = int(6.02 * (reg.score - sub) / opt.a * factor * factor + 0.499)
    elif reg.seedcov > 0:
        mapq = int(
            MEM_MAPQ_COEF * (1.0 - sub / reg.score) * math.log(reg.seedcov) + 0.499
        )
        if identity < 0.95:
            mapq = int(mapq * identity * identity + 0.499)
    else:
        mapq = 0
    if reg.sub_n > 0:
        mapq -= int(4.343 * math.log(reg.sub_n + 1) + 0.499)
    mapq = max(0, min(MEM_MAPQ_MAX, mapq))
    return int(mapq * (1.0 - reg.frac_rep) + 0.499)


def reorder_primary5(threshold: int, regs: Sequence[AlnReg] | list[AlnReg]) -> None:
    """Move the primary hit with the leftmost query start to the front, in place.

    Only non-ALT primary hits scoring at least ``threshold`` are considered;
    ``secondary`` and ``secondary_all`` indices are updated to match.
    """
    def eligible(reg: AlnReg) -> bool:
        return reg.secondary < 0 and not reg.is_alt and reg.score >= threshold

    if sum(1 for reg in regs if eligible(reg)) <= 1:
        return
    left_k = -1
    left_st = None
    for k, reg in enumerate(regs):
        if eligible(reg) and (left_st is None or reg.qb < left_st):
            left_st, left_k = reg.qb, k
    if regs[0].secondary >= 0:
        raise ValueError("the first hit is not primary")
    if left_k == 0:
        return
    regs[0], regs[left_k] = regs[left_k], regs[0]
    for reg in regs[1:]:
        if reg.secondary == 0:
            reg.secondary = left_k
        elif reg.secondary == left_k:
            reg.secondary = 0
        if reg.secondary_all == 0:
            reg.secondary_all = left_k
        elif reg.secondary_all == left_k:
            reg.secondary_all = 0