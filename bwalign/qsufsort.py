"""Suffix sorting by the doubling algorithm of Larsson and Sadakane.

The text is a sequence of integer symbols in a known range.  A virtual
end-of-text symbol, smaller than every other symbol, is appended at
position ``n``.  :func:`suffix_sort` returns the inverse suffix array,
that is, the rank of every suffix including the terminator.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

INSERT_SORT_NUM_ITEM = 16
QSINT_MAX = (1 << 63) - 1


def _med3(a: int, b: int, c: int) -> int:
    if a < b:
        if b < c:
            return b
        return c if a < c else a
    if b > c:
        return b
    return c if a > c else a


def _transform(
    v: list[int], n: int, largest: int, smallest: int, max_new: int
) -> tuple[int, int]:
    """Aggregate runs of symbols into one and compact the alphabet.

    Returns the size of the new alphabet and the number of old symbols
    packed into each new one.  On return ``v[n]`` is 0 and every other
    entry lies in ``1 .. size - 1``.
    """
    max_num = largest - smallest + 1
    bits = max_num.bit_length()
    max_symbol = QSINT_MAX >> bits

    min_chunk = max_chunk = 0
    c = max_num
    a = 0
    while a < n and max_chunk <= max_symbol and c <= max_new:
        min_chunk = (min_chunk << bits) | (v[a] - smallest + 1)
        max_chunk = c
        c = (max_chunk << bits) | max_num
        a += 1

    mask = (1 << (a - 1) * bits) - 1  # drops the oldest symbol of a chunk
    v[n] = smallest - 1  # stands in for the terminator

    table = [0] * (max_chunk + 1)
    c = min_chunk
    for i in range(a, n + 1):
        table[c] = 1
        c = ((c & mask) << bits) | (v[i] - smallest + 1)
    for _ in range(1, a):
        table[c] = 1
        c = (c & mask) << bits

    size = 1
    for chunk, used in enumerate(table):
        if used:
            table[chunk] = size
            size += 1

    c = min_chunk
    i = 0
    for j in range(a, n + 1):
        v[i] = table[c]
        c = ((c & mask) << bits) | (v[j] - smallest + 1)
        i += 1
    while i < n:
        v[i] = table[c]
        c = (c & mask) << bits
        i += 1

    v[n] = 0
    return size, a


def _bucket_sort(v: list[int], idx: list[int], n: int, alphabet_size: int) -> None:
    """First sorting stage: group suffixes by their first (aggregated) symbol."""
    for i in range(alphabet_size):
        idx[i] = -1
    for i in range(n + 1):
        c = v[i]
        v[i] = idx[c]
        idx[c] = i

    current = n
    for i in range(alphabet_size, 0, -1):
        c = idx[i - 1]
        d = v[c]
        group = current
        v[c] = group
        if d >= 0:
            idx[current] = c
            while d >= 0:
                c = d
                d = v[c]
                v[c] = group
                current -= 1
                idx[current] = c
        else:
            idx[current] = -1  # a sorted group of one
        current -= 1


def _choose_pivot(v: list[int], idx: list[int], lo: int, hi: int, h: int) -> int:
    count = hi - lo + 1
    m = lo + count // 2
    s = count // 8

    def key(p: int) -> int:
        return v[idx[p] + h]

    key_l = _med3(key(lo), key(lo + s), key(lo + 2 * s))
    key_m = _med3(key(m - s), key(m), key(m + s))
    key_n = _med3(key(hi - 2 * s), key(hi - s), key(hi))
    return _med3(key_l, key_m, key_n)


def _insert_sort_split(v: list[int], idx: list[int], lo: int, hi: int, h: int) -> None:
    items = sorted(
        ((v[pos + h], pos) for pos in idx[lo : hi + 1]), key=lambda item: item[0]
    )
    keys = [k for k, _ in items]
    positions = [p for _, p in items]

    negative_sorted_length = -1
    group = hi
    i = len(items) - 1
    while i > 0:
        idx[i + lo] = positions[i]
        v[positions[i]] = group
        if keys[i - 1] == keys[i]:
            negative_sorted_length = 0
        else:
            if negative_sorted_length < 0:
                idx[i + lo] = negative_sorted_length
            group = i + lo - 1
            negative_sorted_length -= 1
        i -= 1

    idx[lo] = positions[0]
    v[positions[0]] = group
    if negative_sorted_length < 0:
        idx[lo] = negative_sorted_length


def _sort_split(v: list[int], idx: list[int], lowest: int, highest: int, h: int) -> None:
    """Ternary-split quicksort of one unsorted group, refining group numbers."""
    stack: list[tuple[bool, int, int]] = [(True, lowest, highest)]
    while stack:
        is_sort, lo, hi = stack.pop()
        if not is_sort:
            if lo == hi:
                v[idx[lo]] = lo
                idx[lo] = -1
            else:
                for p in range(lo, hi + 1):
                    v[idx[p]] = hi
            continue

        if hi - lo + 1 <= INSERT_SORT_NUM_ITEM:
            _insert_sort_split(v, idx, lo, hi, h)
            continue

        pivot = _choose_pivot(v, idx, lo, hi, h)
        a = b = lo
        c = d = hi
        while True:
            while c >= b:
                f = v[idx[b] + h]
                if f > pivot:
                    break
                if f == pivot:
                    idx[a], idx[b] = idx[b], idx[a]
                    a += 1
                b += 1
            while c >= b:
                f = v[idx[c] + h]
                if f < pivot:
                    break
                if f == pivot:
                    idx[c], idx[d] = idx[d], idx[c]
                    d -= 1
                c -= 1
            if b > c:
                break
            idx[b], idx[c] = idx[c], idx[b]
            b += 1
            c -= 1

        s = min(a - lo, b - a)
        idx[lo : lo + s], idx[b - s : b] = idx[b - s : b], idx[lo : lo + s]
        s = min(d - c, hi - d)
        idx[b : b + s], idx[hi - s + 1 : hi + 1] = idx[hi - s + 1 : hi + 1], idx[b : b + s]

        less = b - a
        greater = d - c
        # Processed in order: smaller part, equal part, greater part.
        if greater > 0:
            stack.append((True, hi - greater + 1, hi))
        stack.append((False, lo + less, hi - greater))
        if less > 0:
            stack.append((True, lo, lo + less - 1))


def suffix_sort(
    symbols: Iterable[int],
    largest_symbol: int,
    smallest_symbol: int,
    skip_transform: bool = False,
) -> list[int]:
    """Return the inverse suffix array of ``symbols`` plus a terminator.

    Every symbol must lie in ``smallest_symbol .. largest_symbol``.  The
    result has ``n + 1`` entries; entry ``i`` is the rank of the suffix that
    starts at ``i`` and entry ``n`` (the terminator) has rank 0.  With
    ``skip_transform`` the symbols are not aggregated, so sorting starts
    from a depth of one symbol.
    """
    v = list(symbols)
    n = len(v)
    if largest_symbol < smallest_symbol:
        raise ValueError("largest_symbol is smaller than smallest_symbol")
    for sym in v:
        if not smallest_symbol <= sym <= largest_symbol:
            raise ValueError(
                f"symbol {sym} outside {smallest_symbol}..{largest_symbol}"
            )
    if n == 0:
        return [0]

    v.append(0)
    idx = [0] * (n + 1)
    max_num = largest_symbol - smallest_symbol + 1
    max_new = max_num if skip_transform else max(n, max_num)
    alphabet_size, sorted_depth = _transform(
        v, n, largest_symbol, smallest_symbol, max_new
    )
    _bucket_sort(v, idx, n, alphabet_size)
    idx[0] = -1
    v[n] = 0

    while idx[0] >= -n:
        i = 0
        negated_length = 0
        while True:
            s = idx[i]
            if s < 0:
                i -= s  # skip a sorted group
                negated_length += s
            else:
                if negated_length:
                    idx[i + negated_length] = negated_length  # merge sorted groups
                    negated_length = 0
                j = v[s] + 1
                _sort_split(v, idx, i, j - 1, sorted_depth)
                i = j
            if i > n:
                break
        if negated_length:
            idx[i + negated_length] = negated_length
        sorted_depth *= 2

    return v


def sa_from_inverse(inverse: Sequence[int]) -> list[int]:
    """Invert an inverse suffix array, giving one-based suffix positions by rank."""
    result = [0] * len(inverse)
    for position, rank in enumerate(inverse):
        result[rank] = position + 1
    return result


def suffix_array(symbols: Iterable[int]) -> list[int]:
    """Return the zero-based suffix array of ``symbols`` with its terminator.

    The terminator position ``n`` always comes first.
    """
    values = list(symbols)
    if not values:
        return [0]
    inverse = suffix_sort(values, max(values), min(values))
    return [position - 1 for position in sa_from_inverse(inverse)]