import random

import pytest

from bwalign.qsufsort import sa_from_inverse, suffix_array, suffix_sort


def _assert_sorted_suffixes(text, sa):
    assert sorted(sa) == list(range(len(text) + 1))
    suffixes = [tuple(text[p:]) for p in sa]
    for earlier, later in zip(suffixes, suffixes[1:]):
        assert earlier < later


def test_banana_worked_example():
    assert suffix_array(b"banana") == [6, 5, 3, 1, 0, 4, 2]


def test_empty_text_has_only_terminator():
    assert suffix_array([]) == [0]
    assert suffix_sort([], 3, 0) == [0]


def test_terminator_has_rank_zero():
    inverse = suffix_sort([2, 1, 3, 1], 3, 1)
    assert inverse[-1] == 0
    assert sorted(inverse) == list(range(5))


@pytest.mark.parametrize("length", [1, 2, 17, 100, 500])
def test_repetitive_text(length):
    text = [0] * length
    sa = suffix_array(text)
    assert sa == list(range(length, -1, -1))


@pytest.mark.parametrize("seed", range(6))
def test_random_dna_sorted(seed):
    rng = random.Random(seed)
    text = [rng.randrange(4) for _ in range(rng.randrange(50, 400))]
    _assert_sorted_suffixes(text, suffix_array(text))


@pytest.mark.parametrize("seed", range(3))
def test_large_alphabet_small_text(seed):
    rng = random.Random(100 + seed)
    text = [rng.randrange(1000) for _ in range(30)]
    _assert_sorted_suffixes(text, suffix_array(text))


def test_skip_transform_gives_same_ranks():
    rng = random.Random(7)
    text = [rng.randrange(1, 5) for _ in range(300)]
    assert suffix_sort(text, 4, 1, True) == suffix_sort(text, 4, 1, False)


def test_periodic_text_with_skip_transform():
    text = [1, 2, 3] * 40
    inverse = suffix_sort(text, 3, 1, True)
    sa = [p - 1 for p in sa_from_inverse(inverse)]
    _assert_sorted_suffixes(text, sa)


def test_sa_from_inverse_is_one_based_inverse():
    text = b"mississippi"
    inverse = suffix_sort(text, max(text), min(text))
    one_based = sa_from_inverse(inverse)
    for rank, position in enumerate(one_based):
        assert inverse[position - 1] == rank


def test_symbol_out_of_range_raises():
    with pytest.raises(ValueError):
        suffix_sort([0, 5, 2], 4, 0)


def test_inverted_range_raises():
    with pytest.raises(ValueError):
        suffix_sort([1], 0, 2)