import pytest

from bwalign.common import fill_scoring_matrix
from bwalign.memopt import (
    MEM_MAPQ_MAX,
    Aln,
    AlnReg,
    Chain,
    MemFlag,
    MemOptions,
    PeStat,
    Seed,
)


def test_default_scores():
    opt = MemOptions()
    assert (opt.a, opt.b) == (1, 4)
    assert (opt.o_del, opt.e_del, opt.o_ins, opt.e_ins) == (6, 1, 6, 1)
    assert opt.w == 100
    assert opt.min_output_score == 30
    assert opt.min_seed_len == 19
    assert opt.max_occ == 500
    assert opt.max_chain_extend == 1 << 30
    assert opt.chunk_size == 10000000


def test_default_matrix_follows_scores():
    opt = MemOptions()
    assert opt.mat == fill_scoring_matrix(1, 4)
    assert opt.mat[0] == opt.a
    assert opt.mat[1] == -opt.b
    assert opt.mat[24] == -1


def test_custom_scores_build_matrix():
    opt = MemOptions(a=2, b=5)
    assert opt.mat == fill_scoring_matrix(2, 5)
    assert opt.mat[6] == 2


def test_given_matrix_kept():
    mat = list(range(25))
    assert MemOptions(mat=mat).mat == mat


def test_bad_matrix_size_rejected():
    with pytest.raises(ValueError):
        MemOptions(mat=[1, 2, 3])


def test_mapq_coefficient_factor_is_integer_log():
    opt = MemOptions()
    assert opt.mapq_coef_len == 50.0
    assert opt.mapq_coef_fac == 3


def test_float_options_single_precision():
    opt = MemOptions()
    assert opt.mask_level == 0.5
    assert opt.split_factor == 1.5
    assert abs(opt.mask_level_redun - 0.95) < 1e-7
    assert opt.mask_level_redun != 0.95


def test_flags():
    assert MemFlag.PE == 0x2
    assert MemFlag.ALL == 0x8
    assert MemFlag.PRIMARY5 == 0x800
    opt = MemOptions(flag=0x2 | 0x200)
    assert MemFlag.PE in opt.flag
    assert MemFlag.SOFTCLIP in opt.flag
    assert MemFlag.ALL not in opt.flag
    assert MEM_MAPQ_MAX == 60


def test_seed_ends():
    s = Seed(rbeg=100, qbeg=5, length=20, score=20)
    assert s.qend == 25
    assert s.rend == 120


def test_chain_bounds():
    chain = Chain(seeds=[Seed(100, 5, 20), Seed(130, 35, 10)], rid=1)
    assert chain.n == 2
    assert chain.beg == 5
    assert chain.end == 45
    assert chain.first == -1


def test_unmapped_aln():
    aln = Aln.unmapped()
    assert (aln.rid, aln.pos, aln.flag) == (-1, -1, 0x4)
    assert aln.n_cigar == 0


def test_aln_cigar_count():
    aln = Aln(cigar=[(5, 3), (20, 0)])
    assert aln.n_cigar == 2


def test_alnreg_and_pestat_defaults():
    reg = AlnReg(rb=10, re=40, qb=0, qe=30, score=30)
    assert reg.re - reg.rb == reg.qe - reg.qb
    assert reg.is_alt is False
    pes = PeStat()
    assert (pes.low, pes.high, pes.failed) == (0, 0, False)