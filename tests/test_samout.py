import pytest

from bwalign.common import SeqRecord
from bwalign.memopt import Aln, MemFlag, MemOptions
from bwalign.refseq import Annotation, RefSeq
from bwalign.samout import aln_to_sam, format_cigar, ref_length


@pytest.fixture
def refseq():
    return RefSeq(
        l_pac=200,
        anns=[
            Annotation("chr1", "first\tcontig", 0, 100),
            Annotation("chr2", "", 100, 100),
        ],
    )


@pytest.fixture
def opt():
    return MemOptions()


def _fields(line):
    assert line.endswith("\n")
    return line[:-1].split("\t")


def test_ref_length_counts_match_and_deletion():
    cigar = [(5, 0), (2, 1), (3, 2), (4, 3)]
    assert ref_length(cigar) == sum(n for n, op in cigar if op in (0, 2))
    assert ref_length([]) == 0


def test_format_cigar_primary_keeps_soft_clip(opt):
    aln = Aln(cigar=[(5, 3), (10, 0)])
    assert format_cigar(opt, aln, 0) == "5S10M"


def test_format_cigar_supplementary_uses_hard_clip(opt):
    aln = Aln(cigar=[(5, 3), (10, 0), (2, 3)])
    text = format_cigar(opt, aln, 1)
    assert "S" not in text
    assert text.count("H") == 2


def test_format_cigar_softclip_flag_and_empty():
    opt = MemOptions(flag=MemFlag.SOFTCLIP)
    aln = Aln(cigar=[(5, 3), (10, 0)])
    assert format_cigar(opt, aln, 1) == format_cigar(opt, aln, 0)
    assert format_cigar(opt, Aln(), 0) == "*"


def test_unmapped_read(opt, refseq):
    read = SeqRecord(name="r1", seq="ACGTN", qual="IIIII")
    fields = _fields(aln_to_sam(opt, refseq, read, [Aln.unmapped()], 0))
    assert fields[0] == "r1"
    assert int(fields[1]) & 0x4
    assert fields[2:6] == ["*", "0", "0", "*"]
    assert fields[6:9] == ["*", "0", "0"]
    assert fields[9] == read.seq
    assert fields[10] == read.qual


def test_forward_mapped_read(opt, refseq):
    read = SeqRecord(name="r1", seq="ACGT", qual="ABCD")
    aln = Aln(pos=9, rid=1, mapq=37, cigar=[(4, 0)], md="4", nm=0, score=4, sub=0)
    fields = _fields(aln_to_sam(opt, refseq, read, [aln], 0))
    assert fields[2] == "chr2"
    assert fields[3] == str(aln.pos + 1)
    assert fields[4] == str(aln.mapq)
    assert fields[9] == read.seq
    assert fields[10] == read.qual
    assert "NM:i:0" in fields
    assert "MD:Z:4" in fields
    assert "AS:i:4" in fields


def test_reverse_strand_is_reverse_complemented(opt, refseq):
    read = SeqRecord(name="r1", seq="AACG", qual="ABCD")
    aln = Aln(pos=0, rid=0, is_rev=True, cigar=[(4, 0)], md="4")
    fields = _fields(aln_to_sam(opt, refseq, read, [aln], 0))
    assert int(fields[1]) & 0x10
    assert fields[9] == "CGTT"
    assert fields[10] == read.qual[::-1]


def test_secondary_hides_sequence(opt, refseq):
    read = SeqRecord(name="r1", seq="ACGT", qual="ABCD")
    aln = Aln(pos=0, rid=0, flag=0x100, cigar=[(4, 0)], md="4")
    fields = _fields(aln_to_sam(opt, refseq, read, [aln], 0))
    assert fields[9:11] == ["*", "*"]


def test_supplementary_reported_as_secondary_bit(refseq):
    opt = MemOptions(flag=MemFlag.NO_MULTI)
    read = SeqRecord(name="r1", seq="ACGT")
    aln = Aln(pos=0, rid=0, flag=0x10000, cigar=[(4, 0)], md="4")
    fields = _fields(aln_to_sam(opt, refseq, read, [aln], 0))
    assert int(fields[1]) & 0x100
    assert fields[9] == read.seq
    assert fields[10] == "*"


def test_pair_template_length_is_antisymmetric(opt, refseq):
    read = SeqRecord(name="p", seq="ACGTACGTAC")
    left = Aln(pos=10, rid=0, cigar=[(10, 0)], md="10")
    right = Aln(pos=50, rid=0, is_rev=True, cigar=[(10, 0)], md="10")
    a = _fields(aln_to_sam(opt, refseq, read, [left], 0, right))
    b = _fields(aln_to_sam(opt, refseq, read, [right], 0, left))
    assert a[6] == "=" and b[6] == "="
    assert a[7] == str(right.pos + 1)
    assert int(a[8]) == -int(b[8])
    assert int(a[8]) > 0
    assert int(a[1]) & 0x1 and int(a[1]) & 0x20
    assert "MC:Z:10M" in a


def test_unmapped_read_takes_mate_coordinate(opt, refseq):
    read = SeqRecord(name="p", seq="ACGT")
    mate = Aln(pos=20, rid=1, cigar=[(4, 0)], md="4")
    fields = _fields(aln_to_sam(opt, refseq, read, [Aln.unmapped()], 0, mate))
    assert int(fields[1]) & 0x4
    assert int(fields[1]) & 0x1
    assert fields[2] == "chr2"
    assert fields[3] == str(mate.pos + 1)
    assert fields[5] == "*"
    assert fields[8] == "0"
    assert mate.cigar == [(4, 0)]


def test_sa_tag_and_supplementary_trimming(opt, refseq):
    read = SeqRecord(name="r1", seq="ACGTACGTAC", qual="ABCDEFGHIJ")
    primary = Aln(pos=0, rid=0, cigar=[(6, 0), (4, 3)], md="6", mapq=60)
    supp = Aln(pos=40, rid=1, flag=0x800, cigar=[(6, 3), (4, 0)], md="4", mapq=10)
    alns = [primary, supp]
    first = _fields(aln_to_sam(opt, refseq, read, alns, 0))
    second = _fields(aln_to_sam(opt, refseq, read, alns, 1))
    sa_first = [f for f in first if f.startswith("SA:Z:")]
    assert len(sa_first) == 1
    assert sa_first[0].startswith("SA:Z:chr2,")
    assert any(f.startswith("SA:Z:chr1,") for f in second)
    assert first[9] == read.seq
    assert second[9] == read.seq[6:]
    assert second[10] == read.qual[6:]


def test_optional_tags(refseq):
    opt = MemOptions(flag=MemFlag.REF_HDR)
    read = SeqRecord(name="r1", seq="ACGT", comment="BC:Z:AAAA")
    aln = Aln(pos=0, rid=0, cigar=[(4, 0)], md="4", score=40, alt_sc=50, sub=-1, xa="chr2,+5,4M,0;")
    fields = _fields(aln_to_sam(opt, refseq, read, [aln], 0, rg_id="grp"))
    assert "RG:Z:grp" in fields
    assert not any(f.startswith("XS:i:") for f in fields)
    assert "XA:Z:chr2,+5,4M,0;" in fields
    assert "BC:Z:AAAA" in fields
    pa = [f for f in fields if f.startswith("pa:f:")]
    assert len(pa) == 1
    assert float(pa[0][5:]) == pytest.approx(aln.score / aln.alt_sc, abs=1e-3)
    assert fields[-1] == "XR:Z:" + refseq.anns[0].anno.replace("\t", " ")


def test_which_out_of_range(opt, refseq):
    read = SeqRecord(name="r1", seq="ACGT")
    with pytest.raises(IndexError):
        aln_to_sam(opt, refseq, read, [Aln.unmapped()], 3)