import pytest

from bcstream.abbrev import AbbrevOp, Abbreviation, OpKind, read_abbreviation
from bcstream.constants import CHAR6_ALPHABET, decode_char6, encode_char6
from bcstream.cursor import BitCursor
from bcstream.errors import MalformedAbbrevDefinition

from bitstream_builder import BitWriter


def _definition(ops) -> BitCursor:
    """Encode the body of a DEFINE_ABBREV entry (without the abbreviation id)."""

    writer = BitWriter()
    writer.write_vbr(len(ops), 5)
    for kind, value in ops:
        if kind == "literal":
            writer.write(1, 1)
            writer.write_vbr(value, 8)
        else:
            writer.write(0, 1)
            writer.write(kind, 3)
            if kind in (1, 2):
                writer.write_vbr(value, 5)
    writer.align32()
    return BitCursor(writer.to_bytes())


def test_reads_every_operand_kind():
    cursor = _definition(
        [("literal", 300), (1, 7), (2, 6), (5, None), (3, None), (4, None)]
    )

    abbrev = read_abbreviation(cursor)

    assert abbrev.ops == (
        AbbrevOp.literal(300),
        AbbrevOp.fixed(7),
        AbbrevOp.vbr(6),
        AbbrevOp.blob(),
        AbbrevOp.array(),
        AbbrevOp.char6(),
    )
    assert abbrev.has_blob
    assert abbrev.array_element == AbbrevOp.char6()
    assert abbrev.describe() == "[literal(300), fixed(7), vbr(6), blob, array, char6]"


def test_zero_width_fields_become_literal_zero():
    abbrev = read_abbreviation(_definition([("literal", 1), (1, 0), (2, 0)]))

    assert abbrev.ops == (AbbrevOp.literal(1), AbbrevOp.literal(0), AbbrevOp.literal(0))


def test_dangling_array_is_rejected():
    with pytest.raises(MalformedAbbrevDefinition, match="missing its element"):
        read_abbreviation(_definition([("literal", 1), (3, None)]))


@pytest.mark.parametrize("element", [3, 5])
def test_array_element_must_be_scalar(element):
    with pytest.raises(MalformedAbbrevDefinition, match="array element"):
        read_abbreviation(_definition([("literal", 1), (3, None), (element, None)]))


def test_array_must_close_the_abbreviation():
    with pytest.raises(MalformedAbbrevDefinition, match="second to last"):
        read_abbreviation(_definition([("literal", 1), (3, None), (1, 8), (2, 6)]))


def test_unknown_encoding_is_rejected():
    with pytest.raises(MalformedAbbrevDefinition, match="unknown operand encoding 6"):
        read_abbreviation(_definition([("literal", 1), (6, None)]))


def test_reserved_encoding_zero_is_rejected():
    with pytest.raises(MalformedAbbrevDefinition, match="reserved"):
        read_abbreviation(_definition([(0, None)]))


@pytest.mark.parametrize("kind,width", [(1, 65), (2, 33)])
def test_oversized_widths_are_rejected(kind, width):
    with pytest.raises(MalformedAbbrevDefinition, match="exceeds"):
        read_abbreviation(_definition([("literal", 1), (kind, width)]))


def test_two_blobs_are_rejected():
    with pytest.raises(MalformedAbbrevDefinition, match="more than one blob"):
        read_abbreviation(_definition([("literal", 1), (5, None), (5, None)]))


def test_operand_count_is_checked_before_reading():
    writer = BitWriter()
    writer.write_vbr(31, 5)
    writer.align32()

    with pytest.raises(MalformedAbbrevDefinition, match="too short") as excinfo:
        read_abbreviation(BitCursor(writer.to_bytes()))
    assert excinfo.value.bit_offset == 0


def test_constructing_invalid_abbreviation_directly_fails():
    with pytest.raises(MalformedAbbrevDefinition):
        Abbreviation((AbbrevOp.literal(1), AbbrevOp.array()))


def test_op_kind_values_match_encoding_tags():
    assert [kind.value for kind in OpKind] == [0, 1, 2, 3, 4, 5]
    assert OpKind.FIXED.has_value and not OpKind.BLOB.has_value


def test_char6_round_trip():
    for value in range(64):
        char = decode_char6(value)
        assert char == CHAR6_ALPHABET[value]
        assert encode_char6(char) == value

    assert decode_char6(0) == "a"
    assert decode_char6(26) == "A"
    assert decode_char6(52) == "0"
    assert decode_char6(62) == "."
    assert decode_char6(63) == "_"


def test_char6_rejects_other_characters():
    with pytest.raises(ValueError):
        encode_char6("-")
    with pytest.raises(ValueError):
        decode_char6(64)
