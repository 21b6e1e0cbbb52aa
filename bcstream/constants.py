"""Fixed constants of the LLVM bitstream container format."""

from __future__ import annotations

from typing import Dict

# ---------------------------------------------------------------------------
# Magic numbers
# ---------------------------------------------------------------------------

# ``'B' 'C' 0xC0DE`` opens every raw LLVM bitcode stream.
RAW_MAGIC = b"BC\xc0\xde"
# 0x0B17C0DE stored little-endian, used by the Darwin wrapper header.
WRAPPER_MAGIC = 0x0B17C0DE
WRAPPER_MAGIC_BYTES = WRAPPER_MAGIC.to_bytes(4, "little")
# magic, version, offset, size, cpu type
WRAPPER_HEADER_SIZE = 20

# ---------------------------------------------------------------------------
# Builtin abbreviation ids
# ---------------------------------------------------------------------------

END_BLOCK = 0
ENTER_SUBBLOCK = 1
DEFINE_ABBREV = 2
UNABBREV_RECORD = 3
FIRST_APPLICATION_ABBREV = 4

BUILTIN_ABBREV_NAMES: Dict[int, str] = {
    END_BLOCK: "END_BLOCK",
    ENTER_SUBBLOCK: "ENTER_SUBBLOCK",
    DEFINE_ABBREV: "DEFINE_ABBREV",
    UNABBREV_RECORD: "UNABBREV_RECORD",
}

TOP_LEVEL_BLOCK_ID = -1
TOP_LEVEL_ABBREV_WIDTH = 2

# ---------------------------------------------------------------------------
# Field widths used by the builtin encodings
# ---------------------------------------------------------------------------

BLOCK_ID_WIDTH = 8
ABBREV_WIDTH_WIDTH = 4
BLOCK_SIZE_WIDTH = 32
CODE_WIDTH = 6
NUMOPS_WIDTH = 6
OPERAND_WIDTH = 6
ABBREV_NUMOPS_WIDTH = 5
ABBREV_LITERAL_WIDTH = 8
ABBREV_ENCODING_WIDTH = 3
ABBREV_OP_WIDTH_WIDTH = 5
ARRAY_LENGTH_WIDTH = 6
BLOB_LENGTH_WIDTH = 6
CHAR6_WIDTH = 6

MAX_FIXED_WIDTH = 64
MAX_VBR_WIDTH = 32
MAX_ABBREV_ID_WIDTH = 32

ALIGNMENT_BITS = 32

# ---------------------------------------------------------------------------
# BLOCKINFO
# ---------------------------------------------------------------------------

BLOCKINFO_BLOCK_ID = 0
FIRST_APPLICATION_BLOCK_ID = 8

BLOCKINFO_CODE_SETBID = 1
BLOCKINFO_CODE_BLOCKNAME = 2
BLOCKINFO_CODE_SETRECORDNAME = 3

# ---------------------------------------------------------------------------
# Char6
# ---------------------------------------------------------------------------

CHAR6_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._"
CHAR6_INDEX: Dict[str, int] = {char: index for index, char in enumerate(CHAR6_ALPHABET)}


def decode_char6(value: int) -> str:
    """Return the character encoded by a 6-bit Char6 value."""

    if not 0 <= value < len(CHAR6_ALPHABET):
        raise ValueError(f"char6 value out of range: {value}")
    return CHAR6_ALPHABET[value]


def encode_char6(char: str) -> int:
    try:
        return CHAR6_INDEX[char]
    except KeyError:
        raise ValueError(f"character {char!r} is not representable in char6") from None
