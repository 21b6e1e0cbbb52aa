"""Events emitted by the decoder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .abbrev import AbbrevOp
from .constants import FIRST_APPLICATION_ABBREV, UNABBREV_RECORD


def decode_signed_vbr(value: int) -> int:
    """Undo LLVM's sign rotation: the low bit holds the sign.

    A bare sign bit (``1``) stands for the most negative 64-bit value.
    """

    magnitude = value >> 1
    if not value & 1:
        return magnitude
    if magnitude:
        return -magnitude
    return -(1 << 63)


@dataclass(frozen=True)
class EnterBlock:
    block_id: int
    abbrev_width: int
    length_words: int


@dataclass(frozen=True)
class ExitBlock:
    block_id: int


@dataclass(frozen=True)
class SkippedBlock:
    """A block the caller asked not to decode; its bytes were jumped over."""

    block_id: int
    abbrev_width: int
    length_words: int


@dataclass(frozen=True)
class AbbreviationDefined:
    """An abbreviation became visible to ``scope_block_id``.

    ``index`` is the 0-based position in the block's effective abbreviation
    list; records refer to it with abbreviation id ``index + 4``.  ``global_``
    is set for definitions made through BLOCKINFO.
    """

    scope_block_id: int
    index: int
    ops: Tuple[AbbrevOp, ...]
    global_: bool = False

    @property
    def abbrev_id(self) -> int:
        return self.index + FIRST_APPLICATION_ABBREV


@dataclass(frozen=True)
class Record:
    """A data record: a code, integer operands and an optional blob."""

    code: int
    operands: Tuple[int, ...] = ()
    blob: Optional[bytes] = None
    abbrev_id: int = UNABBREV_RECORD

    @property
    def is_abbreviated(self) -> bool:
        return self.abbrev_id >= FIRST_APPLICATION_ABBREV

    def __len__(self) -> int:
        return len(self.operands)

    def signed(self, index: int) -> int:
        return decode_signed_vbr(self.operands[index])

    def string(self, start: int = 0) -> bytes:
        """Interpret ``operands[start:]`` as a byte string."""

        values = self.operands[start:]
        if any(value > 0xFF for value in values):
            raise ValueError(f"record {self.code} operands do not fit in bytes")
        return bytes(values)

    def text(self, start: int = 0) -> str:
        return self.string(start).decode("latin-1")


Event = Union[EnterBlock, ExitBlock, SkippedBlock, AbbreviationDefined, Record]


__all__ = [
    "AbbreviationDefined",
    "EnterBlock",
    "Event",
    "ExitBlock",
    "Record",
    "SkippedBlock",
    "decode_signed_vbr",
]
