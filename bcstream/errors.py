"""Exceptions raised while decoding a bitstream.

Every failure derives from :class:`BitstreamError`, itself a
:class:`ValueError`, so callers that only care about "bad input" can keep
catching ``ValueError``.  The decoder annotates the first failure with the
block path that was open at the time and re-raises it unchanged otherwise.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class BitstreamError(ValueError):
    """Base class for all decoding failures."""

    def __init__(
        self,
        message: str,
        *,
        bit_offset: Optional[int] = None,
        block_path: Sequence[int] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bit_offset = bit_offset
        self.block_path: Tuple[int, ...] = tuple(block_path)

    def attach(self, *, bit_offset: Optional[int] = None, block_path: Sequence[int] = ()) -> None:
        """Fill in location details that were unknown where the error was raised."""

        if self.bit_offset is None and bit_offset is not None:
            self.bit_offset = bit_offset
        if not self.block_path and block_path:
            self.block_path = tuple(block_path)

    def __str__(self) -> str:
        details = []
        if self.bit_offset is not None:
            details.append(f"bit {self.bit_offset}")
        if self.block_path:
            details.append("path " + "/".join(str(block_id) for block_id in self.block_path))
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class UnexpectedEof(BitstreamError):
    """A read would run past the end of the bitstream."""


class InvalidMagic(BitstreamError):
    """Neither the wrapper magic nor the raw bitcode magic was found."""


class MalformedAbbrevDefinition(BitstreamError):
    """A DEFINE_ABBREV entry describes an impossible operand layout."""


class UnknownAbbreviationId(BitstreamError):
    """An abbreviation id does not name any abbreviation visible in scope."""


class BlockLengthMismatch(BitstreamError):
    """A block ended somewhere other than where its header said it would."""


class Overflow(BitstreamError):
    """A VBR value does not fit in 64 bits."""


class UnalignedTrailingPadding(BitstreamError):
    """Alignment padding contained set bits."""


class MalformedStream(BitstreamError):
    """A structural field holds a value the format does not allow."""


__all__ = [
    "BitstreamError",
    "BlockLengthMismatch",
    "InvalidMagic",
    "MalformedAbbrevDefinition",
    "MalformedStream",
    "Overflow",
    "UnalignedTrailingPadding",
    "UnexpectedEof",
    "UnknownAbbreviationId",
]
