"""Bit-addressable reader over an immutable byte buffer."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .constants import ALIGNMENT_BITS, MAX_FIXED_WIDTH, MAX_VBR_WIDTH
from .errors import MalformedStream, Overflow, UnalignedTrailingPadding, UnexpectedEof

logger = logging.getLogger(__name__)

BufferLike = Union[bytes, bytearray, memoryview]

_U64_LIMIT = 1 << 64


class BitCursor:
    """Read little-endian, LSB-first bit fields from a byte region.

    The cursor views ``data[start:end]`` without copying it.  Positions
    returned by :meth:`tell` are relative to ``start`` so that 32-bit
    alignment follows the bitstream rather than the enclosing file;
    :meth:`absolute` converts them back into buffer bit offsets for error
    reporting.
    """

    __slots__ = ("_view", "_base", "_limit", "_pos", "strict")

    def __init__(
        self,
        data: BufferLike,
        start: int = 0,
        end: Optional[int] = None,
        *,
        strict: bool = True,
    ) -> None:
        view = memoryview(data).cast("B") if isinstance(data, memoryview) else memoryview(data)
        total = len(view)
        stop = total if end is None else end
        if not (0 <= start <= stop <= total):
            raise ValueError(f"cursor region [{start}, {stop}) exceeds buffer size {total}")
        self._view = view[start:stop]
        self._base = start * 8
        self._limit = (stop - start) * 8
        self._pos = 0
        self.strict = strict

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------
    def tell(self) -> int:
        return self._pos

    def absolute(self, position: Optional[int] = None) -> int:
        """Translate a region-relative bit position into a buffer bit offset."""

        return self._base + (self._pos if position is None else position)

    @property
    def bit_length(self) -> int:
        return self._limit

    def remaining_bits(self) -> int:
        return self._limit - self._pos

    def at_end(self) -> bool:
        return self._pos >= self._limit

    def seek(self, position: int) -> None:
        if not 0 <= position <= self._limit:
            raise UnexpectedEof(
                f"cannot seek to bit {position} of a {self._limit}-bit stream",
                bit_offset=self.absolute(),
            )
        self._pos = position

    def skip_bits(self, count: int) -> None:
        self.seek(self._pos + count)

    def _require(self, bits: int) -> None:
        if bits > self._limit - self._pos:
            raise UnexpectedEof(
                f"need {bits} bit(s) but only {self._limit - self._pos} remain",
                bit_offset=self.absolute(),
            )

    # ------------------------------------------------------------------
    # Field readers
    # ------------------------------------------------------------------
    def read_fixed(self, width: int) -> int:
        if not 1 <= width <= MAX_FIXED_WIDTH:
            raise MalformedStream(f"invalid fixed field width {width}", bit_offset=self.absolute())
        self._require(width)
        pos = self._pos
        end = pos + width
        chunk = int.from_bytes(self._view[pos >> 3 : (end + 7) >> 3], "little")
        self._pos = end
        return (chunk >> (pos & 7)) & ((1 << width) - 1)

    def read_vbr(self, width: int) -> int:
        """Read a variable bit rate value made of ``width``-bit chunks.

        The top bit of every chunk flags a continuation and the remaining
        ``width - 1`` bits are payload, least significant chunk first.  A
        value that cannot fit in 64 bits raises :class:`Overflow` as soon as
        that becomes certain, which also bounds the work spent on a run of
        continuation chunks.
        """

        if not 1 <= width <= MAX_VBR_WIDTH:
            raise MalformedStream(f"invalid vbr chunk width {width}", bit_offset=self.absolute())
        start = self._pos
        piece = self.read_fixed(width)
        if width == 1:
            # A one-bit chunk carries no payload; only a terminating zero is meaningful.
            if piece:
                raise Overflow("vbr1 continuation chunk carries no payload", bit_offset=self.absolute(start))
            return 0
        hi_mask = 1 << (width - 1)
        if not piece & hi_mask:
            return piece

        lo_mask = hi_mask - 1
        payload = width - 1
        result = 0
        shift = 0
        while True:
            result |= (piece & lo_mask) << shift
            if not piece & hi_mask:
                break
            shift += payload
            if shift >= 64:
                raise Overflow("vbr value exceeds 64 bits", bit_offset=self.absolute(start))
            piece = self.read_fixed(width)
        if result >= _U64_LIMIT:
            raise Overflow("vbr value exceeds 64 bits", bit_offset=self.absolute(start))
        return result

    def align32(self) -> None:
        """Advance to the next 32-bit boundary, checking the skipped padding."""

        misalignment = self._pos % ALIGNMENT_BITS
        if not misalignment:
            return
        start = self._pos
        padding = self.read_fixed(ALIGNMENT_BITS - misalignment)
        if padding:
            if self.strict:
                raise UnalignedTrailingPadding(
                    f"non-zero alignment padding 0x{padding:x}", bit_offset=self.absolute(start)
                )
            logger.warning("ignoring non-zero alignment padding at bit %d", self.absolute(start))

    def read_bytes(self, length: int) -> bytes:
        if self._pos % 8:
            raise MalformedStream("byte read from an unaligned position", bit_offset=self.absolute())
        if length < 0:
            raise MalformedStream(f"negative byte count {length}", bit_offset=self.absolute())
        self._require(length * 8)
        first = self._pos >> 3
        self._pos += length * 8
        return self._view[first : first + length].tobytes()

    def __repr__(self) -> str:
        return f"<BitCursor bit={self._pos} remaining={self.remaining_bits()} base={self._base}>"
