"""Detection of the optional bitcode wrapper header.

Darwin toolchains may prefix a bitcode stream with a 20-byte header made of
five little-endian 32-bit words: the wrapper magic, a version, the byte
offset and byte size of the embedded stream, and a CPU type.  Everything
else starts directly with the raw ``BC 0xC0DE`` magic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from .constants import RAW_MAGIC, WRAPPER_HEADER_SIZE, WRAPPER_MAGIC, WRAPPER_MAGIC_BYTES
from .errors import InvalidMagic, UnexpectedEof

logger = logging.getLogger(__name__)

BufferLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class StreamHeader:
    """Where the raw bitstream lives inside the input buffer.

    ``stream_offset``/``stream_size`` cover the raw stream including its
    magic.  ``body_offset`` is the first byte after the magic, which is
    where block decoding starts.
    """

    wrapped: bool
    magic: bytes
    stream_offset: int
    stream_size: int
    version: int = 0
    cpu_type: int = 0

    @property
    def stream_end(self) -> int:
        return self.stream_offset + self.stream_size

    @property
    def body_offset(self) -> int:
        return self.stream_offset + len(self.magic)


def _word(data: memoryview, index: int) -> int:
    start = index * 4
    return int.from_bytes(data[start : start + 4], "little")


def locate_stream(data: BufferLike) -> StreamHeader:
    """Find the raw bitstream in ``data``, stripping a wrapper if present."""

    view = memoryview(data).cast("B") if isinstance(data, memoryview) else memoryview(data)
    total = len(view)

    if view[:4].tobytes() == WRAPPER_MAGIC_BYTES:
        if total < WRAPPER_HEADER_SIZE:
            raise UnexpectedEof(
                f"wrapper header needs {WRAPPER_HEADER_SIZE} bytes, buffer has {total}",
                bit_offset=total * 8,
            )
        version = _word(view, 1)
        offset = _word(view, 2)
        size = _word(view, 3)
        cpu_type = _word(view, 4)
        if offset + size > total:
            raise UnexpectedEof(
                f"wrapped stream [{offset}, {offset + size}) exceeds buffer size {total}",
                bit_offset=total * 8,
            )
        logger.debug(
            "wrapper 0x%08X version=%d offset=%d size=%d cpu=0x%X",
            WRAPPER_MAGIC,
            version,
            offset,
            size,
            cpu_type,
        )
        _check_raw_magic(view, offset, offset + size)
        return StreamHeader(
            wrapped=True,
            magic=RAW_MAGIC,
            stream_offset=offset,
            stream_size=size,
            version=version,
            cpu_type=cpu_type,
        )

    _check_raw_magic(view, 0, total)
    return StreamHeader(wrapped=False, magic=RAW_MAGIC, stream_offset=0, stream_size=total)


def _check_raw_magic(view: memoryview, start: int, end: int) -> None:
    found = view[start : min(end, start + len(RAW_MAGIC))].tobytes()
    if found != RAW_MAGIC:
        raise InvalidMagic(
            f"expected bitcode magic {RAW_MAGIC.hex()}, found {found.hex() or 'nothing'}",
            bit_offset=start * 8,
        )
