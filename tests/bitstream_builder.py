"""Bit-level writer used to build bitstream fixtures for the tests."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from bcstream.abbrev import AbbrevOp, OpKind
from bcstream.constants import (
    BLOCKINFO_BLOCK_ID,
    BLOCKINFO_CODE_SETBID,
    CHAR6_ALPHABET,
    RAW_MAGIC,
    WRAPPER_MAGIC,
)


class BitWriter:
    """Accumulate LSB-first bit fields into a little-endian byte string."""

    def __init__(self) -> None:
        self.value = 0
        self.bits = 0

    def write(self, value: int, width: int) -> None:
        assert 0 <= value < (1 << width), (value, width)
        self.value |= value << self.bits
        self.bits += width

    def write_vbr(self, value: int, width: int) -> None:
        threshold = 1 << (width - 1)
        while value >= threshold:
            self.write((value & (threshold - 1)) | threshold, width)
            value >>= width - 1
        self.write(value, width)

    def align32(self) -> None:
        self.bits = (self.bits + 31) & ~31

    def patch(self, position: int, value: int, width: int) -> None:
        mask = ((1 << width) - 1) << position
        self.value = (self.value & ~mask) | (value << position)

    def to_bytes(self) -> bytes:
        length = (self.bits + 7) // 8
        return self.value.to_bytes(length, "little")


class BitstreamBuilder:
    """Write raw bitstreams block by block.

    ``end_block`` back-patches the length field of the matching
    ``enter_block``; pass ``length_words`` to write a deliberately wrong
    value instead.
    """

    def __init__(self, magic: bytes = RAW_MAGIC) -> None:
        self.writer = BitWriter()
        self.writer.write(int.from_bytes(magic, "little"), 32)
        self._widths: List[int] = [2]
        self._open: List[Tuple[int, int]] = []

    @property
    def width(self) -> int:
        return self._widths[-1]

    def abbrev_id(self, value: int) -> "BitstreamBuilder":
        self.writer.write(value, self.width)
        return self

    def enter_block(self, block_id: int, width: int) -> "BitstreamBuilder":
        self.abbrev_id(1)
        self.writer.write_vbr(block_id, 8)
        self.writer.write_vbr(width, 4)
        self.writer.align32()
        length_pos = self.writer.bits
        self.writer.write(0, 32)
        self._open.append((length_pos, self.writer.bits))
        self._widths.append(width)
        return self

    def end_block(self, length_words: Optional[int] = None) -> "BitstreamBuilder":
        self.abbrev_id(0)
        self.writer.align32()
        length_pos, body_start = self._open.pop()
        self._widths.pop()
        if length_words is None:
            length_words = (self.writer.bits - body_start) // 32
        self.writer.patch(length_pos, length_words, 32)
        return self

    def define_abbrev(self, ops: Sequence[AbbrevOp]) -> "BitstreamBuilder":
        self.abbrev_id(2)
        self.writer.write_vbr(len(ops), 5)
        for op in ops:
            self.write_op(op)
        return self

    def write_op(self, op: AbbrevOp) -> None:
        if op.kind is OpKind.LITERAL:
            self.writer.write(1, 1)
            self.writer.write_vbr(op.value, 8)
            return
        self.writer.write(0, 1)
        self.writer.write(op.kind.value, 3)
        if op.kind in (OpKind.FIXED, OpKind.VBR):
            self.writer.write_vbr(op.value, 5)

    def record(self, code: int, operands: Iterable[int] = ()) -> "BitstreamBuilder":
        values = list(operands)
        self.abbrev_id(3)
        self.writer.write_vbr(code, 6)
        self.writer.write_vbr(len(values), 6)
        for value in values:
            self.writer.write_vbr(value, 6)
        return self

    def abbreviated(
        self,
        abbrev_id: int,
        ops: Sequence[AbbrevOp],
        fields: Sequence[int] = (),
        array: Sequence[int] = (),
        blob: bytes = b"",
    ) -> "BitstreamBuilder":
        """Encode a record with ``ops``.

        ``fields`` supplies one value per scalar op outside the array
        (literal ops consume their own value and are not written), ``array``
        the array elements and ``blob`` the blob payload.
        """

        self.abbrev_id(abbrev_id)
        values = iter(fields)
        index = 0
        while index < len(ops):
            op = ops[index]
            if op.kind is OpKind.ARRAY:
                element = ops[index + 1]
                self.writer.write_vbr(len(array), 6)
                for value in array:
                    self._write_scalar(element, value)
                index += 2
                continue
            if op.kind is OpKind.BLOB:
                self.writer.write_vbr(len(blob), 6)
                self.writer.align32()
                for byte in blob:
                    self.writer.write(byte, 8)
                self.writer.align32()
            else:
                self._write_scalar(op, next(values))
            index += 1
        return self

    def _write_scalar(self, op: AbbrevOp, value: int) -> None:
        if op.kind is OpKind.LITERAL:
            assert value == op.value
        elif op.kind is OpKind.FIXED:
            self.writer.write(value, op.value)
        elif op.kind is OpKind.VBR:
            self.writer.write_vbr(value, op.value)
        elif op.kind is OpKind.CHAR6:
            self.writer.write(CHAR6_ALPHABET.index(chr(value)), 6)
        else:
            raise AssertionError(op)

    def blockinfo(self, definitions: Sequence[Tuple[int, Sequence[Sequence[AbbrevOp]]]]) -> "BitstreamBuilder":
        """Write a BLOCKINFO block; ``definitions`` maps SETBID targets to abbreviations."""

        self.enter_block(BLOCKINFO_BLOCK_ID, 2)
        for block_id, abbrevs in definitions:
            self.record(BLOCKINFO_CODE_SETBID, [block_id])
            for ops in abbrevs:
                self.define_abbrev(ops)
        return self.end_block()

    def to_bytes(self) -> bytes:
        assert not self._open, "unterminated block"
        self.writer.align32()
        return self.writer.to_bytes()


def wrap(raw: bytes, *, version: int = 0, cpu_type: int = 0x01000007, trailer: bytes = b"") -> bytes:
    """Prefix ``raw`` with a bitcode wrapper header."""

    header = b"".join(
        value.to_bytes(4, "little") for value in (WRAPPER_MAGIC, version, 20, len(raw), cpu_type)
    )
    return header + raw + trailer
