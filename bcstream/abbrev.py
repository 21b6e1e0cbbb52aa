"""Abbreviation schema objects and the DEFINE_ABBREV decoder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from .constants import (
    ABBREV_ENCODING_WIDTH,
    ABBREV_LITERAL_WIDTH,
    ABBREV_NUMOPS_WIDTH,
    ABBREV_OP_WIDTH_WIDTH,
    MAX_FIXED_WIDTH,
    MAX_VBR_WIDTH,
)
from .cursor import BitCursor
from .errors import MalformedAbbrevDefinition

# Smallest possible operand definition: literal flag plus 3-bit encoding.
MIN_OP_DEFINITION_BITS = 1 + ABBREV_ENCODING_WIDTH


class OpKind(Enum):
    """Operand encodings; values match the on-disk encoding tags."""

    LITERAL = 0
    FIXED = 1
    VBR = 2
    ARRAY = 3
    CHAR6 = 4
    BLOB = 5

    @property
    def has_value(self) -> bool:
        return self in (OpKind.LITERAL, OpKind.FIXED, OpKind.VBR)


@dataclass(frozen=True)
class AbbrevOp:
    """One operand of an abbreviation.

    ``value`` is the literal value for :attr:`OpKind.LITERAL`, the bit width
    for :attr:`OpKind.FIXED` and :attr:`OpKind.VBR`, and zero otherwise.
    """

    kind: OpKind
    value: int = 0

    @classmethod
    def literal(cls, value: int) -> "AbbrevOp":
        return cls(OpKind.LITERAL, value)

    @classmethod
    def fixed(cls, width: int) -> "AbbrevOp":
        return cls(OpKind.FIXED, width)

    @classmethod
    def vbr(cls, width: int) -> "AbbrevOp":
        return cls(OpKind.VBR, width)

    @classmethod
    def array(cls) -> "AbbrevOp":
        return cls(OpKind.ARRAY)

    @classmethod
    def char6(cls) -> "AbbrevOp":
        return cls(OpKind.CHAR6)

    @classmethod
    def blob(cls) -> "AbbrevOp":
        return cls(OpKind.BLOB)

    @property
    def is_scalar(self) -> bool:
        return self.kind not in (OpKind.ARRAY, OpKind.BLOB)

    def min_bits(self) -> int:
        """Lower bound of the bits consumed when this op decodes one value."""

        if self.kind in (OpKind.FIXED, OpKind.VBR):
            return self.value
        if self.kind is OpKind.CHAR6:
            return 6
        return 0

    def describe(self) -> str:
        if self.kind is OpKind.LITERAL:
            return f"literal({self.value})"
        if self.kind is OpKind.FIXED:
            return f"fixed({self.value})"
        if self.kind is OpKind.VBR:
            return f"vbr({self.value})"
        return self.kind.name.lower()


@dataclass(frozen=True)
class Abbreviation:
    """Immutable ordered sequence of :class:`AbbrevOp`."""

    ops: Tuple[AbbrevOp, ...]

    def __post_init__(self) -> None:
        validate_ops(self.ops)

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self) -> Iterator[AbbrevOp]:
        return iter(self.ops)

    @property
    def has_blob(self) -> bool:
        return any(op.kind is OpKind.BLOB for op in self.ops)

    @property
    def array_element(self) -> Optional[AbbrevOp]:
        for index, op in enumerate(self.ops):
            if op.kind is OpKind.ARRAY:
                return self.ops[index + 1]
        return None

    def describe(self) -> str:
        return "[" + ", ".join(op.describe() for op in self.ops) + "]"


def validate_ops(ops: Sequence[AbbrevOp]) -> None:
    """Reject operand layouts the record decoder cannot interpret.

    An ``Array`` must be followed by exactly one scalar element op and the
    pair must close the abbreviation; at most one ``Blob`` may appear.
    """

    blobs = 0
    for index, op in enumerate(ops):
        if op.kind is OpKind.FIXED and not 1 <= op.value <= MAX_FIXED_WIDTH:
            raise MalformedAbbrevDefinition(f"fixed width {op.value} out of range")
        if op.kind is OpKind.VBR and not 1 <= op.value <= MAX_VBR_WIDTH:
            raise MalformedAbbrevDefinition(f"vbr width {op.value} out of range")
        if op.kind is OpKind.BLOB:
            blobs += 1
            if blobs > 1:
                raise MalformedAbbrevDefinition("abbreviation declares more than one blob")
        if op.kind is OpKind.ARRAY:
            if index + 1 >= len(ops):
                raise MalformedAbbrevDefinition("array operand is missing its element type")
            if index + 2 != len(ops):
                raise MalformedAbbrevDefinition("array operand must be the second to last operand")
            element = ops[index + 1]
            if not element.is_scalar:
                raise MalformedAbbrevDefinition(
                    f"array element cannot be {element.kind.name.lower()}"
                )


def _read_op(cursor: BitCursor) -> AbbrevOp:
    if cursor.read_fixed(1):
        return AbbrevOp.literal(cursor.read_vbr(ABBREV_LITERAL_WIDTH))

    tag = cursor.read_fixed(ABBREV_ENCODING_WIDTH)
    try:
        kind = OpKind(tag)
    except ValueError:
        raise MalformedAbbrevDefinition(
            f"unknown operand encoding {tag}", bit_offset=cursor.absolute()
        ) from None
    if kind is OpKind.LITERAL:
        raise MalformedAbbrevDefinition("operand encoding 0 is reserved", bit_offset=cursor.absolute())

    if kind in (OpKind.FIXED, OpKind.VBR):
        width = cursor.read_vbr(ABBREV_OP_WIDTH_WIDTH)
        # Zero-width fields always decode to zero, exactly like a literal.
        if width == 0:
            return AbbrevOp.literal(0)
        limit = MAX_FIXED_WIDTH if kind is OpKind.FIXED else MAX_VBR_WIDTH
        if width > limit:
            raise MalformedAbbrevDefinition(
                f"{kind.name.lower()} width {width} exceeds {limit}", bit_offset=cursor.absolute()
            )
        return AbbrevOp(kind, width)
    return AbbrevOp(kind)


def read_abbreviation(cursor: BitCursor) -> Abbreviation:
    """Decode the body of a DEFINE_ABBREV entry at the cursor."""

    start = cursor.tell()
    numops = cursor.read_vbr(ABBREV_NUMOPS_WIDTH)
    if numops * MIN_OP_DEFINITION_BITS > cursor.remaining_bits():
        raise MalformedAbbrevDefinition(
            f"abbreviation declares {numops} operands but the stream is too short",
            bit_offset=cursor.absolute(start),
        )

    ops: List[AbbrevOp] = []
    for _ in range(numops):
        ops.append(_read_op(cursor))
    try:
        return Abbreviation(tuple(ops))
    except MalformedAbbrevDefinition as exc:
        exc.attach(bit_offset=cursor.absolute(start))
        raise
