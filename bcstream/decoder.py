"""The block/record walking state machine."""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Tuple

from .abbrev import AbbrevOp, Abbreviation, OpKind, read_abbreviation
from .blockinfo import BlockInfoTable
from .config import DecoderOptions
from .constants import (
    ABBREV_WIDTH_WIDTH,
    ARRAY_LENGTH_WIDTH,
    BLOB_LENGTH_WIDTH,
    BLOCK_ID_WIDTH,
    BLOCK_SIZE_WIDTH,
    BLOCKINFO_BLOCK_ID,
    CHAR6_WIDTH,
    CODE_WIDTH,
    DEFINE_ABBREV,
    END_BLOCK,
    ENTER_SUBBLOCK,
    MAX_ABBREV_ID_WIDTH,
    NUMOPS_WIDTH,
    OPERAND_WIDTH,
    UNABBREV_RECORD,
    decode_char6,
)
from .cursor import BitCursor, BufferLike
from .errors import (
    BitstreamError,
    BlockLengthMismatch,
    MalformedStream,
    UnexpectedEof,
    UnknownAbbreviationId,
)
from .events import AbbreviationDefined, EnterBlock, Event, ExitBlock, Record, SkippedBlock
from .scope import Scope, ScopeStack
from .wrapper import StreamHeader, locate_stream

logger = logging.getLogger(__name__)


class Decoder:
    """Decode one bitstream into a lazy sequence of events.

    A decoder owns its cursor, scope stack and BLOCKINFO table, so separate
    decoders never share mutable state.  :meth:`events` may only be
    iterated once; start a new decoder to decode the same bytes again.
    """

    def __init__(self, data: BufferLike, options: Optional[DecoderOptions] = None) -> None:
        self.options = options or DecoderOptions()
        self.header: StreamHeader = locate_stream(data)
        self.block_info = BlockInfoTable()
        self.scopes = ScopeStack()
        self._started = False

        start = self.header.body_offset
        end = self.header.stream_end
        trailing = (end - self.header.stream_offset) % 4
        if trailing:
            if self.options.strict:
                raise MalformedStream(
                    f"bitstream size {end - self.header.stream_offset} is not a multiple of 4 bytes",
                    bit_offset=end * 8,
                )
            logger.warning("ignoring %d trailing byte(s) after the last 32-bit word", trailing)
            end -= trailing
        self.cursor = BitCursor(data, start, end, strict=self.options.strict)
        # Literal operands cost no input bits; cap their total by the stream size.
        self._literal_budget = self.cursor.bit_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def events(self) -> Iterator[Event]:
        """Return the event iterator; a second call raises ``RuntimeError``."""

        if self._started:
            raise RuntimeError("decoder events can only be iterated once")
        self._started = True
        return self._run()

    def __iter__(self) -> Iterator[Event]:
        return self.events()

    @property
    def depth(self) -> int:
        return self.scopes.depth

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def _run(self) -> Iterator[Event]:
        while True:
            try:
                if self.cursor.at_end():
                    self._check_complete()
                    return
                event = self._step()
            except BitstreamError as exc:
                exc.attach(bit_offset=self.cursor.absolute(), block_path=self.scopes.path())
                raise
            if event is not None:
                yield event

    def _check_complete(self) -> None:
        if self.scopes.depth:
            raise UnexpectedEof(
                f"stream ended inside block {self.scopes.current.block_id} "
                f"({self.scopes.depth} block(s) still open)"
            )

    def _step(self) -> Optional[Event]:
        scope = self.scopes.current
        abbrev_id = self.cursor.read_fixed(scope.abbrev_width)

        if abbrev_id == END_BLOCK:
            return self._end_block(scope)
        if abbrev_id == ENTER_SUBBLOCK:
            return self._enter_block(scope)
        if abbrev_id == DEFINE_ABBREV:
            return self._define_abbrev(scope)
        if abbrev_id == UNABBREV_RECORD:
            record = self._read_unabbreviated()
        else:
            record = self._read_abbreviated(scope, abbrev_id)

        if scope.is_blockinfo:
            self.block_info.apply_record(record.code, record.operands)
        return record

    def _end_block(self, scope: Scope) -> ExitBlock:
        if scope.is_top_level:
            raise MalformedStream("END_BLOCK at top level")
        self.cursor.align32()
        position = self.cursor.tell()
        if position != scope.end_bit:
            raise BlockLengthMismatch(
                f"block {scope.block_id} ended at bit {position}, "
                f"its header declared bit {scope.end_bit}"
            )
        self.scopes.pop()
        logger.debug("exit block %d", scope.block_id)
        return ExitBlock(scope.block_id)

    def _enter_block(self, parent: Scope) -> Event:
        cursor = self.cursor
        if parent.is_blockinfo:
            raise MalformedStream("nested block inside BLOCKINFO")

        block_id = cursor.read_vbr(BLOCK_ID_WIDTH)
        width = cursor.read_vbr(ABBREV_WIDTH_WIDTH)
        if not 1 <= width <= MAX_ABBREV_ID_WIDTH:
            raise MalformedStream(f"block {block_id} declares abbreviation width {width}")
        cursor.align32()
        length_words = cursor.read_fixed(BLOCK_SIZE_WIDTH)

        end_bit = cursor.tell() + length_words * 32
        if end_bit > cursor.bit_length:
            raise BlockLengthMismatch(
                f"block {block_id} declares {length_words} word(s) "
                f"but only {cursor.remaining_bits() // 32} remain"
            )
        if parent.end_bit is not None and end_bit > parent.end_bit:
            raise BlockLengthMismatch(
                f"block {block_id} extends past the end of enclosing block {parent.block_id}"
            )

        if block_id in self.options.skip_block_ids and block_id != BLOCKINFO_BLOCK_ID:
            cursor.seek(end_bit)
            logger.debug("skipped block %d (%d words)", block_id, length_words)
            return SkippedBlock(block_id, width, length_words)

        self.scopes.push(
            Scope(block_id, width, inherited=self.block_info.snapshot(block_id), end_bit=end_bit)
        )
        if block_id == BLOCKINFO_BLOCK_ID:
            self.block_info.begin_block()
        logger.debug("enter block %d width=%d words=%d", block_id, width, length_words)
        return EnterBlock(block_id, width, length_words)

    def _define_abbrev(self, scope: Scope) -> Optional[AbbreviationDefined]:
        abbrev = read_abbreviation(self.cursor)
        if scope.is_blockinfo:
            target, index = self.block_info.append(abbrev)
            event = AbbreviationDefined(target, index, abbrev.ops, global_=True)
        else:
            index = scope.define(abbrev)
            event = AbbreviationDefined(scope.block_id, index, abbrev.ops)
        return event if self.options.emit_abbreviations else None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def _read_unabbreviated(self) -> Record:
        cursor = self.cursor
        code = cursor.read_vbr(CODE_WIDTH)
        numops = cursor.read_vbr(NUMOPS_WIDTH)
        if numops * OPERAND_WIDTH > cursor.remaining_bits():
            raise UnexpectedEof(f"record {code} declares {numops} operands past the end of the stream")
        operands = tuple(cursor.read_vbr(OPERAND_WIDTH) for _ in range(numops))
        return Record(code, operands)

    def _read_abbreviated(self, scope: Scope, abbrev_id: int) -> Record:
        abbrev = scope.lookup(abbrev_id)
        if abbrev is None:
            raise UnknownAbbreviationId(
                f"abbreviation id {abbrev_id} is not defined in block {scope.block_id} "
                f"({scope.abbrev_count} visible)"
            )
        values, blob = self._read_fields(abbrev)
        return Record(values[0], tuple(values[1:]), blob, abbrev_id)

    def _read_fields(self, abbrev: Abbreviation) -> Tuple[List[int], Optional[bytes]]:
        ops = abbrev.ops
        if not ops:
            raise MalformedStream("record uses an abbreviation with no operands")
        if not ops[0].is_scalar:
            raise MalformedStream("abbreviation starts with an array or a blob")

        values: List[int] = []
        blob: Optional[bytes] = None
        index = 0
        while index < len(ops):
            op = ops[index]
            if op.kind is OpKind.ARRAY:
                element = ops[index + 1]
                count = self.cursor.read_vbr(ARRAY_LENGTH_WIDTH)
                self._check_array_count(count, element)
                values.extend(self._read_scalar(element) for _ in range(count))
                index += 2
                continue
            if op.kind is OpKind.BLOB:
                blob = self._read_blob()
            elif op.kind is OpKind.LITERAL:
                self._spend_literals(1)
                values.append(op.value)
            else:
                values.append(self._read_scalar(op))
            index += 1
        return values, blob

    def _check_array_count(self, count: int, element: AbbrevOp) -> None:
        remaining = self.cursor.remaining_bits()
        bits = element.min_bits()
        if bits == 0:
            self._spend_literals(count)
        elif count * bits > remaining:
            raise UnexpectedEof(f"array of {count} element(s) runs past the end of the stream")

    def _spend_literals(self, count: int) -> None:
        if count > self._literal_budget:
            raise MalformedStream(
                f"{count} literal operand(s) requested but only {self._literal_budget} "
                "remain in the stream's literal budget"
            )
        self._literal_budget -= count

    def _read_scalar(self, op: AbbrevOp) -> int:
        kind = op.kind
        if kind is OpKind.LITERAL:
            return op.value
        if kind is OpKind.FIXED:
            return self.cursor.read_fixed(op.value)
        if kind is OpKind.VBR:
            return self.cursor.read_vbr(op.value)
        if kind is OpKind.CHAR6:
            return ord(decode_char6(self.cursor.read_fixed(CHAR6_WIDTH)))
        raise MalformedStream(f"{kind.name.lower()} is not a scalar operand")

    def _read_blob(self) -> bytes:
        cursor = self.cursor
        length = cursor.read_vbr(BLOB_LENGTH_WIDTH)
        cursor.align32()
        if length * 8 > cursor.remaining_bits():
            raise UnexpectedEof(f"blob of {length} byte(s) runs past the end of the stream")
        data = cursor.read_bytes(length)
        cursor.align32()
        return data


def iter_events(data: BufferLike, options: Optional[DecoderOptions] = None) -> Iterator[Event]:
    """Shorthand for ``Decoder(data, options).events()``.

    The wrapper and magic are checked immediately; everything else is
    decoded as the returned iterator is consumed.
    """

    return Decoder(data, options).events()
