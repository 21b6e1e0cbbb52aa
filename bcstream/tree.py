"""Materialise the event sequence into a tree of blocks and records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Union

from .blockinfo import BlockInfoTable
from .config import DecoderOptions
from .cursor import BufferLike
from .decoder import Decoder
from .events import AbbreviationDefined, EnterBlock, Event, ExitBlock, Record, SkippedBlock
from .wrapper import StreamHeader


@dataclass
class Block:
    """A decoded block and everything nested directly inside it."""

    block_id: int
    abbrev_width: int
    length_words: int
    elements: List[Union["Block", Record]] = field(default_factory=list)
    abbreviations: List[AbbreviationDefined] = field(default_factory=list)
    skipped: bool = False

    def blocks(self, block_id: Optional[int] = None) -> Iterator["Block"]:
        for element in self.elements:
            if isinstance(element, Block) and (block_id is None or element.block_id == block_id):
                yield element

    def records(self, code: Optional[int] = None) -> Iterator[Record]:
        for element in self.elements:
            if isinstance(element, Record) and (code is None or element.code == code):
                yield element

    def find_block(self, block_id: int) -> Optional["Block"]:
        return next(self.blocks(block_id), None)

    def find_record(self, code: int) -> Optional[Record]:
        return next(self.records(code), None)

    def walk(self) -> Iterator["Block"]:
        """Yield this block and every nested block, depth first."""

        stack = [self]
        while stack:
            block = stack.pop()
            yield block
            stack.extend(reversed(list(block.blocks())))


@dataclass
class BitstreamTree:
    """Whole-stream view: header, top-level elements and BLOCKINFO data."""

    header: StreamHeader
    elements: List[Union[Block, Record]]
    block_info: BlockInfoTable

    def blocks(self, block_id: Optional[int] = None) -> Iterator[Block]:
        for element in self.elements:
            if isinstance(element, Block) and (block_id is None or element.block_id == block_id):
                yield element

    def find_block(self, block_id: int) -> Optional[Block]:
        return next(self.blocks(block_id), None)


def build_elements(events: Iterable[Event]) -> List[Union[Block, Record]]:
    """Fold a well-formed event sequence into top-level elements."""

    top: List[Union[Block, Record]] = []
    stack: List[Block] = []

    def container() -> List[Union[Block, Record]]:
        return stack[-1].elements if stack else top

    for event in events:
        if isinstance(event, EnterBlock):
            block = Block(event.block_id, event.abbrev_width, event.length_words)
            container().append(block)
            stack.append(block)
        elif isinstance(event, ExitBlock):
            if not stack or stack[-1].block_id != event.block_id:
                raise ValueError(f"unbalanced exit from block {event.block_id}")
            stack.pop()
        elif isinstance(event, SkippedBlock):
            container().append(
                Block(event.block_id, event.abbrev_width, event.length_words, skipped=True)
            )
        elif isinstance(event, AbbreviationDefined):
            if stack:
                stack[-1].abbreviations.append(event)
        else:
            container().append(event)

    if stack:
        raise ValueError(f"event sequence ended inside block {stack[-1].block_id}")
    return top


def read_tree(data: BufferLike, options: Optional[DecoderOptions] = None) -> BitstreamTree:
    """Decode ``data`` completely and return it as a :class:`BitstreamTree`."""

    decoder = Decoder(data, options)
    elements = build_elements(decoder.events())
    return BitstreamTree(decoder.header, elements, decoder.block_info)
