"""Public package exports for the LLVM bitstream container decoder."""

from .abbrev import AbbrevOp, Abbreviation, OpKind
from .blockinfo import BlockInfoTable
from .config import DecoderOptions
from .cursor import BitCursor
from .decoder import Decoder, iter_events
from .errors import (
    BitstreamError,
    BlockLengthMismatch,
    InvalidMagic,
    MalformedAbbrevDefinition,
    MalformedStream,
    Overflow,
    UnalignedTrailingPadding,
    UnexpectedEof,
    UnknownAbbreviationId,
)
from .events import AbbreviationDefined, EnterBlock, ExitBlock, Record, SkippedBlock
from .scope import Scope, ScopeStack
from .serialize import serialize_event, serialize_tree
from .tree import BitstreamTree, Block, read_tree
from .wrapper import StreamHeader, locate_stream

__all__ = [
    "AbbrevOp",
    "Abbreviation",
    "AbbreviationDefined",
    "BitCursor",
    "BitstreamError",
    "BitstreamTree",
    "Block",
    "BlockInfoTable",
    "BlockLengthMismatch",
    "Decoder",
    "DecoderOptions",
    "EnterBlock",
    "ExitBlock",
    "InvalidMagic",
    "MalformedAbbrevDefinition",
    "MalformedStream",
    "OpKind",
    "Overflow",
    "Record",
    "Scope",
    "ScopeStack",
    "SkippedBlock",
    "StreamHeader",
    "UnalignedTrailingPadding",
    "UnexpectedEof",
    "UnknownAbbreviationId",
    "iter_events",
    "locate_stream",
    "read_tree",
    "serialize_event",
    "serialize_tree",
]
