"""Helpers to turn decoded structures into JSON-serialisable mappings."""

from __future__ import annotations

from typing import Any, Dict, Sequence, Union

from .abbrev import AbbrevOp, OpKind
from .events import AbbreviationDefined, EnterBlock, Event, ExitBlock, Record, SkippedBlock
from .tree import BitstreamTree, Block
from .wrapper import StreamHeader


def serialize_tree(tree: BitstreamTree) -> Dict[str, Any]:
    """Convert a :class:`BitstreamTree` into a mapping."""

    return {
        "header": serialize_header(tree.header),
        "elements": [serialize_element(element) for element in tree.elements],
        "block_info": tree.block_info.describe(),
    }


def serialize_header(header: StreamHeader) -> Dict[str, Any]:
    return {
        "wrapped": header.wrapped,
        "magic": header.magic.hex(),
        "offset": header.stream_offset,
        "size": header.stream_size,
        "version": header.version,
        "cpu_type": header.cpu_type,
    }


def serialize_element(element: Union[Block, Record]) -> Dict[str, Any]:
    if isinstance(element, Block):
        return serialize_block(element)
    return serialize_record(element)


def serialize_block(block: Block) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "kind": "block",
        "id": block.block_id,
        "abbrev_width": block.abbrev_width,
        "length_words": block.length_words,
        "elements": [serialize_element(element) for element in block.elements],
    }
    if block.skipped:
        payload["skipped"] = True
    return payload


def serialize_record(record: Record) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "kind": "record",
        "code": record.code,
        "operands": list(record.operands),
        "abbrev_id": record.abbrev_id,
    }
    if record.blob is not None:
        payload["blob"] = record.blob.hex()
    return payload


def serialize_ops(ops: Sequence[AbbrevOp]) -> list:
    rendered = []
    for op in ops:
        entry: Dict[str, Any] = {"kind": op.kind.name.lower()}
        if op.kind is OpKind.LITERAL:
            entry["value"] = op.value
        elif op.kind in (OpKind.FIXED, OpKind.VBR):
            entry["width"] = op.value
        rendered.append(entry)
    return rendered


def serialize_event(event: Event) -> Dict[str, Any]:
    """Serialise a single decoder event with an explicit ``event`` tag."""

    if isinstance(event, EnterBlock):
        return {
            "event": "enter_block",
            "block_id": event.block_id,
            "abbrev_width": event.abbrev_width,
            "length_words": event.length_words,
        }
    if isinstance(event, ExitBlock):
        return {"event": "exit_block", "block_id": event.block_id}
    if isinstance(event, SkippedBlock):
        return {
            "event": "skipped_block",
            "block_id": event.block_id,
            "abbrev_width": event.abbrev_width,
            "length_words": event.length_words,
        }
    if isinstance(event, AbbreviationDefined):
        return {
            "event": "define_abbrev",
            "block_id": event.scope_block_id,
            "index": event.index,
            "global": event.global_,
            "ops": serialize_ops(event.ops),
        }
    if isinstance(event, Record):
        payload = serialize_record(event)
        payload.pop("kind")
        return {"event": "record", **payload}
    raise TypeError(f"unsupported event type: {type(event)!r}")


__all__ = [
    "serialize_block",
    "serialize_element",
    "serialize_event",
    "serialize_header",
    "serialize_ops",
    "serialize_record",
    "serialize_tree",
]
