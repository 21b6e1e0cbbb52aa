"""Decoder options and their JSON representation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping


@dataclass(frozen=True)
class DecoderOptions:
    """Knobs accepted by :class:`~bcstream.decoder.Decoder`.

    ``strict`` rejects non-zero alignment padding and streams whose length
    is not a whole number of 32-bit words; lenient decoding logs a warning
    instead.  ``emit_abbreviations`` controls whether
    :class:`~bcstream.events.AbbreviationDefined` events are produced.
    Blocks whose id appears in ``skip_block_ids`` are jumped over using
    their declared length.
    """

    strict: bool = True
    emit_abbreviations: bool = True
    skip_block_ids: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.skip_block_ids, frozenset):
            object.__setattr__(self, "skip_block_ids", _coerce_block_ids(self.skip_block_ids))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "DecoderOptions":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"unknown decoder option(s): {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        for name in ("strict", "emit_abbreviations"):
            if name in payload:
                value = payload[name]
                if not isinstance(value, bool):
                    raise ValueError(f"decoder option '{name}' must be a boolean")
                kwargs[name] = value
        if "skip_block_ids" in payload:
            kwargs["skip_block_ids"] = _coerce_block_ids(payload["skip_block_ids"])
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path) -> "DecoderOptions":
        payload = json.loads(Path(path).read_text("utf-8"))
        if not isinstance(payload, Mapping):
            raise ValueError("decoder options file must contain a JSON object")
        return cls.from_mapping(payload)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "strict": self.strict,
            "emit_abbreviations": self.emit_abbreviations,
            "skip_block_ids": sorted(self.skip_block_ids),
        }


def _coerce_block_ids(values: Iterable[Any]) -> FrozenSet[int]:
    if isinstance(values, (str, bytes)):
        raise ValueError("skip_block_ids must be a list of integers")
    block_ids = set()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"invalid block id in skip_block_ids: {value!r}")
        block_ids.add(value)
    return frozenset(block_ids)
