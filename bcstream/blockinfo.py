"""Global abbreviation table populated from the BLOCKINFO block."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .abbrev import Abbreviation
from .constants import (
    BLOCKINFO_CODE_BLOCKNAME,
    BLOCKINFO_CODE_SETBID,
    BLOCKINFO_CODE_SETRECORDNAME,
)
from .errors import MalformedStream

logger = logging.getLogger(__name__)


@dataclass
class BlockNames:
    """Optional naming metadata declared for a block id."""

    name: Optional[str] = None
    record_names: Dict[int, str] = field(default_factory=dict)


def _decode_name(values: Sequence[int]) -> Optional[str]:
    """Decode a BLOCKINFO name; names that are not valid UTF-8 are dropped."""

    if any(value > 0xFF for value in values):
        raise MalformedStream("BLOCKINFO name operands do not fit in bytes")
    try:
        return bytes(values).decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("ignoring BLOCKINFO name that is not valid UTF-8")
        return None


class BlockInfoTable:
    """Map block ids to the abbreviations BLOCKINFO declared for them.

    The lists are append-only.  Scopes take a snapshot with :meth:`snapshot`
    when they are entered, so later definitions only affect blocks entered
    afterwards.
    """

    def __init__(self) -> None:
        self._abbrevs: Dict[int, List[Abbreviation]] = {}
        self._names: Dict[int, BlockNames] = {}
        self.current_block_id: Optional[int] = None

    # ------------------------------------------------------------------
    # Abbreviations
    # ------------------------------------------------------------------
    def snapshot(self, block_id: int) -> Tuple[Abbreviation, ...]:
        return tuple(self._abbrevs.get(block_id, ()))

    def abbreviations(self, block_id: int) -> Sequence[Abbreviation]:
        return tuple(self._abbrevs.get(block_id, ()))

    def append(self, abbrev: Abbreviation) -> Tuple[int, int]:
        """Attach ``abbrev`` to the block selected by the last SETBID.

        Returns ``(block_id, index)`` where ``index`` is the position of the
        abbreviation in that block's list.
        """

        if self.current_block_id is None:
            raise MalformedStream("DEFINE_ABBREV in BLOCKINFO before any SETBID record")
        entries = self._abbrevs.setdefault(self.current_block_id, [])
        entries.append(abbrev)
        return self.current_block_id, len(entries) - 1

    def block_ids(self) -> Iterator[int]:
        return iter(sorted(set(self._abbrevs) | set(self._names)))

    # ------------------------------------------------------------------
    # BLOCKINFO records
    # ------------------------------------------------------------------
    def begin_block(self) -> None:
        """Reset the SETBID target at the start of a BLOCKINFO block."""

        self.current_block_id = None

    def apply_record(self, code: int, operands: Sequence[int]) -> None:
        if code == BLOCKINFO_CODE_SETBID:
            if len(operands) != 1:
                raise MalformedStream(f"SETBID expects one operand, got {len(operands)}")
            self.current_block_id = operands[0]
            logger.debug("BLOCKINFO now describes block %d", operands[0])
            return

        if code == BLOCKINFO_CODE_BLOCKNAME:
            names = self._names_for_current()
            name = _decode_name(operands)
            if name is not None:
                names.name = name
        elif code == BLOCKINFO_CODE_SETRECORDNAME:
            if not operands:
                raise MalformedStream("SETRECORDNAME requires a record code")
            names = self._names_for_current()
            name = _decode_name(operands[1:])
            if name is not None:
                names.record_names[operands[0]] = name
        else:
            logger.debug("ignoring unknown BLOCKINFO record code %d", code)

    def _names_for_current(self) -> BlockNames:
        if self.current_block_id is None:
            raise MalformedStream("BLOCKINFO naming record before any SETBID record")
        return self._names.setdefault(self.current_block_id, BlockNames())

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------
    def block_name(self, block_id: int) -> Optional[str]:
        names = self._names.get(block_id)
        return names.name if names else None

    def record_name(self, block_id: int, code: int) -> Optional[str]:
        names = self._names.get(block_id)
        return names.record_names.get(code) if names else None

    @property
    def names(self) -> Mapping[int, BlockNames]:
        return dict(self._names)

    def describe(self) -> List[dict]:
        return [
            {
                "block_id": block_id,
                "name": self.block_name(block_id),
                "abbreviations": [abbrev.describe() for abbrev in self._abbrevs.get(block_id, ())],
                "record_names": dict(self._names[block_id].record_names) if block_id in self._names else {},
            }
            for block_id in self.block_ids()
        ]
