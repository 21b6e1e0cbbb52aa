"""Block scopes and the explicit stack the decoder walks with."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .abbrev import Abbreviation
from .constants import (
    BLOCKINFO_BLOCK_ID,
    FIRST_APPLICATION_ABBREV,
    TOP_LEVEL_ABBREV_WIDTH,
    TOP_LEVEL_BLOCK_ID,
)
from .errors import MalformedStream


@dataclass
class Scope:
    """State of one open block.

    ``inherited`` is the BLOCKINFO snapshot taken on entry; ``local`` grows
    as DEFINE_ABBREV entries are read inside the block.  ``end_bit`` is the
    region-relative position where the block must finish, or ``None`` for
    the top level.
    """

    block_id: int
    abbrev_width: int
    inherited: Tuple[Abbreviation, ...] = ()
    local: List[Abbreviation] = field(default_factory=list)
    end_bit: Optional[int] = None

    @property
    def is_top_level(self) -> bool:
        return self.block_id == TOP_LEVEL_BLOCK_ID

    @property
    def is_blockinfo(self) -> bool:
        return self.block_id == BLOCKINFO_BLOCK_ID

    @property
    def abbrev_count(self) -> int:
        return len(self.inherited) + len(self.local)

    def define(self, abbrev: Abbreviation) -> int:
        """Append a local abbreviation and return its effective index."""

        self.local.append(abbrev)
        return self.abbrev_count - 1

    def lookup(self, abbrev_id: int) -> Optional[Abbreviation]:
        index = abbrev_id - FIRST_APPLICATION_ABBREV
        if index < 0:
            return None
        if index < len(self.inherited):
            return self.inherited[index]
        index -= len(self.inherited)
        if index < len(self.local):
            return self.local[index]
        return None


class ScopeStack:
    """Heap-allocated stack of :class:`Scope` objects.

    The bottom entry is the synthetic top-level scope and is never popped.
    """

    def __init__(self) -> None:
        self._scopes: List[Scope] = [Scope(TOP_LEVEL_BLOCK_ID, TOP_LEVEL_ABBREV_WIDTH)]

    def __len__(self) -> int:
        return len(self._scopes)

    def __iter__(self) -> Iterator[Scope]:
        return iter(self._scopes)

    @property
    def current(self) -> Scope:
        return self._scopes[-1]

    @property
    def depth(self) -> int:
        """Number of open blocks, not counting the top level."""

        return len(self._scopes) - 1

    def push(self, scope: Scope) -> None:
        self._scopes.append(scope)

    def pop(self) -> Scope:
        if len(self._scopes) == 1:
            raise MalformedStream("END_BLOCK without a matching ENTER_SUBBLOCK")
        return self._scopes.pop()

    def path(self) -> Tuple[int, ...]:
        """Block ids of every open block, outermost first."""

        return tuple(scope.block_id for scope in self._scopes[1:])
