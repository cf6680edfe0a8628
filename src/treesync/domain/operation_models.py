from __future__ import annotations

"""
Operation Result Models.

Immutable DTOs returned by structural operations so that hosts can
forward the exact committed change to their persistence layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class MoveKind(str, Enum):
    MOVED = "moved"
    REORDERED = "reordered"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class MoveOutcome:
    """
    Result of a move, reorder or internal drop.

    Attributes:
        kind: Whether items changed parent, only changed order, or nothing.
        parent_id: Folder that now contains the items.
        ids: Items that were actually relocated (top-most of the batch).
        children: Resulting child order of the destination folder.
    """
    kind: MoveKind
    parent_id: str
    ids: Tuple[str, ...] = ()
    children: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.kind is not MoveKind.UNCHANGED


@dataclass(frozen=True)
class ForeignDropResult:
    """
    Result of accepting a drag that originated outside this tree.

    Attributes:
        parent_id: Folder that received the new nodes.
        inserted_ids: Ids of all nodes created by the drop.
        routed_to_ingestor: True when an OS file list was handed to the
            external ingestion collaborator.
        folder_structure: Relative folder paths mapped to the file names
            they contain, as computed for OS drops.
    """
    parent_id: str
    inserted_ids: Tuple[str, ...] = ()
    routed_to_ingestor: bool = False
    folder_structure: dict = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.inserted_ids)


@dataclass(frozen=True)
class IntegrityReport:
    """Outcome of an invariant check over a store."""
    problems: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


# Internal drops report exactly what the underlying move committed
DropResult = MoveOutcome
