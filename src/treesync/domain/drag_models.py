from __future__ import annotations

"""
Drag-and-Drop Domain Models.

Describes drag phases, drop targets and the opaque data carried by drags
that cross the boundary of a tree instance (another tree or the
operating system).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DRAGGING_OVER = "dragging_over"


class DropPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


@dataclass(frozen=True)
class DragTarget:
    """
    Pointer position relative to a node during a drag.

    Attributes:
        item_id: The node under the pointer.
        position: Whether the drop lands before, after or inside it.
    """
    item_id: str
    position: DropPosition = DropPosition.INSIDE


@dataclass(frozen=True)
class ExternalFile:
    """
    Handle to a native file offered by an OS-level drop.

    The engine never reads file bytes; it only forwards handles to the
    ingestion collaborator.

    Attributes:
        name: Base name of the file.
        relative_path: Path inside a dropped directory ('' for loose files).
        size: Size in bytes as reported by the OS.
        mime_type: Content type as reported by the OS.
        handle: Opaque host object (browser File, pathlib.Path...).
    """
    name: str
    relative_path: str = ""
    size: int = 0
    mime_type: str = ""
    handle: object = None

    @property
    def folder_path(self) -> str:
        """Directory portion of the relative path, '' for loose files."""
        path = self.relative_path.strip("/")
        if "/" not in path:
            return ""
        return path.rsplit("/", 1)[0]


@dataclass
class DataTransfer:
    """
    Data attached to an incoming drop.

    Attributes:
        items: Format identifier mapped to serialized data.
        files: Native file handles for OS drops.
    """
    items: Dict[str, str] = field(default_factory=dict)
    files: List[ExternalFile] = field(default_factory=list)

    def get_data(self, fmt: str) -> str:
        return self.items.get(fmt, "")

    @property
    def has_files(self) -> bool:
        return bool(self.files)


@dataclass(frozen=True)
class ForeignDragObject:
    """
    Serialized form of a drag leaving a tree instance.

    Attributes:
        format: MIME type of 'data'.
        data: JSON array of full node objects (dragged subtrees included).
        source_tree_id: Tree the drag started from.
        drag_id: Token that makes source-side cleanup idempotent.
        ids: Top-level dragged ids.
    """
    format: str
    data: str
    source_tree_id: Optional[str]
    drag_id: str
    ids: Tuple[str, ...] = ()

    def to_data_transfer(self) -> DataTransfer:
        return DataTransfer(items={self.format: self.data})
