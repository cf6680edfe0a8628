from __future__ import annotations

"""
Foreign Drop Helpers.

Everything a tree needs to accept data it did not produce itself: the
ingestion collaborator contract for operating-system file drops, grouping
of dropped directory contents by folder, and the single-node fallback for
bare text drops.
"""

import logging
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from treesync.core.tree.naming import sanitize_name
from treesync.domain import constants as const
from treesync.domain.drag_models import DataTransfer, ExternalFile
from treesync.domain.tree_models import FileNode, FolderNode, Node, NodeType, derive_extension

logger = logging.getLogger(__name__)


class FileIngestor(Protocol):
    """
    External collaborator that uploads OS files and describes the result.

    Implementations receive the native handles, the receiving folder and
    the folder grouping of directory drops, and return the nodes to insert
    under that folder (a forest; parent ids inside the batch are kept).
    """

    def ingest(
            self,
            files: Sequence[ExternalFile],
            target_folder_id: str,
            folder_structure: Dict[str, List[ExternalFile]],
    ) -> Sequence[Node]:
        ...


def build_folder_structure(files: Sequence[ExternalFile]) -> Dict[str, List[ExternalFile]]:
    """
    Group files coming from dropped directories by their folder path.

    Loose files (no directory part in their relative path) are left out,
    so an empty mapping means a plain multi-file drop.

    Returns:
        Dict[str, List[ExternalFile]]: e.g. {'photos': [...], 'photos/2024': [...]}.
    """
    structure: Dict[str, List[ExternalFile]] = {}
    for item in files:
        folder = item.folder_path
        if folder:
            structure.setdefault(folder, []).append(item)
    return structure


def count_top_folders(structure: Dict[str, List[ExternalFile]]) -> int:
    return len({path.split("/")[0] for path in structure})


def node_from_text(
        data_transfer: DataTransfer,
        new_id: Callable[[NodeType], str],
        max_name_length: int = const.MAX_NAME_LENGTH,
) -> Node:
    """
    Build the single node created by a bare text drop.

    The text becomes the (sanitized) name. 'item-type' set to 'folder'
    creates a folder; 'file-size' and 'file-type' fill file fields.
    """
    name = sanitize_name(
        data_transfer.get_data(const.TEXT_DRAG_FORMAT),
        fallback=const.DEFAULT_FOREIGN_ITEM_NAME,
        max_length=max_name_length,
    )
    if data_transfer.get_data(const.ITEM_TYPE_FORMAT).strip().lower() == NodeType.FOLDER.value:
        return FolderNode(id=new_id(NodeType.FOLDER), name=name)

    node = FileNode(id=new_id(NodeType.FILE), name=name, extension=derive_extension(name))
    size = _parse_size(data_transfer.get_data(const.FILE_SIZE_FORMAT))
    if size is not None:
        node.file_size = size
    mime_type = data_transfer.get_data(const.FILE_TYPE_FORMAT).strip()
    if mime_type:
        node.mime_type = mime_type
    return node


def _parse_size(raw: str) -> Optional[int]:
    raw = raw.strip()
    if not raw:
        return None
    try:
        size = int(float(raw))
    except (ValueError, OverflowError):
        logger.warning(f"Ignoring unreadable file size {raw!r} in text drop")
        return None
    return size if size >= 0 else None
