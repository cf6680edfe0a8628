from __future__ import annotations

"""
Tree Node Data Models.

Provides the entity definitions (files and folders) stored by a tree
instance, together with the camelCase wire representation shared by
cross-tree drag payloads and the CLI document format.
"""

import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from treesync.domain import constants as const
from treesync.domain.errors import PayloadError

# -----------------------------------------------------------------------------
# VARIANTS
# -----------------------------------------------------------------------------

class NodeType(str, Enum):
    FOLDER = "folder"
    FILE = "file"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

# -----------------------------------------------------------------------------
# STRUCTURAL COMPONENTS
# -----------------------------------------------------------------------------

@dataclass
class FolderNode:
    """
    Represents a folder in a tree instance.

    Attributes:
        id: Identifier, unique within the tree instance.
        name: Display name.
        parent_id: Id of the containing folder; None only for the root.
        children: Ordered child ids (display order).
        path: Slash-delimited names from the root (root is '/').
        depth: Number of ancestors (root is 0).
        metadata: Opaque host record carried along with the node.
    """
    id: str
    name: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    path: str = const.ROOT_PATH
    depth: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def node_type(self) -> NodeType:
        return NodeType.FOLDER


@dataclass
class FileNode:
    """
    Represents a file (leaf) in a tree instance.

    Attributes:
        id: Identifier, unique within the tree instance.
        name: Display name, including the extension.
        parent_id: Id of the containing folder.
        mime_type: Declared content type.
        file_size: Size in bytes.
        extension: Suffix derived from the name, None when absent.
        processing_status: Server-side processing state.
        metadata: Opaque host record carried along with the node.
    """
    id: str
    name: str
    parent_id: Optional[str] = None
    mime_type: str = const.DEFAULT_MIME_TYPE
    file_size: int = 0
    extension: Optional[str] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def node_type(self) -> NodeType:
        return NodeType.FILE


Node = Union[FolderNode, FileNode]

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def is_folder(node: Optional[Node]) -> bool:
    return isinstance(node, FolderNode)


def is_file(node: Optional[Node]) -> bool:
    return isinstance(node, FileNode)


def derive_extension(name: str) -> Optional[str]:
    """
    Extract the extension of a file name.

    'report.PDF' gives 'PDF', while 'Makefile' and '.env' have none.
    """
    stem, dot, suffix = name.rpartition(".")
    if not dot or not stem or not suffix:
        return None
    return suffix


def clone_node(node: Node) -> Node:
    """Copy a node so that its children list and metadata are not shared."""
    twin = copy.copy(node)
    twin.metadata = copy.deepcopy(node.metadata)
    if isinstance(twin, FolderNode):
        twin.children = list(node.children) if node.children is not None else None  # type: ignore[assignment]
    return twin

# -----------------------------------------------------------------------------
# WIRE REPRESENTATION
# -----------------------------------------------------------------------------

def node_to_dict(node: Node) -> Dict[str, Any]:
    """
    Serialize a node into its JSON-compatible wire form.

    Args:
        node: The node to serialize.

    Returns:
        Dict[str, Any]: camelCase dictionary holding every node field.
    """
    data: Dict[str, Any] = {
        "id": node.id,
        "name": node.name,
        "type": node.node_type.value,
        "parentId": node.parent_id,
    }
    if isinstance(node, FolderNode):
        data["children"] = list(node.children)
        data["path"] = node.path
        data["depth"] = node.depth
    else:
        data["mimeType"] = node.mime_type
        data["fileSize"] = node.file_size
        data["extension"] = node.extension
        data["processingStatus"] = node.processing_status.value
    data["metadata"] = copy.deepcopy(node.metadata)
    return data


def node_from_dict(data: Mapping[str, Any]) -> Node:
    """
    Reconstruct a node from its wire form.

    Unknown keys are ignored. A dictionary without 'type' is read as a
    folder when it carries a 'children' list.

    Args:
        data: Decoded JSON object.

    Returns:
        Node: The reconstructed folder or file.

    Raises:
        PayloadError: If required keys are missing or malformed.
    """
    if not isinstance(data, Mapping):
        raise PayloadError(f"expected an object, got {type(data).__name__}")

    node_id = data.get("id")
    name = data.get("name")
    if not isinstance(node_id, str) or not node_id:
        raise PayloadError("node without a string 'id'")
    if not isinstance(name, str):
        raise PayloadError(f"node '{node_id}' without a string 'name'")

    raw_type = data.get("type")
    if raw_type is None and isinstance(data.get("children"), list):
        raw_type = NodeType.FOLDER.value
    try:
        node_type = NodeType(raw_type)
    except ValueError:
        raise PayloadError(f"node '{node_id}' has unknown type {raw_type!r}") from None

    parent_id = data.get("parentId")
    if parent_id is not None and not isinstance(parent_id, str):
        raise PayloadError(f"node '{node_id}' has a non-string 'parentId'")

    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise PayloadError(f"node '{node_id}' has non-object 'metadata'")

    if node_type is NodeType.FOLDER:
        children = data.get("children")
        if children is not None and (
                not isinstance(children, list) or not all(isinstance(c, str) for c in children)
        ):
            raise PayloadError(f"folder '{node_id}' has malformed 'children'")
        depth = data.get("depth", 0)
        return FolderNode(
            id=node_id,
            name=name,
            parent_id=parent_id,
            # None marks children that must be derived from parent links
            children=list(children) if children is not None else None,  # type: ignore[arg-type]
            path=str(data.get("path") or const.ROOT_PATH),
            depth=depth if isinstance(depth, int) else 0,
            metadata=dict(metadata),
        )

    file_size = data.get("fileSize", 0)
    # JSON decodes 1e400 to inf and NaN to nan; only whole finite numbers pass
    if isinstance(file_size, float) and math.isfinite(file_size) and file_size.is_integer():
        file_size = int(file_size)
    if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size < 0:
        raise PayloadError(f"file '{node_id}' has invalid 'fileSize' {file_size!r}")

    raw_status = data.get("processingStatus") or ProcessingStatus.PENDING.value
    try:
        status = ProcessingStatus(raw_status)
    except ValueError:
        raise PayloadError(f"file '{node_id}' has unknown status {raw_status!r}") from None

    extension = data["extension"] if "extension" in data else derive_extension(name)
    return FileNode(
        id=node_id,
        name=name,
        parent_id=parent_id,
        mime_type=str(data.get("mimeType") or const.DEFAULT_MIME_TYPE),
        file_size=file_size,
        extension=extension,
        processing_status=status,
        metadata=dict(metadata),
    )


def nodes_from_dicts(items: Iterable[Mapping[str, Any]]) -> Dict[str, Node]:
    """
    Decode a sequence of wire dictionaries into an id-keyed mapping.

    Raises:
        PayloadError: On malformed entries or repeated ids.
    """
    mapping: Dict[str, Node] = {}
    for item in items:
        node = node_from_dict(item)
        if node.id in mapping:
            raise PayloadError(f"id '{node.id}' appears more than once")
        mapping[node.id] = node
    return mapping
