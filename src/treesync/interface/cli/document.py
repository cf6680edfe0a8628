from __future__ import annotations

"""
CLI Tree Documents.

Reading and writing the JSON interchange document used by the command
line: {"treeId": ..., "rootId": ..., "nodes": [<wire node>, ...]}.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List

from treesync.core.tree.hierarchy import iter_descendants
from treesync.core.tree.store import TreeStore
from treesync.domain.errors import PayloadError
from treesync.domain.tree_models import Node, node_to_dict, nodes_from_dicts
from treesync.infra.fs import read_json, write_json_atomic

logger = logging.getLogger(__name__)

DEFAULT_TREE_ID = "document"


class DocumentError(Exception):
    """Raised when a tree document is missing or malformed."""


@dataclass
class TreeDocument:
    tree_id: str
    root_id: str
    nodes: Dict[str, Node]


def load_document(path: str) -> TreeDocument:
    """
    Read and decode a tree document.

    Raises:
        DocumentError: If the file is missing, unreadable or malformed.
    """
    if not os.path.isfile(path):
        raise DocumentError(f"file not found: {path}")
    try:
        raw = read_json(path)
    except (OSError, ValueError) as e:
        raise DocumentError(str(e)) from e

    if not isinstance(raw, dict):
        raise DocumentError("top level must be an object")
    root_id = raw.get("rootId")
    items = raw.get("nodes")
    if not isinstance(root_id, str) or not root_id:
        raise DocumentError("missing 'rootId'")
    if not isinstance(items, list):
        raise DocumentError("'nodes' must be an array")

    try:
        nodes = nodes_from_dicts(items)
    except PayloadError as e:
        raise DocumentError(e.reason) from e
    tree_id = raw.get("treeId")
    return TreeDocument(str(tree_id) if tree_id else DEFAULT_TREE_ID, root_id, nodes)


def document_to_dict(store: TreeStore) -> Dict[str, Any]:
    """Encode a store as a document, nodes in display order."""
    ordered: List[str] = [store.root_id] + list(iter_descendants(store.find_node, store.root_id))
    seen = set(ordered)
    strays = [i for i in store if i not in seen]
    return {
        "treeId": store.tree_id,
        "rootId": store.root_id,
        "nodes": [node_to_dict(store.get_node(i)) for i in ordered + strays],
    }


def save_document(path: str, store: TreeStore) -> None:
    """
    Write a store as a document atomically.

    Raises:
        OSError: If the file cannot be written.
    """
    write_json_atomic(path, document_to_dict(store))
    logger.debug(f"Tree document written to {path}")
