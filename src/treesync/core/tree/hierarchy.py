from __future__ import annotations

"""
Hierarchy Traversal Helpers.

Pure functions over a node lookup (any callable mapping an id to a node
or None): ancestor chains, descendant walks and derivation of folder
paths/depths. Shared by the store, the mutation transactions, the search
index and the drag-and-drop protocol.
"""

from typing import Callable, Iterator, List, Optional, Set, Tuple

from treesync.domain import constants as const
from treesync.domain.tree_models import FolderNode, Node

NodeLookup = Callable[[str], Optional[Node]]

# -----------------------------------------------------------------------------
# ANCESTORS
# -----------------------------------------------------------------------------

def iter_ancestors(lookup: NodeLookup, node_id: str) -> Iterator[str]:
    """
    Yield the ids of a node's ancestors, nearest first.

    Stops at the root, at a dangling parent reference, or when a cycle is
    detected in corrupted data.
    """
    node = lookup(node_id)
    seen: Set[str] = {node_id}
    while node is not None and node.parent_id is not None:
        parent_id = node.parent_id
        if parent_id in seen:
            return
        seen.add(parent_id)
        yield parent_id
        node = lookup(parent_id)


def ancestor_ids(lookup: NodeLookup, node_id: str) -> List[str]:
    return list(iter_ancestors(lookup, node_id))


def is_ancestor(lookup: NodeLookup, ancestor_id: str, node_id: str) -> bool:
    """Check whether ancestor_id is a strict ancestor of node_id."""
    return any(a == ancestor_id for a in iter_ancestors(lookup, node_id))


def is_self_or_descendant(lookup: NodeLookup, node_id: str, of_id: str) -> bool:
    """Check whether node_id is of_id itself or lies anywhere below it."""
    return node_id == of_id or is_ancestor(lookup, of_id, node_id)

# -----------------------------------------------------------------------------
# DESCENDANTS
# -----------------------------------------------------------------------------

def iter_descendants(lookup: NodeLookup, folder_id: str) -> Iterator[str]:
    """Yield descendant ids in pre-order (display order), excluding the folder."""
    root = lookup(folder_id)
    if not isinstance(root, FolderNode):
        return
    stack: List[str] = list(reversed(root.children))
    seen: Set[str] = {folder_id}
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        yield current
        node = lookup(current)
        if isinstance(node, FolderNode):
            stack.extend(reversed(node.children))


def descendant_ids(lookup: NodeLookup, folder_id: str) -> List[str]:
    return list(iter_descendants(lookup, folder_id))


def top_level_ids(lookup: NodeLookup, ids: List[str]) -> List[str]:
    """
    Drop ids whose ancestor is also part of the batch, keeping order.

    Moving or removing a folder already carries its descendants along.
    """
    batch = set(ids)
    out: List[str] = []
    for node_id in ids:
        if node_id in out:
            continue
        if any(a in batch for a in iter_ancestors(lookup, node_id)):
            continue
        out.append(node_id)
    return out

# -----------------------------------------------------------------------------
# DERIVED LOCATION
# -----------------------------------------------------------------------------

def child_location(parent: FolderNode, name: str) -> Tuple[str, int]:
    """
    Compute (path, depth) of a folder named `name` placed in `parent`.

    The root's own name never appears in paths.
    """
    if parent.path in ("", const.ROOT_PATH):
        path = f"{const.PATH_SEPARATOR}{name}"
    else:
        path = f"{parent.path}{const.PATH_SEPARATOR}{name}"
    return path, parent.depth + 1


def resolved_path(lookup: NodeLookup, node_id: str) -> Optional[str]:
    """
    Full display path of any node, files included.

    A file 'a.txt' inside folder '/Documents' resolves to
    '/Documents/a.txt'; the root resolves to '/'.
    """
    node = lookup(node_id)
    if node is None:
        return None
    if isinstance(node, FolderNode):
        return node.path
    parent = lookup(node.parent_id) if node.parent_id else None
    if not isinstance(parent, FolderNode):
        return f"{const.PATH_SEPARATOR}{node.name}"
    return child_location(parent, node.name)[0]
