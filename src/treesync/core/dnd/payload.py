from __future__ import annotations

"""
Cross-Tree Drag Payloads.

Encodes dragged subtrees as a JSON array of full node objects and decodes
incoming arrays back into nodes, remapping every id so that the receiving
tree never sees an id it already uses or has retired.
"""

import json
import logging
from typing import Callable, Dict, Iterable, List

from treesync.core.tree.hierarchy import descendant_ids, top_level_ids
from treesync.core.tree.store import TreeStore
from treesync.domain.errors import PayloadError
from treesync.domain.tree_models import FolderNode, Node, NodeType, clone_node, node_to_dict, nodes_from_dicts

logger = logging.getLogger(__name__)

IdFactory = Callable[[NodeType], str]


def serialize_subtrees(store: TreeStore, ids: Iterable[str]) -> str:
    """
    Encode dragged items and everything below them.

    Args:
        store: Source store.
        ids: Dragged items; nested ones are folded into their ancestors.

    Returns:
        str: JSON array of node objects, each top-level item followed by
        its descendants in display order.

    Raises:
        NodeNotFoundError: If an id is unknown.
    """
    batch = list(dict.fromkeys(ids))
    for node_id in batch:
        store.get_node(node_id)

    payload: List[dict] = []
    for top in top_level_ids(store.find_node, batch):
        for node_id in [top] + descendant_ids(store.find_node, top):
            payload.append(node_to_dict(store.get_node(node_id)))
    return json.dumps(payload, ensure_ascii=False)


def deserialize_payload(data: str) -> List[Node]:
    """
    Decode a JSON drag payload.

    Raises:
        PayloadError: If the text is not a JSON array of node objects.
    """
    try:
        raw = json.loads(data)
    except (TypeError, ValueError) as e:
        raise PayloadError(f"invalid JSON ({e})") from e
    if not isinstance(raw, list):
        raise PayloadError(f"expected a JSON array, got {type(raw).__name__}")
    if not raw:
        raise PayloadError("no nodes in payload")
    return list(nodes_from_dicts(raw).values())


def remap_ids(nodes: Iterable[Node], new_id: IdFactory) -> List[Node]:
    """
    Give every node a fresh id while keeping the batch's internal links.

    Parent references that point outside the batch are cleared, which
    marks those nodes as the forest roots.
    """
    originals = list(nodes)
    id_map: Dict[str, str] = {n.id: new_id(n.node_type) for n in originals}

    remapped: List[Node] = []
    for node in originals:
        twin = clone_node(node)
        twin.id = id_map[node.id]
        twin.parent_id = id_map.get(node.parent_id) if node.parent_id else None
        if isinstance(twin, FolderNode) and twin.children is not None:
            twin.children = [id_map[c] for c in twin.children if c in id_map]
        remapped.append(twin)
    logger.debug(f"Remapped {len(id_map)} payload ids")
    return remapped
