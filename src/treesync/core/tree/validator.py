from __future__ import annotations

"""
Tree Invariant Validator.

Walks a node mapping and reports every structural invariant it breaks:
parent/children symmetry, acyclicity, reachability from the root, folder
path/depth derivation and the file-has-no-children rule. Used on store
(re)initialization and by the CLI 'validate' command.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Mapping, Set

from treesync.core.tree.hierarchy import child_location
from treesync.domain import constants as const
from treesync.domain.operation_models import IntegrityReport
from treesync.domain.tree_models import FolderNode, Node

logger = logging.getLogger(__name__)


def check_integrity(nodes: Mapping[str, Node], root_id: str) -> IntegrityReport:
    """
    Check all structural invariants of a tree.

    Args:
        nodes: Id-keyed node mapping.
        root_id: Id of the designated root folder.

    Returns:
        IntegrityReport: Human-readable problems, empty when consistent.
    """
    problems: List[str] = []

    root = nodes.get(root_id)
    if root is None:
        return IntegrityReport([f"root '{root_id}' is missing"])
    if not isinstance(root, FolderNode):
        return IntegrityReport([f"root '{root_id}' is not a folder"])
    if root.parent_id is not None:
        problems.append(f"root '{root_id}' has parent '{root.parent_id}'")

    # 1. Identity and parent links
    for key, node in nodes.items():
        if key != node.id:
            problems.append(f"node stored under '{key}' has id '{node.id}'")
        if getattr(node, "children", None) is not None and not isinstance(node, FolderNode):
            problems.append(f"file '{node.id}' has children")
        if node.id == root_id:
            continue
        if node.parent_id is None:
            problems.append(f"node '{node.id}' has no parent")
            continue
        parent = nodes.get(node.parent_id)
        if parent is None:
            problems.append(f"node '{node.id}' points to missing parent '{node.parent_id}'")
        elif not isinstance(parent, FolderNode):
            problems.append(f"node '{node.id}' has file '{node.parent_id}' as parent")
        else:
            count = parent.children.count(node.id)
            if count != 1:
                problems.append(
                    f"parent '{parent.id}' lists child '{node.id}' {count} times"
                )

    # 2. Children links
    for node in nodes.values():
        if not isinstance(node, FolderNode):
            continue
        for child_id in node.children:
            child = nodes.get(child_id)
            if child is None:
                problems.append(f"folder '{node.id}' lists missing child '{child_id}'")
            elif child.parent_id != node.id:
                problems.append(
                    f"folder '{node.id}' lists '{child_id}' whose parent is '{child.parent_id}'"
                )

    # 3. Reachability, cycles and derived locations
    reached = _check_from_root(nodes, root, problems)
    for node_id in nodes:
        if node_id not in reached:
            problems.append(f"node '{node_id}' is not reachable from the root")

    return IntegrityReport(problems)


def _check_from_root(nodes: Mapping[str, Node], root: FolderNode, problems: List[str]) -> Set[str]:
    """Breadth-first walk from the root verifying folder paths and depths."""
    if root.path != const.ROOT_PATH or root.depth != 0:
        problems.append(f"root '{root.id}' has path '{root.path}' and depth {root.depth}")

    reached: Set[str] = {root.id}
    queue: Deque[FolderNode] = deque([root])
    expected: Dict[str, tuple] = {}
    while queue:
        folder = queue.popleft()
        for child_id in folder.children:
            child = nodes.get(child_id)
            if child is None or child.parent_id != folder.id:
                continue
            if child_id in reached:
                problems.append(f"node '{child_id}' is reachable twice (cycle or shared child)")
                continue
            reached.add(child_id)
            if isinstance(child, FolderNode):
                expected[child_id] = child_location(folder, child.name)
                path, depth = expected[child_id]
                if child.path != path or child.depth != depth:
                    problems.append(
                        f"folder '{child_id}' has path '{child.path}'/depth {child.depth}, "
                        f"expected '{path}'/{depth}"
                    )
                queue.append(child)
    return reached
