from __future__ import annotations

"""
Tree Store.

Authoritative id-keyed node storage for one tree instance. Reads go
through the accessors; the only write path is commit(), used by the
mutation transactions, which applies a batch of upserts/deletions, retires
deleted ids, bumps the version and notifies subscribers once.
"""

import logging
from collections import deque
import types
from typing import Callable, Deque, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Union

from treesync.core.tree.hierarchy import child_location
from treesync.core.tree.ids import is_transient_id
from treesync.core.tree.validator import check_integrity
from treesync.domain import constants as const
from treesync.domain.errors import NodeNotFoundError, TreeIntegrityError
from treesync.domain.operation_models import IntegrityReport
from treesync.domain.tree_models import FolderNode, Node, clone_node, nodes_from_dicts

logger = logging.getLogger(__name__)

StoreListener = Callable[["TreeStore"], None]
NodeSource = Union[Mapping[str, Node], Iterable[Node]]


class TreeStore:
    """
    Owns the nodes of a single tree instance.

    Args:
        tree_id: Opaque identifier of the tree instance.
        root_id: Id of the root folder.
        nodes: Initial nodes, as an id-keyed mapping or an iterable.
        strict: Raise TreeIntegrityError instead of logging problems.
    """

    def __init__(self, tree_id: str, root_id: str, nodes: NodeSource, *, strict: bool = False) -> None:
        self._tree_id = tree_id
        self._strict = strict
        self._root_id = root_id
        self._nodes: Dict[str, Node] = {}
        self._retired: Set[str] = set()
        self._version = 0
        self._listeners: List[StoreListener] = []
        self._last_report = IntegrityReport()

        self._nodes = self._load(root_id, nodes)

    @classmethod
    def from_dicts(
            cls,
            tree_id: str,
            root_id: str,
            items: Iterable[Mapping],
            *,
            strict: bool = False,
    ) -> "TreeStore":
        """Build a store from wire dictionaries (camelCase keys)."""
        return cls(tree_id, root_id, nodes_from_dicts(items), strict=strict)

    # -------------------------------------------------------------------------
    # READ ACCESS
    # -------------------------------------------------------------------------

    @property
    def tree_id(self) -> str:
        return self._tree_id

    @property
    def root_id(self) -> str:
        return self._root_id

    @property
    def version(self) -> int:
        return self._version

    @property
    def retired_ids(self) -> FrozenSet[str]:
        return frozenset(self._retired)

    @property
    def integrity_report(self) -> IntegrityReport:
        """Result of the invariant check run by the last (re)initialization."""
        return self._last_report

    def get_root(self) -> str:
        return self._root_id

    def get_node(self, node_id: str) -> Node:
        """
        Resolve an id to its node.

        Raises:
            NodeNotFoundError: If the id is unknown.
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def find_node(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def has(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_children(self, node_id: str) -> List[str]:
        """Ordered child ids of a node; empty for files."""
        node = self.get_node(node_id)
        if isinstance(node, FolderNode):
            return list(node.children)
        return []

    def is_retired(self, node_id: str) -> bool:
        return node_id in self._retired

    def is_taken(self, node_id: str) -> bool:
        """Whether an id is live or was used before in this instance."""
        return node_id in self._nodes or node_id in self._retired

    def snapshot_all(self) -> Mapping[str, Node]:
        """Read-only view over a shallow copy of the node mapping."""
        return types.MappingProxyType(dict(self._nodes))

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._nodes))

    # -------------------------------------------------------------------------
    # WRITE ACCESS
    # -------------------------------------------------------------------------

    def commit(self, upserts: Mapping[str, Node], deletions: Iterable[str] = ()) -> int:
        """
        Apply a validated change set atomically.

        Args:
            upserts: Nodes to insert or replace, keyed by id.
            deletions: Ids to drop; they are retired and never reused.

        Returns:
            int: The new store version.
        """
        deleted = [d for d in deletions if d != self._root_id]
        for node_id in deleted:
            self._nodes.pop(node_id, None)
            self._retired.add(node_id)
        for node_id, node in upserts.items():
            self._nodes[node_id] = node

        self._version += 1
        logger.debug(
            f"Store '{self._tree_id}' v{self._version}: "
            f"{len(upserts)} upserted, {len(deleted)} deleted"
        )
        self._notify()
        return self._version

    def reinitialize(self, root_id: str, nodes: NodeSource) -> None:
        """
        Replace the whole mapping with fresh authoritative data.

        Optimistic (transient) nodes missing from the new data survive the
        reload when their recorded parent is still a folder.
        """
        incoming = self._load(root_id, nodes)
        preserved = self._carry_transients(incoming)
        if preserved:
            self._recompute_locations(incoming, root_id)
            logger.debug(f"Store '{self._tree_id}': preserved transient nodes {preserved}")

        self._root_id = root_id
        self._nodes = incoming
        self._version += 1
        self._notify()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable[[], None]: Function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"Store '{self._tree_id}': listener {listener!r} failed")

    def _load(self, root_id: str, nodes: NodeSource) -> Dict[str, Node]:
        """Copy, normalize and check initial data."""
        source = nodes.values() if isinstance(nodes, Mapping) else nodes
        mapping: Dict[str, Node] = {}
        for node in source:
            mapping[node.id] = clone_node(node)

        root = mapping.get(root_id)
        if not isinstance(root, FolderNode):
            raise TreeIntegrityError([f"root '{root_id}' is missing or not a folder"])
        root.parent_id = None

        self._derive_children(mapping)
        self._recompute_locations(mapping, root_id)

        report = check_integrity(mapping, root_id)
        self._last_report = report
        if not report.ok:
            if self._strict:
                raise TreeIntegrityError(report.problems)
            for problem in report.problems:
                logger.warning(f"Store '{self._tree_id}': {problem}")
        return mapping

    @staticmethod
    def _derive_children(mapping: Dict[str, Node]) -> None:
        """Fill folders whose children were not supplied from parent links."""
        pending = [n for n in mapping.values() if isinstance(n, FolderNode) and n.children is None]
        if not pending:
            return
        for folder in pending:
            folder.children = []
        by_id = {f.id: f for f in pending}
        for node in mapping.values():
            parent = by_id.get(node.parent_id) if node.parent_id else None
            if parent is not None:
                parent.children.append(node.id)

    @staticmethod
    def _recompute_locations(mapping: Dict[str, Node], root_id: str) -> None:
        """Recompute folder paths and depths top-down from the root."""
        root = mapping[root_id]
        if not isinstance(root, FolderNode):
            return
        root.path = const.ROOT_PATH
        root.depth = 0
        queue: Deque[FolderNode] = deque([root])
        seen: Set[str] = {root_id}
        while queue:
            folder = queue.popleft()
            for child_id in folder.children:
                child = mapping.get(child_id)
                if not isinstance(child, FolderNode) or child_id in seen:
                    continue
                if child.parent_id != folder.id:
                    continue
                seen.add(child_id)
                child.path, child.depth = child_location(folder, child.name)
                queue.append(child)

    def _carry_transients(self, incoming: Dict[str, Node]) -> List[str]:
        """Re-attach live transient nodes absent from the incoming data."""
        candidates = [
            n for n in self._nodes.values()
            if is_transient_id(n.id) and n.id not in incoming
        ]
        preserved: List[str] = []
        # Parents first, so transient folders can host transient children
        remaining = list(candidates)
        progress = True
        while remaining and progress:
            progress = False
            for node in list(remaining):
                parent = incoming.get(node.parent_id) if node.parent_id else None
                if not isinstance(parent, FolderNode):
                    continue
                twin = clone_node(node)
                incoming[twin.id] = twin
                if twin.id not in parent.children:
                    parent.children.append(twin.id)
                preserved.append(twin.id)
                remaining.remove(node)
                progress = True

        for node_id in preserved:
            twin = incoming[node_id]
            if isinstance(twin, FolderNode):
                twin.children = [
                    c for c in twin.children
                    if c in incoming and incoming[c].parent_id == node_id
                ]

        for node in remaining:
            logger.warning(
                f"Store '{self._tree_id}': dropping transient node '{node.id}', "
                f"parent '{node.parent_id}' no longer exists"
            )
        return preserved
