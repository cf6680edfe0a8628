from __future__ import annotations

"""
Tree Mutation Engine.

Every structural operation (add, insert, remove, move, reorder, rename,
duplicate, clear) runs inside a copy-on-write transaction layered over the
store. The transaction resolves reads against its own pending changes, all
validation happens before anything is written, and the change set reaches
the store through a single commit. A rejected operation therefore leaves
the store (and its version) untouched.
"""

import copy
import logging
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from treesync.core.tree.hierarchy import (
    child_location,
    descendant_ids,
    is_self_or_descendant,
    top_level_ids,
)
from treesync.core.tree.ids import IdGenerator
from treesync.core.tree.naming import copy_name, validate_name
from treesync.core.tree.store import TreeStore
from treesync.domain import constants as const
from treesync.domain.errors import (
    CyclicMoveError,
    DuplicateIdError,
    NodeNotFoundError,
    NotAFolderError,
    PayloadError,
    RootOperationError,
    TargetNotFolderError,
    TargetNotFoundError,
)
from treesync.domain.operation_models import MoveKind, MoveOutcome
from treesync.domain.tree_models import (
    FileNode,
    FolderNode,
    Node,
    NodeType,
    ProcessingStatus,
    clone_node,
    derive_extension,
)

logger = logging.getLogger(__name__)

RenameCallback = Callable[[str, str], None]

_FILE_OVERRIDES = frozenset({"mime_type", "file_size", "processing_status", "metadata", "extension"})
_FOLDER_OVERRIDES = frozenset({"metadata"})

# -----------------------------------------------------------------------------
# TRANSACTION
# -----------------------------------------------------------------------------

class _Transaction:
    """
    Copy-on-write overlay over a store.

    Nodes are cloned the first time they are edited, so the store's own
    objects are never touched before commit.
    """

    def __init__(self, store: TreeStore) -> None:
        self._store = store
        self._upserts: Dict[str, Node] = {}
        self._deleted: Set[str] = set()

    @property
    def root_id(self) -> str:
        return self._store.root_id

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None or node_id in self._deleted:
            return None
        if node_id in self._upserts:
            return self._upserts[node_id]
        return self._store.find_node(node_id)

    def require(self, node_id: str) -> Node:
        node = self.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def edit(self, node_id: str) -> Node:
        """Writable copy of a node, cloned on first access."""
        if node_id not in self._upserts:
            self._upserts[node_id] = clone_node(self.require(node_id))
        return self._upserts[node_id]

    def put(self, node: Node) -> None:
        self._deleted.discard(node.id)
        self._upserts[node.id] = node

    def delete(self, node_id: str) -> None:
        self._upserts.pop(node_id, None)
        self._deleted.add(node_id)

    def is_taken(self, node_id: str) -> bool:
        return node_id in self._upserts or self._store.is_taken(node_id)

    @property
    def dirty(self) -> bool:
        return bool(self._upserts or self._deleted)

    def commit(self) -> int:
        if not self.dirty:
            return self._store.version
        return self._store.commit(self._upserts, self._deleted)

# -----------------------------------------------------------------------------
# ENGINE
# -----------------------------------------------------------------------------

class MutationEngine:
    """
    Applies validated structural changes to a TreeStore.

    Args:
        store: The store to mutate.
        id_generator: Source of fresh ids; defaults to one bound to the store.
        on_rename: Callback invoked with (id, new_name) after a rename commit.
        max_name_length: Upper bound for node names.
    """

    def __init__(
            self,
            store: TreeStore,
            *,
            id_generator: Optional[IdGenerator] = None,
            on_rename: Optional[RenameCallback] = None,
            max_name_length: int = const.MAX_NAME_LENGTH,
    ) -> None:
        self._store = store
        self._ids = id_generator or IdGenerator(store.is_taken)
        self.on_rename = on_rename
        self.max_name_length = max_name_length

    @property
    def store(self) -> TreeStore:
        return self._store

    def next_id(self, node_type: NodeType) -> str:
        """Hand out an id that is neither live nor retired in the store."""
        return self._ids.next_id(node_type)

    # -------------------------------------------------------------------------
    # CREATION
    # -------------------------------------------------------------------------

    def add_file(
            self,
            name: str,
            target_folder_id: str,
            overrides: Optional[Mapping[str, Any]] = None,
            *,
            node_id: Optional[str] = None,
    ) -> str:
        """
        Create a file at the end of a folder.

        Args:
            name: Display name, extension included.
            target_folder_id: Receiving folder.
            overrides: Optional mime_type, file_size, processing_status,
                extension or metadata values.
            node_id: Host-supplied id (e.g. a transient id); generated when None.

        Returns:
            str: Id of the new file.

        Raises:
            TargetNotFoundError: If the target does not exist.
            TargetNotFolderError: If the target is a file.
            InvalidNameError: If the name breaks a naming rule.
            DuplicateIdError: If node_id is live or retired.
            ValueError: If overrides touch structural fields.
        """
        return self._add(NodeType.FILE, name, target_folder_id, overrides, node_id)

    def add_folder(
            self,
            name: str,
            parent_folder_id: str,
            overrides: Optional[Mapping[str, Any]] = None,
            *,
            node_id: Optional[str] = None,
    ) -> str:
        """Create an empty folder at the end of a folder. Fails like add_file."""
        return self._add(NodeType.FOLDER, name, parent_folder_id, overrides, node_id)

    def insert_nodes(
            self,
            nodes: Iterable[Node],
            target_folder_id: str,
            index: Optional[int] = None,
    ) -> List[str]:
        """
        Graft a pre-built forest under a folder.

        Nodes whose parent is not part of the batch become children of the
        target, inserted at index (appended when None) in batch order.
        Folder paths are re-derived for the new location.

        Returns:
            List[str]: Ids of every inserted node, in display order.

        Raises:
            DuplicateIdError: If any id is live or retired; nothing is inserted.
            PayloadError: If the batch is not a forest.
        """
        tx = _Transaction(self._store)
        self._require_target_folder(tx, target_folder_id)

        batch: Dict[str, Node] = {}
        for node in nodes:
            if node.id in batch or tx.is_taken(node.id):
                raise DuplicateIdError(node.id)
            validate_name(node.name, self.max_name_length)
            batch[node.id] = clone_node(node)

        roots = [n for n in batch.values() if n.parent_id not in batch]
        for folder in batch.values():
            if isinstance(folder, FolderNode):
                if folder.children is None:
                    folder.children = []
                folder.children = [
                    c for c in folder.children
                    if c in batch and batch[c].parent_id == folder.id
                ]
        for node in batch.values():
            parent = batch.get(node.parent_id) if node.parent_id else None
            if isinstance(parent, FolderNode) and node.id not in parent.children:
                parent.children.append(node.id)
            elif parent is not None and not isinstance(parent, FolderNode):
                raise PayloadError(f"node '{node.id}' has file '{parent.id}' as parent")

        inserted: List[str] = []
        for root in roots:
            inserted.append(root.id)
            if isinstance(root, FolderNode):
                inserted.extend(descendant_ids(batch.get, root.id))
        if len(inserted) != len(batch):
            stray = sorted(set(batch) - set(inserted))
            raise PayloadError(f"nodes {stray} are not connected to the dropped items")

        for root in roots:
            root.parent_id = target_folder_id
        for node in batch.values():
            tx.put(node)

        parent = tx.edit(target_folder_id)
        assert isinstance(parent, FolderNode)
        position = len(parent.children) if index is None else max(0, min(index, len(parent.children)))
        parent.children[position:position] = [r.id for r in roots]
        for root in roots:
            self._relocate(tx, root.id)

        tx.commit()
        logger.debug(f"Inserted {len(inserted)} nodes under '{target_folder_id}'")
        return inserted

    # -------------------------------------------------------------------------
    # REMOVAL
    # -------------------------------------------------------------------------

    def remove_items(self, ids: Iterable[str]) -> List[str]:
        """
        Remove nodes together with their subtrees.

        Unknown ids and the root are skipped; the rest of the batch still
        applies.

        Returns:
            List[str]: Every removed id, descendants included.
        """
        tx = _Transaction(self._store)
        valid: List[str] = []
        for node_id in dict.fromkeys(ids):
            if node_id == tx.root_id:
                logger.warning("Skipping removal of the root folder")
            elif tx.get(node_id) is None:
                logger.warning(f"Skipping removal of unknown item '{node_id}'")
            else:
                valid.append(node_id)

        removed: List[str] = []
        for top in top_level_ids(tx.get, valid):
            node = tx.require(top)
            subtree = [top] + descendant_ids(tx.get, top)
            parent = tx.get(node.parent_id)
            if isinstance(parent, FolderNode):
                parent = tx.edit(parent.id)
                parent.children = [c for c in parent.children if c != top]
            for victim in subtree:
                tx.delete(victim)
            removed.extend(subtree)

        tx.commit()
        if removed:
            logger.debug(f"Removed {len(removed)} nodes")
        return removed

    def clear_folder(self, folder_id: str) -> List[str]:
        """
        Remove every descendant of a folder, keeping the folder itself.

        Raises:
            NodeNotFoundError: If the id is unknown.
            NotAFolderError: If the id is a file.
        """
        tx = _Transaction(self._store)
        folder = tx.require(folder_id)
        if not isinstance(folder, FolderNode):
            raise NotAFolderError(folder_id)

        removed = descendant_ids(tx.get, folder_id)
        if not removed:
            return []
        for victim in removed:
            tx.delete(victim)
        writable = tx.edit(folder_id)
        assert isinstance(writable, FolderNode)
        writable.children = []
        tx.commit()
        logger.debug(f"Cleared folder '{folder_id}' ({len(removed)} nodes)")
        return removed

    # -------------------------------------------------------------------------
    # RELOCATION
    # -------------------------------------------------------------------------

    def move_items(
            self,
            ids: Iterable[str],
            target_folder_id: str,
            index: Optional[int] = None,
    ) -> MoveOutcome:
        """
        Move nodes (with their subtrees) into a folder.

        Without index, items already inside the target keep their place and
        the others are appended in batch order. With index, all items are
        taken out of the target's children and inserted at index of the
        remaining list (clamped to its bounds).

        Args:
            ids: Items to move; ids below another batch item ride along.
            target_folder_id: Receiving folder.
            index: Optional insertion position.

        Returns:
            MoveOutcome: What was committed.

        Raises:
            TargetNotFoundError: If the target does not exist.
            TargetNotFolderError: If the target is a file.
            NodeNotFoundError: If a moved id is unknown.
            RootOperationError: If the root is part of the batch.
            CyclicMoveError: If the target is a moved folder or below one.
        """
        tx = _Transaction(self._store)
        target = self._require_target_folder(tx, target_folder_id)

        batch = list(dict.fromkeys(ids))
        for node_id in batch:
            tx.require(node_id)
            if node_id == tx.root_id:
                raise RootOperationError("moved")
        tops = top_level_ids(tx.get, batch)
        for top in tops:
            if is_self_or_descendant(tx.get, target_folder_id, top):
                raise CyclicMoveError(top, target_folder_id)

        old_children = list(target.children)
        if index is None:
            cross = [t for t in tops if tx.require(t).parent_id != target_folder_id]
            new_children = old_children + cross
            moved_ids = cross
        else:
            cross = [t for t in tops if tx.require(t).parent_id != target_folder_id]
            remaining = [c for c in old_children if c not in tops]
            position = max(0, min(index, len(remaining)))
            new_children = remaining[:position] + tops + remaining[position:]
            moved_ids = tops

        if not cross and new_children == old_children:
            return MoveOutcome(MoveKind.UNCHANGED, target_folder_id, (), tuple(old_children))

        for node_id in cross:
            node = tx.edit(node_id)
            old_parent = tx.get(node.parent_id)
            if isinstance(old_parent, FolderNode):
                old_parent = tx.edit(old_parent.id)
                old_parent.children = [c for c in old_parent.children if c != node_id]
            node.parent_id = target_folder_id

        writable = tx.edit(target_folder_id)
        assert isinstance(writable, FolderNode)
        writable.children = new_children
        for node_id in cross:
            self._relocate(tx, node_id)

        tx.commit()
        kind = MoveKind.MOVED if cross else MoveKind.REORDERED
        logger.debug(f"{kind.value}: {moved_ids} under '{target_folder_id}'")
        return MoveOutcome(kind, target_folder_id, tuple(moved_ids), tuple(new_children))

    def reorder_children(self, parent_id: str, new_order: Iterable[str]) -> MoveOutcome:
        """
        Replace a folder's child order with a permutation of the same ids.

        Raises:
            NodeNotFoundError: If the folder is unknown.
            NotAFolderError: If parent_id is a file.
            ValueError: If new_order is not a permutation of the children.
        """
        tx = _Transaction(self._store)
        folder = tx.require(parent_id)
        if not isinstance(folder, FolderNode):
            raise NotAFolderError(parent_id)

        order = list(new_order)
        if len(order) != len(set(order)) or set(order) != set(folder.children):
            raise ValueError(f"New order for '{parent_id}' is not a permutation of its children")
        if order == folder.children:
            return MoveOutcome(MoveKind.UNCHANGED, parent_id, (), tuple(order))

        writable = tx.edit(parent_id)
        assert isinstance(writable, FolderNode)
        writable.children = order
        tx.commit()
        return MoveOutcome(MoveKind.REORDERED, parent_id, tuple(order), tuple(order))

    # -------------------------------------------------------------------------
    # EDITING
    # -------------------------------------------------------------------------

    def rename_item(self, node_id: str, new_name: str) -> None:
        """
        Rename a node; folder renames propagate paths to the whole subtree.

        Raises:
            NodeNotFoundError: If the id is unknown.
            InvalidNameError: If the name breaks a naming rule.
        """
        tx = _Transaction(self._store)
        node = tx.require(node_id)
        validate_name(new_name, self.max_name_length)
        if node.name == new_name:
            return

        writable = tx.edit(node_id)
        writable.name = new_name
        if isinstance(writable, FileNode):
            writable.extension = derive_extension(new_name)
        elif node_id != tx.root_id:
            self._relocate(tx, node_id)
        tx.commit()
        logger.debug(f"Renamed '{node_id}' to '{new_name}'")

        if self.on_rename is not None:
            try:
                self.on_rename(node_id, new_name)
            except Exception:
                logger.exception(f"Rename callback failed for '{node_id}'")

    def duplicate_items(self, ids: Iterable[str]) -> List[str]:
        """
        Deep-copy nodes next to the originals.

        Each copy gets fresh ids for the whole subtree and a '(copy)' name
        that is unique among its new siblings.

        Returns:
            List[str]: Ids of the top-level copies, in batch order.

        Raises:
            NodeNotFoundError: If an id is unknown.
            RootOperationError: If the root is part of the batch.
        """
        tx = _Transaction(self._store)
        batch = list(dict.fromkeys(ids))
        for node_id in batch:
            tx.require(node_id)
            if node_id == tx.root_id:
                raise RootOperationError("duplicated")

        copies: List[str] = []
        for top in top_level_ids(tx.get, batch):
            original = tx.require(top)
            parent = tx.edit(original.parent_id)
            assert isinstance(parent, FolderNode)

            subtree = [top] + descendant_ids(tx.get, top)
            id_map = {old: self._fresh_id(tx, tx.require(old).node_type) for old in subtree}
            for old in subtree:
                twin = clone_node(tx.require(old))
                twin.id = id_map[old]
                twin.parent_id = id_map.get(twin.parent_id, twin.parent_id)
                if isinstance(twin, FolderNode):
                    twin.children = [id_map[c] for c in twin.children if c in id_map]
                tx.put(twin)

            taken = {tx.require(c).name for c in parent.children}
            head = tx.edit(id_map[top])
            head.name = copy_name(original.name, isinstance(original, FileNode), taken)
            if isinstance(head, FileNode):
                head.extension = derive_extension(head.name)
            parent.children.append(head.id)
            self._relocate(tx, head.id)
            copies.append(head.id)

        tx.commit()
        logger.debug(f"Duplicated {batch} as {copies}")
        return copies

    def get_descendant_ids(self, folder_id: str) -> List[str]:
        """Pre-order descendant ids of a node (empty for files)."""
        self._store.get_node(folder_id)
        return descendant_ids(self._store.find_node, folder_id)

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _add(
            self,
            node_type: NodeType,
            name: str,
            target_folder_id: str,
            overrides: Optional[Mapping[str, Any]],
            node_id: Optional[str],
    ) -> str:
        tx = _Transaction(self._store)
        parent = self._require_target_folder(tx, target_folder_id)
        validate_name(name, self.max_name_length)
        extra = _checked_overrides(node_type, overrides)

        if node_id is not None:
            if tx.is_taken(node_id):
                raise DuplicateIdError(node_id)
            new_id = node_id
        else:
            new_id = self._fresh_id(tx, node_type)

        node: Node
        if node_type is NodeType.FOLDER:
            path, depth = child_location(parent, name)
            node = FolderNode(
                id=new_id, name=name, parent_id=target_folder_id,
                path=path, depth=depth, metadata=dict(extra.get("metadata") or {}),
            )
        else:
            node = FileNode(id=new_id, name=name, parent_id=target_folder_id, extension=derive_extension(name))
            for key, value in extra.items():
                setattr(node, key, value)

        tx.put(node)
        writable = tx.edit(target_folder_id)
        assert isinstance(writable, FolderNode)
        writable.children.append(new_id)
        tx.commit()
        logger.debug(f"Added {node_type.value} '{name}' as '{new_id}' under '{target_folder_id}'")
        return new_id

    def _fresh_id(self, tx: _Transaction, node_type: NodeType) -> str:
        while True:
            candidate = self._ids.next_id(node_type)
            if not tx.is_taken(candidate):
                return candidate

    @staticmethod
    def _require_target_folder(tx: _Transaction, target_id: str) -> FolderNode:
        target = tx.get(target_id)
        if target is None:
            raise TargetNotFoundError(target_id)
        if not isinstance(target, FolderNode):
            raise TargetNotFolderError(target_id)
        return target

    @staticmethod
    def _relocate(tx: _Transaction, node_id: str) -> None:
        """Re-derive path/depth of a folder and every folder below it."""
        start = tx.get(node_id)
        if not isinstance(start, FolderNode):
            return
        queue = deque([node_id])
        while queue:
            current_id = queue.popleft()
            current = tx.require(current_id)
            parent = tx.get(current.parent_id)
            if not isinstance(current, FolderNode) or not isinstance(parent, FolderNode):
                continue
            path, depth = child_location(parent, current.name)
            if current.path != path or current.depth != depth:
                writable = tx.edit(current_id)
                writable.path, writable.depth = path, depth  # type: ignore[union-attr]
            queue.extend(current.children)


def _checked_overrides(node_type: NodeType, overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Validate the optional field overrides of a new node."""
    if not overrides:
        return {}
    structural = sorted(k for k in overrides if k in const.STRUCTURAL_KEYS)
    if structural:
        raise ValueError(f"Overrides may not set structural fields: {structural}")
    allowed = _FOLDER_OVERRIDES if node_type is NodeType.FOLDER else _FILE_OVERRIDES
    unknown = sorted(k for k in overrides if k not in allowed)
    if unknown:
        raise ValueError(f"Unknown {node_type.value} fields in overrides: {unknown}")

    out = dict(overrides)
    if "metadata" in out:
        out["metadata"] = copy.deepcopy(out["metadata"] or {})
    if "processing_status" in out:
        out["processing_status"] = ProcessingStatus(out["processing_status"])
    if "file_size" in out:
        size = out["file_size"]
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValueError(f"file_size must be a non-negative int, got {size!r}")
    return out
