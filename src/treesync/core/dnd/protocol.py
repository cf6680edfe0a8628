from __future__ import annotations

"""
Drag-and-Drop Protocol.

State machine behind internal drags (idle -> dragging -> dragging_over ->
idle) and the entry points for drags that cross the tree boundary:
building the serialized object of an outgoing drag, accepting node
payloads, OS file lists or bare text, and the idempotent source-side
cleanup once another tree has consumed a drag.
"""

import logging
import uuid
from collections import OrderedDict
from typing import Callable, List, Optional, Sequence, Tuple

from treesync.core.dnd.foreign_drop import (
    FileIngestor,
    build_folder_structure,
    count_top_folders,
    node_from_text,
)
from treesync.core.dnd.payload import deserialize_payload, remap_ids, serialize_subtrees
from treesync.core.tree.hierarchy import is_self_or_descendant, top_level_ids
from treesync.core.tree.mutations import MutationEngine
from treesync.core.tree.store import TreeStore
from treesync.domain import constants as const
from treesync.domain.drag_models import DataTransfer, DragPhase, DragTarget, DropPosition, ForeignDragObject
from treesync.domain.errors import (
    CyclicMoveError,
    DragStateError,
    ForeignDropError,
    RootOperationError,
    TargetNotFolderError,
    TargetNotFoundError,
)
from treesync.domain.operation_models import DropResult, ForeignDropResult, MoveKind
from treesync.domain.tree_models import FolderNode

logger = logging.getLogger(__name__)

MoveCallback = Callable[[List[str], str], None]
ReorderCallback = Callable[[str, List[str]], None]


class DragController:
    """
    Drives internal and cross-tree drags for one tree instance.

    Args:
        store: Store of this tree.
        engine: Mutation engine committing the drops.
        on_move: Called with (ids, target_folder_id) after a move drop.
        on_reorder: Called with (parent_id, new_order) after a reorder drop.
        ingestor: Collaborator handling OS file drops.
        tree_id: Identifier stamped on outgoing drags (defaults to the store's).
    """

    def __init__(
            self,
            store: TreeStore,
            engine: MutationEngine,
            *,
            on_move: Optional[MoveCallback] = None,
            on_reorder: Optional[ReorderCallback] = None,
            ingestor: Optional[FileIngestor] = None,
            tree_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self.on_move = on_move
        self.on_reorder = on_reorder
        self.ingestor = ingestor
        self.tree_id = tree_id if tree_id is not None else store.tree_id

        self._phase = DragPhase.IDLE
        self._dragged: Tuple[str, ...] = ()
        self._target: Optional[DragTarget] = None
        self._completed_drags: "OrderedDict[str, None]" = OrderedDict()

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def dragged_ids(self) -> Tuple[str, ...]:
        return self._dragged

    @property
    def target(self) -> Optional[DragTarget]:
        return self._target

    # -------------------------------------------------------------------------
    # INTERNAL DRAGS
    # -------------------------------------------------------------------------

    def start_drag(self, ids: Sequence[str]) -> None:
        """
        Begin dragging items of this tree.

        Raises:
            DragStateError: If a drag is already in progress.
            NodeNotFoundError: If an id is unknown.
            RootOperationError: If the root is part of the drag.
            ValueError: If no id is given.
        """
        if self._phase is not DragPhase.IDLE:
            raise DragStateError(self._phase.value, "start a drag")
        self._dragged = self._validated_sources(ids)
        self._target = None
        self._phase = DragPhase.DRAGGING
        logger.debug(f"Drag started with {self._dragged}")

    def drag_over(self, target_id: str, position: DropPosition = DropPosition.INSIDE) -> bool:
        """
        Record the item under the pointer.

        Returns:
            bool: Whether dropping here would be legal.
        """
        if self._phase is DragPhase.IDLE:
            raise DragStateError(self._phase.value, "drag over an item")
        self._target = DragTarget(target_id, position)
        self._phase = DragPhase.DRAGGING_OVER
        return self.can_drop(self._dragged, self._target)

    def can_drop(self, dragged_ids: Sequence[str], target: DragTarget) -> bool:
        """Check a drop without changing any state."""
        return self._drop_problem(dragged_ids, target) is None

    def drop(self) -> DropResult:
        """
        Commit the current drag at the recorded target.

        The controller returns to idle whatever the outcome.

        Returns:
            DropResult: The committed move or reorder.

        Raises:
            DragStateError: If no drag target has been recorded.
            CyclicMoveError: If the target lies inside a dragged folder.
            TargetNotFolderError: If dropping inside a file.
            TargetNotFoundError: If the target vanished during the drag.
            RootOperationError: If dropping next to the root.
        """
        if self._phase is not DragPhase.DRAGGING_OVER or self._target is None:
            raise DragStateError(self._phase.value, "drop")

        dragged, target = self._dragged, self._target
        try:
            problem = self._drop_problem(dragged, target)
            if problem is not None:
                raise problem
            parent_id, index = self._resolve(target, dragged)
            outcome = self._engine.move_items(dragged, parent_id, index)
        finally:
            self._reset()

        if outcome.kind is MoveKind.REORDERED and self.on_reorder is not None:
            self._safe_callback(self.on_reorder, parent_id, list(outcome.children))
        elif outcome.kind is MoveKind.MOVED and self.on_move is not None:
            self._safe_callback(self.on_move, list(outcome.ids), parent_id)
        return outcome

    def cancel(self) -> None:
        """Abort the drag without mutating anything."""
        if self._phase is not DragPhase.IDLE:
            logger.debug("Drag cancelled")
        self._reset()

    # -------------------------------------------------------------------------
    # FOREIGN DRAGS
    # -------------------------------------------------------------------------

    def create_foreign_drag_object(self, ids: Sequence[str]) -> ForeignDragObject:
        """
        Serialize items (with their subtrees) for another tree.

        Raises:
            NodeNotFoundError: If an id is unknown.
            RootOperationError: If the root is part of the drag.
        """
        sources = self._validated_sources(ids)
        tops = tuple(top_level_ids(self._store.find_node, list(sources)))
        return ForeignDragObject(
            format=const.JSON_DRAG_FORMAT,
            data=serialize_subtrees(self._store, tops),
            source_tree_id=self.tree_id,
            drag_id=uuid.uuid4().hex,
            ids=tops,
        )

    def can_drop_foreign(self, data_transfer: DataTransfer, target: DragTarget) -> bool:
        """Check that a foreign drop has content and a legal landing spot."""
        if not self._has_content(data_transfer):
            return False
        node = self._store.find_node(target.item_id)
        if node is None:
            return False
        if target.position is DropPosition.INSIDE:
            return isinstance(node, FolderNode)
        return target.item_id != self._store.root_id

    def drop_foreign(self, data_transfer: DataTransfer, target: DragTarget) -> ForeignDropResult:
        """
        Accept data that did not originate in this tree.

        OS files are handed to the ingestion collaborator together with
        their folder grouping; JSON node payloads are inserted with fresh
        ids; bare text creates one node named after the text.

        Raises:
            ForeignDropError: If the drop has no usable content, an illegal
                target, or OS files without an ingestion collaborator.
            PayloadError: If a JSON payload cannot be decoded.
        """
        if not self.can_drop_foreign(data_transfer, target):
            raise ForeignDropError(f"cannot drop onto '{target.item_id}' ({target.position.value})")
        parent_id, index = self._resolve(target, ())

        if data_transfer.has_files:
            if self.ingestor is None:
                raise ForeignDropError("no file ingestion collaborator is configured")
            structure = build_folder_structure(data_transfer.files)
            nodes = list(self.ingestor.ingest(data_transfer.files, parent_id, structure))
            inserted = self._engine.insert_nodes(nodes, parent_id, index) if nodes else []
            if structure:
                logger.info(
                    f"Ingesting {len(data_transfer.files)} files from "
                    f"{count_top_folders(structure)} folders into '{parent_id}'"
                )
            return ForeignDropResult(
                parent_id=parent_id,
                inserted_ids=tuple(inserted),
                routed_to_ingestor=True,
                folder_structure={k: [f.name for f in v] for k, v in structure.items()},
            )

        payload = data_transfer.get_data(const.JSON_DRAG_FORMAT)
        if payload:
            nodes = remap_ids(deserialize_payload(payload), self._engine.next_id)
        else:
            nodes = [node_from_text(data_transfer, self._engine.next_id, self._engine.max_name_length)]
        inserted = self._engine.insert_nodes(nodes, parent_id, index)
        logger.debug(f"Foreign drop inserted {len(inserted)} nodes under '{parent_id}'")
        return ForeignDropResult(parent_id=parent_id, inserted_ids=tuple(inserted))

    def complete_foreign_drop(self, drag_object: ForeignDragObject) -> List[str]:
        """
        Remove the dragged items from this (source) tree once consumed.

        Repeated completion events for the same drag are ignored.

        Returns:
            List[str]: Removed ids, empty for a repeated or foreign event.
        """
        if drag_object.source_tree_id is not None and drag_object.source_tree_id != self.tree_id:
            logger.warning(
                f"Ignoring completion of drag from tree '{drag_object.source_tree_id}' "
                f"in tree '{self.tree_id}'"
            )
            return []
        if drag_object.drag_id in self._completed_drags:
            self._completed_drags.move_to_end(drag_object.drag_id)
            logger.debug(f"Drag '{drag_object.drag_id}' already completed")
            return []
        self._remember_completed(drag_object.drag_id)

        live = [i for i in drag_object.ids if i in self._store]
        return self._engine.remove_items(live)

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _remember_completed(self, drag_id: str) -> None:
        self._completed_drags[drag_id] = None
        while len(self._completed_drags) > const.COMPLETED_DRAG_HISTORY:
            self._completed_drags.popitem(last=False)

    def _reset(self) -> None:
        self._phase = DragPhase.IDLE
        self._dragged = ()
        self._target = None

    def _validated_sources(self, ids: Sequence[str]) -> Tuple[str, ...]:
        batch = tuple(dict.fromkeys(ids))
        if not batch:
            raise ValueError("A drag needs at least one item")
        for node_id in batch:
            self._store.get_node(node_id)
            if node_id == self._store.root_id:
                raise RootOperationError("dragged")
        return batch

    def _drop_problem(self, dragged_ids: Sequence[str], target: DragTarget) -> Optional[Exception]:
        """Return the error a drop would raise, or None when it is legal."""
        lookup = self._store.find_node
        node = lookup(target.item_id)
        if node is None:
            return TargetNotFoundError(target.item_id)

        if target.position is DropPosition.INSIDE:
            if not isinstance(node, FolderNode):
                return TargetNotFolderError(target.item_id)
            destination = target.item_id
        else:
            if target.item_id == self._store.root_id or node.parent_id is None:
                return RootOperationError("given siblings")
            destination = node.parent_id

        for dragged in dragged_ids:
            if is_self_or_descendant(lookup, target.item_id, dragged):
                return CyclicMoveError(dragged, target.item_id)
            if is_self_or_descendant(lookup, destination, dragged):
                return CyclicMoveError(dragged, destination)
        return None

    def _resolve(self, target: DragTarget, dragged_ids: Sequence[str]) -> Tuple[str, Optional[int]]:
        """Translate a pointer target into (folder id, insertion index)."""
        if target.position is DropPosition.INSIDE:
            return target.item_id, None

        node = self._store.get_node(target.item_id)
        parent_id = node.parent_id
        assert parent_id is not None
        siblings = [c for c in self._store.get_children(parent_id) if c not in dragged_ids]
        position = siblings.index(target.item_id)
        if target.position is DropPosition.AFTER:
            position += 1
        return parent_id, position

    @staticmethod
    def _has_content(data_transfer: DataTransfer) -> bool:
        return (
            data_transfer.has_files
            or bool(data_transfer.get_data(const.JSON_DRAG_FORMAT))
            or bool(data_transfer.get_data(const.TEXT_DRAG_FORMAT))
        )

    @staticmethod
    def _safe_callback(callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Drop callback {callback!r} failed")
