from __future__ import annotations

"""
Tree Session.

Composition root of one tree instance: wires the store, the mutation
engine, selection, drag-and-drop, search and the render adapter together,
routes store commits into a debounced rebuild, and gates every user-facing
capability behind the TreeFeatures flags the host enabled.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from treesync.core.dnd.foreign_drop import FileIngestor
from treesync.core.dnd.protocol import DragController, MoveCallback, ReorderCallback
from treesync.core.render.adapter import RenderAdapter, VisibleRow, VirtualWindow
from treesync.core.render.scheduler import RebuildScheduler
from treesync.core.search.index import SearchIndex
from treesync.core.selection.checkboxes import CheckedState, SelectionState
from treesync.core.services.settings_validator import validate_settings
from treesync.core.tree.mutations import MutationEngine, RenameCallback
from treesync.core.tree.store import NodeSource, TreeStore
from treesync.domain.config import TreeFeatures
from treesync.domain.drag_models import DataTransfer, DragTarget, DropPosition, ForeignDragObject
from treesync.domain.errors import FeatureDisabledError
from treesync.domain.operation_models import DropResult, ForeignDropResult, MoveOutcome

logger = logging.getLogger(__name__)


@dataclass
class TreeCallbacks:
    """
    Host persistence hooks, all optional.

    Attributes:
        on_rename: (id, new_name) after a committed rename.
        on_move: (ids, target_folder_id) after a committed move drop.
        on_reorder: (parent_id, new_order) after a committed reorder drop.
        on_change: (store) after every commit or reinitialization.
    """
    on_rename: Optional[RenameCallback] = None
    on_move: Optional[MoveCallback] = None
    on_reorder: Optional[ReorderCallback] = None
    on_change: Optional[Callable[[TreeStore], None]] = None


class TreeSession:
    """
    One fully wired tree instance.

    Args:
        tree_id: Identifier of the instance.
        root_id: Id of the root folder.
        nodes: Initial nodes.
        features: Enabled capabilities; read from settings when None.
        callbacks: Host persistence hooks.
        settings: Engine settings (validated and merged over defaults).
        ingestor: Collaborator for OS file drops.
        clock: Time source for the rebuild debounce.
        strict: Reject inconsistent initial data.
    """

    def __init__(
            self,
            tree_id: str,
            root_id: str,
            nodes: NodeSource,
            *,
            features: Optional[TreeFeatures] = None,
            callbacks: Optional[TreeCallbacks] = None,
            settings: Optional[Dict[str, Any]] = None,
            ingestor: Optional[FileIngestor] = None,
            clock: Callable[[], float] = time.monotonic,
            strict: bool = False,
    ) -> None:
        self.tree_id = tree_id
        self.settings, warnings = validate_settings(settings if settings is not None else {})
        for w in warnings:
            logger.warning(f"Tree '{tree_id}': {w}")
        self.features = features or TreeFeatures.from_mapping(self.settings["features"])
        self.callbacks = callbacks or TreeCallbacks()

        self.store = TreeStore(tree_id, root_id, nodes, strict=strict)
        self.engine = MutationEngine(
            self.store,
            on_rename=self.callbacks.on_rename,
            max_name_length=self.settings["max_name_length"],
        )
        self.selection = SelectionState(
            self.store,
            checkbox_mode=self.features.checkboxes or self.settings["checkbox_mode"],
        )
        self.search_index = SearchIndex(self.store)
        self.adapter = RenderAdapter(
            self.store,
            search=self.search_index if self.features.search else None,
            selection=self.selection,
            row_height=self.settings["row_height"],
            overscan=self.settings["overscan"],
        )
        self.dnd = DragController(
            self.store,
            self.engine,
            on_move=self.callbacks.on_move,
            on_reorder=self.callbacks.on_reorder,
            ingestor=ingestor,
            tree_id=tree_id,
        )
        self.scheduler = RebuildScheduler(
            self._rebuild,
            delay_ms=self.settings["debounce_ms"],
            clock=clock,
        )

        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self._disposed = False
        self.adapter.rebuild()
        logger.debug(f"Tree session '{tree_id}' ready with {len(self.store)} nodes")

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def rows(self) -> List[VisibleRow]:
        return self.adapter.rows

    def poll(self) -> bool:
        """Run a due rebuild; hosts call this from their event loop."""
        return self.scheduler.poll()

    def flush(self) -> bool:
        """Run a pending rebuild immediately."""
        return self.scheduler.flush()

    def reinitialize(self, root_id: str, nodes: NodeSource) -> None:
        self.store.reinitialize(root_id, nodes)

    def dispose(self) -> None:
        """Detach from the store and drop pending work."""
        if self._disposed:
            return
        self.scheduler.cancel()
        self.dnd.cancel()
        self._unsubscribe()
        self._disposed = True
        logger.debug(f"Tree session '{self.tree_id}' disposed")

    # -------------------------------------------------------------------------
    # STRUCTURE
    # -------------------------------------------------------------------------

    def add_file(self, name: str, target_folder_id: str, overrides: Optional[Dict[str, Any]] = None, **kwargs) -> str:
        return self.engine.add_file(name, target_folder_id, overrides, **kwargs)

    def add_folder(self, name: str, parent_folder_id: str, overrides: Optional[Dict[str, Any]] = None, **kwargs) -> str:
        return self.engine.add_folder(name, parent_folder_id, overrides, **kwargs)

    def move_items(self, ids: Iterable[str], target_folder_id: str, index: Optional[int] = None) -> MoveOutcome:
        return self.engine.move_items(ids, target_folder_id, index)

    def duplicate_items(self, ids: Iterable[str]) -> List[str]:
        return self.engine.duplicate_items(ids)

    def rename_item(self, node_id: str, new_name: str) -> None:
        self._require("rename")
        self.engine.rename_item(node_id, new_name)

    def remove_items(self, ids: Iterable[str]) -> List[str]:
        self._require("delete")
        return self.engine.remove_items(ids)

    def clear_folder(self, folder_id: str) -> List[str]:
        self._require("delete")
        return self.engine.clear_folder(folder_id)

    # -------------------------------------------------------------------------
    # SELECTION & CHECKBOXES
    # -------------------------------------------------------------------------

    def select(self, node_id: str, multi_select: bool = False) -> None:
        self._require("selection")
        if multi_select:
            self._require("multi_select")
        self.selection.select(node_id, multi_select)
        self.scheduler.request()

    def set_checked(self, ids: Iterable[str], checked: bool, *, cascade: bool = True) -> None:
        self._require("checkboxes")
        self.selection.set_checked(ids, checked, cascade=cascade)
        self.scheduler.request()

    def toggle_checked(self, node_id: str) -> CheckedState:
        self._require("checkboxes")
        state = self.selection.toggle_checked(node_id)
        self.scheduler.request()
        return state

    # -------------------------------------------------------------------------
    # VIEW
    # -------------------------------------------------------------------------

    def search(self, query: str) -> Set[str]:
        """Filter the view by a query; returns the matching ids."""
        self._require("search")
        self.adapter.set_search_query(query)
        self.scheduler.request()
        return self.search_index.search(query)

    def toggle_expanded(self, folder_id: str) -> bool:
        expanded = self.adapter.toggle_expanded(folder_id)
        self.scheduler.request()
        return expanded

    def expand_all(self) -> None:
        self.adapter.expand_all()
        self.scheduler.request()

    def collapse_all(self) -> None:
        self.adapter.collapse_all()
        self.scheduler.request()

    def visible_window(self, scroll_offset: float, viewport_height: float) -> VirtualWindow:
        return self.adapter.visible_window(scroll_offset, viewport_height)

    # -------------------------------------------------------------------------
    # DRAG AND DROP
    # -------------------------------------------------------------------------

    def start_drag(self, ids: Sequence[str]) -> None:
        self._require("drag_drop")
        self.dnd.start_drag(ids)

    def drag_over(self, target_id: str, position: DropPosition = DropPosition.INSIDE) -> bool:
        self._require("drag_drop")
        return self.dnd.drag_over(target_id, position)

    def drop(self) -> DropResult:
        self._require("drag_drop")
        return self.dnd.drop()

    def cancel_drag(self) -> None:
        self.dnd.cancel()

    def create_foreign_drag_object(self, ids: Sequence[str]) -> ForeignDragObject:
        self._require("foreign_drag")
        return self.dnd.create_foreign_drag_object(ids)

    def drop_foreign(self, data_transfer: DataTransfer, target: DragTarget) -> ForeignDropResult:
        self._require("external_file_drop" if data_transfer.has_files else "accept_drops")
        return self.dnd.drop_foreign(data_transfer, target)

    def complete_foreign_drop(self, drag_object: ForeignDragObject) -> List[str]:
        self._require("foreign_drag")
        return self.dnd.complete_foreign_drop(drag_object)

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _require(self, feature: str) -> None:
        if not getattr(self.features, feature):
            raise FeatureDisabledError(feature)

    def _on_store_change(self, store: TreeStore) -> None:
        self.selection.prune()
        self.adapter.prune()
        self.scheduler.request()
        if self.callbacks.on_change is not None:
            try:
                self.callbacks.on_change(store)
            except Exception:
                logger.exception(f"Change callback failed for tree '{self.tree_id}'")

    def _rebuild(self) -> None:
        if not self.adapter.rebuild():
            self.scheduler.request()
