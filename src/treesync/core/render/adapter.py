from __future__ import annotations

"""
Reconciliation / Render Adapter.

Projects the store into the ordered, flattened, depth-annotated list of
rows a host UI draws, honouring folder expansion and the active search
filter, and slices that list into the window a virtualized viewport needs.
Row computation is pure; applying a computation is refused when the store
moved on in between.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterator, List, Optional, Set, Tuple

from treesync.core.render.tree_renderer import render_rows
from treesync.core.search.index import SearchIndex
from treesync.core.selection.checkboxes import CheckedState, SelectionState
from treesync.core.tree.store import TreeStore
from treesync.domain import constants as const
from treesync.domain.errors import NotAFolderError
from treesync.domain.tree_models import FolderNode, Node, NodeType

logger = logging.getLogger(__name__)

SortKey = Callable[[Node], Any]

# -----------------------------------------------------------------------------
# ROW MODELS
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class VisibleRow:
    """
    One drawable line of the flattened tree.

    Attributes:
        id: Node id.
        name: Display name.
        node_type: Folder or file.
        level: Indentation level (children of the root are level 0).
        parent_id: Id of the containing folder.
        index: Position among the displayed siblings.
        is_folder: Convenience flag for node_type.
        is_expanded: Whether the folder's children follow this row.
        has_children: Whether the folder has any children at all.
        is_last_child: Whether no displayed sibling follows.
        matches_search: Whether the node itself matches the active query.
        checked_state: Computed checkbox state, None outside checkbox mode.
        is_selected: Whether the node is selected.
    """
    id: str
    name: str
    node_type: NodeType
    level: int
    parent_id: Optional[str]
    index: int
    is_folder: bool
    is_expanded: bool
    has_children: bool
    is_last_child: bool
    matches_search: bool = False
    checked_state: Optional[CheckedState] = None
    is_selected: bool = False


@dataclass(frozen=True)
class VirtualWindow:
    """
    Slice of rows intersecting the viewport plus overscan.

    Attributes:
        start: Index of the first rendered row.
        end: Index one past the last rendered row.
        offset_top: Pixel offset of the first rendered row.
        total_height: Estimated height of the full list.
        rows: The rendered rows.
    """
    start: int
    end: int
    offset_top: int
    total_height: int
    rows: Tuple[VisibleRow, ...] = field(default_factory=tuple)

# -----------------------------------------------------------------------------
# ADAPTER
# -----------------------------------------------------------------------------

class RenderAdapter:
    """
    Keeps a flattened row list in step with a store.

    Args:
        store: Store to project.
        search: Index used to filter rows while a query is active.
        selection: Source of selected ids and checkbox states.
        sort_key: Optional key ordering siblings; display order otherwise.
        row_height: Estimated pixel height of one row.
        overscan: Extra rows rendered above and below the viewport.
    """

    def __init__(
            self,
            store: TreeStore,
            *,
            search: Optional[SearchIndex] = None,
            selection: Optional[SelectionState] = None,
            sort_key: Optional[SortKey] = None,
            row_height: int = const.DEFAULT_ROW_HEIGHT,
            overscan: int = const.DEFAULT_OVERSCAN,
    ) -> None:
        self._store = store
        self._search = search
        self._selection = selection
        self._sort_key = sort_key
        self.row_height = row_height
        self.overscan = overscan

        self._expanded: Set[str] = set()
        self._query = ""
        self._rows: List[VisibleRow] = []
        self._version = -1

    # -------------------------------------------------------------------------
    # STATE
    # -------------------------------------------------------------------------

    @property
    def rows(self) -> List[VisibleRow]:
        """Rows of the last applied computation."""
        return list(self._rows)

    @property
    def version(self) -> int:
        """Store version the current rows were computed from (-1 before any)."""
        return self._version

    @property
    def is_current(self) -> bool:
        return self._version == self._store.version

    @property
    def expanded_ids(self) -> FrozenSet[str]:
        return frozenset(self._expanded)

    @property
    def query(self) -> str:
        return self._query

    def expand(self, folder_id: str) -> None:
        self._expanded.add(self._require_folder(folder_id))

    def collapse(self, folder_id: str) -> None:
        self._expanded.discard(self._require_folder(folder_id))

    def toggle_expanded(self, folder_id: str) -> bool:
        """Flip a folder's expansion; returns the new state."""
        if self._require_folder(folder_id) in self._expanded:
            self._expanded.discard(folder_id)
            return False
        self._expanded.add(folder_id)
        return True

    def expand_all(self) -> None:
        self._expanded = {
            node_id for node_id in self._store
            if isinstance(self._store.find_node(node_id), FolderNode)
        }

    def collapse_all(self) -> None:
        self._expanded.clear()

    def set_search_query(self, query: Optional[str]) -> None:
        self._query = query or ""

    def prune(self) -> None:
        """Forget expansion state of folders that no longer exist."""
        self._expanded = {i for i in self._expanded if i in self._store}

    # -------------------------------------------------------------------------
    # RECONCILIATION
    # -------------------------------------------------------------------------

    def build_rows(self) -> List[VisibleRow]:
        """
        Compute the visible rows for the current store state.

        The root is hidden and its children sit at level 0. Collapsed
        folders hide their subtree. While a query is active only matches
        and their ancestors are shown, and those ancestors are expanded
        regardless of the expansion state.

        Returns:
            List[VisibleRow]: Rows in display order.
        """
        needle = self._query.strip()
        filtering = bool(needle) and self._search is not None
        matches: Set[str] = set()
        visible: Optional[Set[str]] = None
        if filtering:
            assert self._search is not None
            matches = self._search.search(needle)
            visible = self._search.visible_with_ancestors(matches)

        root = self._store.get_node(self._store.root_id)
        assert isinstance(root, FolderNode)

        entries = list(self._walk(root, visible))
        states = {}
        selected: FrozenSet[str] = frozenset()
        if self._selection is not None:
            selected = self._selection.selected_ids
            if self._selection.checkbox_mode:
                states = self._selection.checked_states(e[0].id for e in entries)

        rows: List[VisibleRow] = []
        for node, level, index, is_last, expanded in entries:
            is_folder = isinstance(node, FolderNode)
            rows.append(VisibleRow(
                id=node.id,
                name=node.name,
                node_type=node.node_type,
                level=level,
                parent_id=node.parent_id,
                index=index,
                is_folder=is_folder,
                is_expanded=expanded,
                has_children=bool(node.children) if isinstance(node, FolderNode) else False,
                is_last_child=is_last,
                matches_search=node.id in matches,
                checked_state=states.get(node.id),
                is_selected=node.id in selected,
            ))
        return rows

    def compute(self) -> Tuple[int, List[VisibleRow]]:
        """Compute rows together with the store version they belong to."""
        return self._store.version, self.build_rows()

    def apply(self, version: int, rows: List[VisibleRow]) -> bool:
        """
        Install a computation unless the store has changed since.

        Returns:
            bool: False when the computation was stale and got discarded.
        """
        if version != self._store.version:
            logger.debug(f"Discarding stale rows (v{version}, store at v{self._store.version})")
            return False
        self._rows = rows
        self._version = version
        return True

    def rebuild(self) -> bool:
        """Recompute and apply rows in one step."""
        version, rows = self.compute()
        return self.apply(version, rows)

    # -------------------------------------------------------------------------
    # VIRTUALIZATION & OUTPUT
    # -------------------------------------------------------------------------

    def visible_window(
            self,
            scroll_offset: float,
            viewport_height: float,
            *,
            row_height: Optional[int] = None,
            overscan: Optional[int] = None,
    ) -> VirtualWindow:
        """
        Rows whose estimated position intersects the viewport.

        Args:
            scroll_offset: Pixels scrolled from the top (negative is clamped).
            viewport_height: Visible height in pixels.
            row_height: Row height override.
            overscan: Overscan override.

        Raises:
            ValueError: If row_height is not positive or the viewport negative.
        """
        height = self.row_height if row_height is None else row_height
        extra = self.overscan if overscan is None else overscan
        if height <= 0:
            raise ValueError(f"row_height must be positive, got {height}")
        if viewport_height < 0:
            raise ValueError(f"viewport_height cannot be negative, got {viewport_height}")

        total = len(self._rows)
        offset = max(0.0, float(scroll_offset))
        first_visible = int(offset // height)
        last_visible = int(math.ceil((offset + viewport_height) / height))

        start = min(total, max(0, first_visible - max(0, extra)))
        end = min(total, max(start, last_visible + max(0, extra)))
        return VirtualWindow(
            start=start,
            end=end,
            offset_top=start * height,
            total_height=total * height,
            rows=tuple(self._rows[start:end]),
        )

    def render_lines(self, show_ids: bool = False) -> List[str]:
        """ASCII rendering of the current rows."""
        show_checks = self._selection is not None and self._selection.checkbox_mode
        return render_rows(self._rows, show_ids=show_ids, show_checks=show_checks)

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _require_folder(self, folder_id: str) -> str:
        if not isinstance(self._store.get_node(folder_id), FolderNode):
            raise NotAFolderError(folder_id)
        return folder_id

    def _ordered_children(self, folder: FolderNode, visible: Optional[Set[str]]) -> List[Node]:
        children = [self._store.find_node(c) for c in folder.children]
        nodes = [n for n in children if n is not None and (visible is None or n.id in visible)]
        if self._sort_key is not None:
            nodes.sort(key=self._sort_key)
        return nodes

    def _walk(
            self,
            root: FolderNode,
            visible: Optional[Set[str]],
    ) -> Iterator[Tuple[Node, int, int, bool, bool]]:
        """Pre-order walk yielding (node, level, index, is_last, is_expanded)."""
        stack: List[Tuple[List[Node], int, int]] = [(self._ordered_children(root, visible), 0, 0)]
        while stack:
            siblings, level, position = stack.pop()
            if position >= len(siblings):
                continue
            node = siblings[position]
            stack.append((siblings, level, position + 1))

            expanded = False
            children: List[Node] = []
            if isinstance(node, FolderNode):
                if visible is not None:
                    children = self._ordered_children(node, visible)
                    expanded = bool(children) or node.id in self._expanded
                elif node.id in self._expanded:
                    children = self._ordered_children(node, None)
                    expanded = True

            yield node, level, position, position == len(siblings) - 1, expanded
            if children:
                stack.append((children, level + 1, 0))
