from __future__ import annotations

"""
Selection and Checkbox State.

Tracks which items are selected and which carry an explicit checked flag,
and computes the tri-state (checked / unchecked / indeterminate) display
value of folders from their children. In checkbox mode the two sets can be
mirrored so that selecting an item also checks it and vice versa.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Set

from treesync.core.tree.hierarchy import descendant_ids
from treesync.core.tree.store import TreeStore
from treesync.domain.tree_models import FolderNode

logger = logging.getLogger(__name__)


class CheckedState(str, Enum):
    CHECKED = "checked"
    UNCHECKED = "unchecked"
    INDETERMINATE = "indeterminate"


class SelectionState:
    """
    Selection and checked flags of one tree instance.

    Args:
        store: Store the ids refer to.
        checkbox_mode: Whether checkboxes are shown for this tree.
        mirror: Copy selection changes into the checked set and back while
            checkbox_mode is on.
    """

    def __init__(self, store: TreeStore, *, checkbox_mode: bool = False, mirror: bool = True) -> None:
        self._store = store
        self.checkbox_mode = checkbox_mode
        self.mirror = mirror
        self._selected: Set[str] = set()
        self._checked: Set[str] = set()

    # -------------------------------------------------------------------------
    # SELECTION
    # -------------------------------------------------------------------------

    @property
    def selected_ids(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    @property
    def checked_ids(self) -> FrozenSet[str]:
        """Ids whose own checked flag is set (not the computed state)."""
        return frozenset(self._checked)

    @property
    def mirroring(self) -> bool:
        return self.checkbox_mode and self.mirror

    def select(self, node_id: str, multi_select: bool = False) -> None:
        """
        Select an item.

        A plain select replaces the selection; multi_select toggles the item
        in or out of it. Selecting the already selected root clears both the
        selection and every checked flag.

        Raises:
            NodeNotFoundError: If the id is unknown.
        """
        self._store.get_node(node_id)

        if node_id == self._store.root_id and node_id in self._selected:
            self._selected.clear()
            self._checked.clear()
            logger.debug("Root reselected: selection and checked state cleared")
            return

        if not multi_select:
            self._selected = {node_id}
        elif node_id in self._selected:
            self._selected.discard(node_id)
        else:
            self._selected.add(node_id)
        self._sync_from_selection()

    def select_many(self, ids: Iterable[str]) -> None:
        """Replace the selection with the given ids."""
        batch = list(ids)
        for node_id in batch:
            self._store.get_node(node_id)
        self._selected = set(batch)
        self._sync_from_selection()

    def clear_selection(self) -> None:
        self._selected.clear()
        self._sync_from_selection()

    def is_selected(self, node_id: str) -> bool:
        return node_id in self._selected

    # -------------------------------------------------------------------------
    # CHECKBOXES
    # -------------------------------------------------------------------------

    def set_checked(self, ids: Iterable[str], checked: bool, *, cascade: bool = True) -> None:
        """
        Set the own checked flag of items.

        Args:
            ids: Items to update.
            checked: New flag value.
            cascade: Apply the same flag to every descendant of a folder.

        Raises:
            NodeNotFoundError: If an id is unknown; no flag is changed.
        """
        batch = list(ids)
        for node_id in batch:
            self._store.get_node(node_id)

        affected: List[str] = []
        for node_id in batch:
            affected.append(node_id)
            if cascade:
                affected.extend(descendant_ids(self._store.find_node, node_id))

        if checked:
            self._checked.update(affected)
        else:
            self._checked.difference_update(affected)
        self._sync_from_checked()

    def toggle_checked(self, node_id: str) -> CheckedState:
        """Flip an item: anything not fully checked becomes checked."""
        target = self.checked_state(node_id) is not CheckedState.CHECKED
        self.set_checked([node_id], target)
        return self.checked_state(node_id)

    def checked_state(self, node_id: str) -> CheckedState:
        """
        Computed display state of an item.

        Files report their own flag. A folder reports its own flag when none
        of its children contribute; otherwise it is checked when every
        contributing child is checked, unchecked when none is, and
        indeterminate in between. Contributing children are files,
        non-empty folders and explicitly checked empty folders.
        """
        self._store.get_node(node_id)
        return self._compute(node_id, {})

    def checked_states(self, ids: Iterable[str]) -> Dict[str, CheckedState]:
        """Computed state of many items, sharing work across subtrees."""
        memo: Dict[str, CheckedState] = {}
        return {node_id: self._compute(node_id, memo) for node_id in ids if node_id in self._store}

    def get_checked_items(self) -> List[str]:
        """Ids whose computed state is checked, in store order."""
        memo: Dict[str, CheckedState] = {}
        return [
            node_id for node_id in self._store
            if self._compute(node_id, memo) is CheckedState.CHECKED
        ]

    # -------------------------------------------------------------------------
    # MAINTENANCE
    # -------------------------------------------------------------------------

    def decouple(self) -> None:
        """Stop mirroring selection and checked state into each other."""
        self.mirror = False

    def prune(self) -> None:
        """Forget ids that no longer exist in the store."""
        self._selected = {i for i in self._selected if i in self._store}
        self._checked = {i for i in self._checked if i in self._store}

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _own(self, node_id: str) -> CheckedState:
        return CheckedState.CHECKED if node_id in self._checked else CheckedState.UNCHECKED

    def _compute(self, node_id: str, memo: Dict[str, CheckedState]) -> CheckedState:
        if node_id in memo:
            return memo[node_id]

        node = self._store.find_node(node_id)
        if not isinstance(node, FolderNode):
            memo[node_id] = self._own(node_id)
            return memo[node_id]

        contributing = [c for c in node.children if self._contributes(c)]
        if not contributing:
            memo[node_id] = self._own(node_id)
            return memo[node_id]

        states = {self._compute(c, memo) for c in contributing}
        if states == {CheckedState.CHECKED}:
            result = CheckedState.CHECKED
        elif states == {CheckedState.UNCHECKED}:
            result = CheckedState.UNCHECKED
        else:
            result = CheckedState.INDETERMINATE
        memo[node_id] = result
        return result

    def _contributes(self, node_id: str) -> bool:
        node = self._store.find_node(node_id)
        if node is None:
            return False
        if not isinstance(node, FolderNode):
            return True
        return bool(node.children) or node_id in self._checked

    def _sync_from_selection(self) -> None:
        if self.mirroring:
            self._checked = set(self._selected)

    def _sync_from_checked(self) -> None:
        if self.mirroring:
            self._selected = set(self._checked)
