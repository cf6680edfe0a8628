from __future__ import annotations

"""
Tree Instance Registry.

Explicit owner of every live tree session in a process. Sessions are
created, looked up and disposed by tree id; nothing about a tree lives in
module-level state, so independent registries (and the trees they hold)
never interfere.
"""

import logging
from typing import Any, Dict, Iterator, List, Sequence

from treesync.core.services.session import TreeSession
from treesync.core.tree.store import NodeSource
from treesync.domain.drag_models import DragTarget
from treesync.domain.errors import DuplicateTreeError, TreeNotRegisteredError
from treesync.domain.operation_models import ForeignDropResult

logger = logging.getLogger(__name__)


class TreeRegistry:
    """
    Creates and owns TreeSession instances.

    Args:
        **defaults: Keyword arguments applied to every created session
            unless overridden per call (settings, clock...).
    """

    def __init__(self, **defaults: Any) -> None:
        self._defaults = defaults
        self._sessions: Dict[str, TreeSession] = {}

    def create(self, tree_id: str, root_id: str, nodes: NodeSource, **options: Any) -> TreeSession:
        """
        Build and register a session.

        Raises:
            DuplicateTreeError: If tree_id is already registered.
        """
        if tree_id in self._sessions:
            raise DuplicateTreeError(tree_id)
        session = TreeSession(tree_id, root_id, nodes, **{**self._defaults, **options})
        self._sessions[tree_id] = session
        logger.info(f"Registered tree '{tree_id}'")
        return session

    def get(self, tree_id: str) -> TreeSession:
        session = self._sessions.get(tree_id)
        if session is None:
            raise TreeNotRegisteredError(tree_id)
        return session

    def dispose(self, tree_id: str) -> None:
        """
        Tear down a session and forget it.

        Raises:
            TreeNotRegisteredError: If tree_id is unknown.
        """
        session = self._sessions.pop(tree_id, None)
        if session is None:
            raise TreeNotRegisteredError(tree_id)
        session.dispose()
        logger.info(f"Disposed tree '{tree_id}'")

    def dispose_all(self) -> None:
        for tree_id in list(self._sessions):
            self.dispose(tree_id)

    def poll_all(self) -> int:
        """Run due rebuilds in every session; returns how many ran."""
        return sum(1 for s in self._sessions.values() if s.poll())

    def transfer(
            self,
            source_tree_id: str,
            ids: Sequence[str],
            target_tree_id: str,
            target: DragTarget,
    ) -> ForeignDropResult:
        """
        Move items between two registered trees through the foreign drag path.

        The source keeps its items when the target rejects the drop.
        """
        source = self.get(source_tree_id)
        destination = self.get(target_tree_id)

        drag_object = source.create_foreign_drag_object(ids)
        result = destination.drop_foreign(drag_object.to_data_transfer(), target)
        source.complete_foreign_drop(drag_object)
        return result

    @property
    def tree_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, tree_id: object) -> bool:
        return tree_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[TreeSession]:
        return iter(list(self._sessions.values()))
