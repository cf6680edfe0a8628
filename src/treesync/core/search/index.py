from __future__ import annotations

"""
Search and Filter Index.

Case-insensitive substring matching over node fields, with results cached
per (query, store version) so that repeated rebuilds of an unchanged tree
do not rescan it.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Set, Tuple

from treesync.core.tree.hierarchy import iter_ancestors
from treesync.core.tree.store import TreeStore
from treesync.domain.tree_models import FileNode, Node

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS: FrozenSet[str] = frozenset({"name", "extension", "mime_type"})


class SearchIndex:
    """
    Query matcher bound to one store.

    Args:
        store: The store to search.
        fields: Node fields compared against the query.

    Raises:
        ValueError: If a field is not searchable.
    """

    def __init__(self, store: TreeStore, fields: Sequence[str] = ("name",)) -> None:
        unknown = [f for f in fields if f not in SEARCHABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unsupported search fields: {unknown}")
        self._store = store
        self._fields: Tuple[str, ...] = tuple(fields)
        self._cache: Dict[Tuple[str, int], FrozenSet[str]] = {}

    @property
    def fields(self) -> Tuple[str, ...]:
        return self._fields

    def search(self, query: Optional[str]) -> Set[str]:
        """
        Ids whose fields contain the query (case-insensitive).

        A blank query matches every id. Otherwise the root never matches.
        """
        needle = (query or "").strip().lower()
        if not needle:
            return set(self._store)

        key = (needle, self._store.version)
        cached = self._cache.get(key)
        if cached is None:
            cached = frozenset(
                node_id for node_id in self._store
                if node_id != self._store.root_id
                and self._matches(self._store.get_node(node_id), needle)
            )
            self._cache = {k: v for k, v in self._cache.items() if k[1] == self._store.version}
            self._cache[key] = cached
            logger.debug(f"Search '{needle}' matched {len(cached)} items")
        return set(cached)

    def visible_with_ancestors(self, matches: Iterable[str]) -> Set[str]:
        """Matches plus every ancestor needed to reach them from the root."""
        visible: Set[str] = set()
        for node_id in matches:
            if node_id not in self._store:
                continue
            visible.add(node_id)
            visible.update(iter_ancestors(self._store.find_node, node_id))
        return visible

    def _matches(self, node: Node, needle: str) -> bool:
        for name in self._fields:
            if name != "name" and not isinstance(node, FileNode):
                continue
            value = getattr(node, name, None)
            if value and needle in str(value).lower():
                return True
        return False
