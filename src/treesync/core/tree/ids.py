from __future__ import annotations

"""
Node Identifier Generation.

Ids are type-prefixed, carry a monotonic counter and a random suffix, and
are checked against both live and retired ids so that an id is never
handed out twice within a tree instance.
"""

import itertools
import secrets
import string
from typing import Callable, Iterator

from treesync.domain import constants as const
from treesync.domain.tree_models import NodeType

_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 8) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def is_transient_id(node_id: str) -> bool:
    """Check whether an id marks an optimistic, not-yet-persisted node."""
    return bool(const.TRANSIENT_ID_PATTERN.match(node_id))


def make_transient_id(node_type: NodeType) -> str:
    """Create an id for an optimistic node, e.g. 'folder-temp-3f9k2a0b'."""
    return f"{node_type.value}-temp-{_random_suffix()}"


class IdGenerator:
    """
    Produces fresh node ids for one tree instance.

    Args:
        is_taken: Predicate telling whether an id is live or retired.
    """

    def __init__(self, is_taken: Callable[[str], bool]) -> None:
        self._is_taken = is_taken
        self._counter: Iterator[int] = itertools.count(1)

    def next_id(self, node_type: NodeType) -> str:
        prefix = const.FOLDER_ID_PREFIX if node_type is NodeType.FOLDER else const.FILE_ID_PREFIX
        while True:
            candidate = f"{prefix}-{next(self._counter)}-{_random_suffix()}"
            if not self._is_taken(candidate):
                return candidate
