from __future__ import annotations

"""
Global Pytest Configuration and Fixtures.

This module sets up the testing environment, including:
1. Path manipulation to ensure the 'src' directory is importable.
2. A small reference tree shared by the store, mutation, selection,
   drag-and-drop and rendering tests.
3. Isolation of the user data directory so no test touches the real one.
"""

import os
import sys
from pathlib import Path
from typing import Callable, Dict

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_SRC_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if _SRC_PATH not in sys.path:
    sys.path.insert(0, _SRC_PATH)

from treesync.core.tree.mutations import MutationEngine  # noqa: E402
from treesync.core.tree.store import TreeStore  # noqa: E402
from treesync.domain.tree_models import FileNode, FolderNode, Node  # noqa: E402


# -----------------------------------------------------------------------------
# Reference Tree
# -----------------------------------------------------------------------------
def build_sample_nodes() -> Dict[str, Node]:
    """
    Build the reference tree used across the suite.

    Structure:
        root/
        ├── docs/
        │   ├── a.txt          (file-a)
        │   ├── b.txt          (file-b)
        │   └── sub/
        │       └── c.md       (file-c)
        ├── empty/
        └── notes.txt          (file-n)
    """
    nodes = [
        FolderNode(id="root", name="root", children=["docs", "empty", "file-n"]),
        FolderNode(id="docs", name="docs", parent_id="root", children=["file-a", "file-b", "sub"]),
        FileNode(id="file-a", name="a.txt", parent_id="docs", extension="txt", mime_type="text/plain"),
        FileNode(id="file-b", name="b.txt", parent_id="docs", extension="txt", file_size=10),
        FolderNode(id="sub", name="sub", parent_id="docs", children=["file-c"]),
        FileNode(id="file-c", name="c.md", parent_id="sub", extension="md", mime_type="text/markdown"),
        FolderNode(id="empty", name="empty", parent_id="root"),
        FileNode(id="file-n", name="notes.txt", parent_id="root", extension="txt"),
    ]
    return {n.id: n for n in nodes}


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def sample_nodes() -> Dict[str, Node]:
    """Fresh copy of the reference tree nodes (paths not yet derived)."""
    return build_sample_nodes()


@pytest.fixture
def store(sample_nodes: Dict[str, Node]) -> TreeStore:
    """Store holding the reference tree, strict so bad fixtures fail loudly."""
    return TreeStore("tree-1", "root", sample_nodes, strict=True)


@pytest.fixture
def engine(store: TreeStore) -> MutationEngine:
    return MutationEngine(store)


@pytest.fixture
def fake_clock() -> Callable[..., float]:
    """
    Manually advanced monotonic clock.

    Call clock() to read it and clock.advance(seconds) to move it forward.
    """
    class _Clock:
        def __init__(self) -> None:
            self.now = 1000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return _Clock()


@pytest.fixture
def user_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect every user data directory lookup to a temporary folder."""
    target = tmp_path / "user_data"
    target.mkdir()
    monkeypatch.setattr("treesync.infra.fs.get_user_data_dir", lambda: str(target))
    monkeypatch.setattr("treesync.domain.config.get_user_data_dir", lambda: str(target))
    monkeypatch.setattr("treesync.infra.logging.core.get_user_data_dir", lambda: str(target))
    return target
