from __future__ import annotations

"""
Unit tests for the Tree Session composition root.

Verifies:
1. Store commits schedule a single debounced rebuild of the rows.
2. Capability flags gate the user-facing operations.
3. Host callbacks are invoked and isolated from failures.
4. Settings are validated before they configure the components.
5. Disposal detaches the session from its store.
"""

from typing import Dict, List

import pytest

from treesync.core.selection.checkboxes import CheckedState
from treesync.core.services.session import TreeCallbacks, TreeSession
from treesync.core.tree.store import TreeStore
from treesync.domain.config import TreeFeatures
from treesync.domain.drag_models import DataTransfer, DragTarget
from treesync.domain.errors import FeatureDisabledError
from treesync.domain.tree_models import FileNode, FolderNode, Node


@pytest.fixture
def session(sample_nodes: Dict[str, Node], fake_clock) -> TreeSession:
    return TreeSession("tree-1", "root", sample_nodes, clock=fake_clock)


def _ids(session: TreeSession) -> List[str]:
    return [r.id for r in session.rows]

# -----------------------------------------------------------------------------
# Reconciliation
# -----------------------------------------------------------------------------

def test_initial_rows_are_built(session: TreeSession) -> None:
    assert _ids(session) == ["docs", "empty", "file-n"]
    assert not session.scheduler.pending


def test_commits_are_debounced(session: TreeSession, fake_clock) -> None:
    first = session.add_file("one.txt", "root")
    session.add_file("two.txt", "root")
    session.add_folder("three", "root")

    assert first not in _ids(session)
    assert session.poll() is False

    fake_clock.advance(0.1)
    assert session.poll() is True
    assert session.scheduler.runs == 1
    assert _ids(session)[3] == first
    assert len(session.rows) == 6


def test_view_changes_request_rebuilds(session: TreeSession) -> None:
    assert session.toggle_expanded("docs") is True
    session.flush()
    assert "file-a" in _ids(session)

    session.collapse_all()
    session.flush()
    assert _ids(session) == ["docs", "empty", "file-n"]

    session.select("file-n")
    session.flush()
    assert session.rows[-1].is_selected


def test_search_filters_rows(session: TreeSession) -> None:
    assert session.search("c.md") == {"file-c"}
    session.flush()
    assert _ids(session) == ["docs", "sub", "file-c"]

    session.search("")
    session.flush()
    assert _ids(session) == ["docs", "empty", "file-n"]


def test_visible_window_uses_settings(sample_nodes: Dict[str, Node]) -> None:
    session = TreeSession("t", "root", sample_nodes, settings={"row_height": 20, "overscan": 0})
    window = session.visible_window(0, 40)
    assert (window.start, window.end) == (0, 2)
    assert window.total_height == 60

# -----------------------------------------------------------------------------
# Capability gating
# -----------------------------------------------------------------------------

def test_read_only_session_blocks_edits(sample_nodes: Dict[str, Node]) -> None:
    session = TreeSession("t", "root", sample_nodes, features=TreeFeatures.read_only())

    with pytest.raises(FeatureDisabledError) as exc:
        session.rename_item("docs", "x")
    assert exc.value.feature == "rename"
    with pytest.raises(FeatureDisabledError):
        session.remove_items(["docs"])
    with pytest.raises(FeatureDisabledError):
        session.clear_folder("docs")
    with pytest.raises(FeatureDisabledError):
        session.start_drag(["file-a"])
    assert session.store.version == 0


def test_default_features_gate_checkboxes_and_foreign_drops(session: TreeSession) -> None:
    with pytest.raises(FeatureDisabledError):
        session.toggle_checked("docs")
    with pytest.raises(FeatureDisabledError):
        session.create_foreign_drag_object(["file-a"])
    with pytest.raises(FeatureDisabledError):
        session.drop_foreign(DataTransfer(items={"text/plain": "x"}), DragTarget("root"))


def test_single_select_only(sample_nodes: Dict[str, Node]) -> None:
    session = TreeSession("t", "root", sample_nodes, features=TreeFeatures(multi_select=False))
    session.select("file-a")
    with pytest.raises(FeatureDisabledError):
        session.select("file-b", multi_select=True)


def test_features_from_settings(sample_nodes: Dict[str, Node]) -> None:
    session = TreeSession("t", "root", sample_nodes, settings={"features": {"checkboxes": True}})
    assert session.features.checkboxes
    assert session.selection.checkbox_mode
    assert session.toggle_checked("docs") is CheckedState.CHECKED
    # selection mirrors the checked set in checkbox mode
    assert "file-c" in session.selection.selected_ids


def test_internal_drag_through_session(session: TreeSession) -> None:
    session.start_drag(["file-a"])
    assert session.drag_over("empty")
    outcome = session.drop()
    assert outcome.changed
    session.flush()
    assert session.store.get_children("empty") == ["file-a"]

# -----------------------------------------------------------------------------
# Callbacks and settings
# -----------------------------------------------------------------------------

def test_callbacks_are_forwarded(sample_nodes: Dict[str, Node]) -> None:
    log: List[tuple] = []
    callbacks = TreeCallbacks(
        on_rename=lambda i, n: log.append(("rename", i, n)),
        on_move=lambda ids, p: log.append(("move", ids, p)),
        on_change=lambda store: log.append(("change", store.version)),
    )
    session = TreeSession("t", "root", sample_nodes, callbacks=callbacks)

    session.rename_item("file-a", "z.txt")
    session.start_drag(["file-a"])
    session.drag_over("empty")
    session.drop()

    assert log == [
        ("change", 1),
        ("rename", "file-a", "z.txt"),
        ("change", 2),
        ("move", ["file-a"], "empty"),
    ]


def test_failing_change_callback_is_isolated(sample_nodes: Dict[str, Node]) -> None:
    def broken(store: TreeStore) -> None:
        raise RuntimeError("host crashed")

    session = TreeSession("t", "root", sample_nodes, callbacks=TreeCallbacks(on_change=broken))
    session.add_folder("ok", "root")
    assert session.scheduler.pending


def test_settings_are_validated(sample_nodes: Dict[str, Node]) -> None:
    session = TreeSession("t", "root", sample_nodes, settings={"debounce_ms": "10", "max_name_length": 5})
    assert session.scheduler.delay_ms == 10
    assert session.engine.max_name_length == 5

# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------

def test_reinitialize_keeps_transient_nodes(session: TreeSession, sample_nodes: Dict[str, Node]) -> None:
    session.add_file("upload.txt", "docs", node_id="file-temp-1")
    session.reinitialize("root", sample_nodes)

    assert "file-temp-1" in session.store
    assert session.store.get_children("docs")[-1] == "file-temp-1"


def test_selection_is_pruned_after_removal(session: TreeSession) -> None:
    session.select("file-a")
    session.remove_items(["docs"])
    assert session.selection.selected_ids == frozenset()


def test_dispose_detaches(session: TreeSession) -> None:
    session.dispose()
    session.dispose()
    assert session.disposed

    session.store.commit({"x": FileNode(id="x", name="x.txt", parent_id="root")})
    assert not session.scheduler.pending


def test_strict_session_rejects_bad_data() -> None:
    from treesync.domain.errors import TreeIntegrityError

    nodes = [FolderNode(id="r", name="r", children=["ghost"])]
    with pytest.raises(TreeIntegrityError):
        TreeSession("t", "r", nodes, strict=True)
