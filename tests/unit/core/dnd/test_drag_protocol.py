from __future__ import annotations

"""
Unit tests for the Drag-and-Drop Protocol.

Verifies:
1. The internal drag state machine and its phase errors.
2. Drop legality (self, descendants, files, root siblings).
3. Drop resolution into moves and reorders with host callbacks.
4. Foreign drags: serialization, insertion with fresh ids, OS file
   routing, text drops and idempotent source cleanup.
"""

from typing import Dict, List, Sequence, Tuple

import pytest

from treesync.core.dnd.protocol import DragController
from treesync.core.tree.mutations import MutationEngine
from treesync.core.tree.store import TreeStore
from treesync.domain.drag_models import (
    DataTransfer,
    DragPhase,
    DragTarget,
    DropPosition,
    ExternalFile,
    ForeignDragObject,
)
from treesync.domain.errors import (
    CyclicMoveError,
    DragStateError,
    ForeignDropError,
    PayloadError,
    RootOperationError,
)
from treesync.domain.operation_models import MoveKind
from treesync.domain.tree_models import FileNode, FolderNode, Node


class RecordingIngestor:
    """Stand-in upload service returning a fixed forest."""

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], str, Dict[str, List[str]]]] = []

    def ingest(self, files: Sequence[ExternalFile], target_folder_id: str, folder_structure) -> List[Node]:
        self.calls.append((
            [f.name for f in files],
            target_folder_id,
            {k: [f.name for f in v] for k, v in folder_structure.items()},
        ))
        return [
            FolderNode(id="up-1", name="photos"),
            FileNode(id="up-2", name="a.jpg", parent_id="up-1"),
        ]


@pytest.fixture
def events() -> List[tuple]:
    return []


@pytest.fixture
def controller(store: TreeStore, engine: MutationEngine, events: List[tuple]) -> DragController:
    return DragController(
        store,
        engine,
        on_move=lambda ids, parent: events.append(("move", ids, parent)),
        on_reorder=lambda parent, order: events.append(("reorder", parent, order)),
    )


@pytest.fixture
def other_tree() -> Tuple[TreeStore, DragController]:
    store = TreeStore("tree-2", "r2", [FolderNode(id="r2", name="r2")])
    return store, DragController(store, MutationEngine(store))

# -----------------------------------------------------------------------------
# State machine
# -----------------------------------------------------------------------------

def test_phases(controller: DragController) -> None:
    assert controller.phase is DragPhase.IDLE
    controller.start_drag(["file-a"])
    assert controller.phase is DragPhase.DRAGGING
    assert controller.dragged_ids == ("file-a",)

    assert controller.drag_over("empty") is True
    assert controller.phase is DragPhase.DRAGGING_OVER
    assert controller.target == DragTarget("empty", DropPosition.INSIDE)

    controller.cancel()
    assert controller.phase is DragPhase.IDLE
    assert controller.dragged_ids == ()


def test_phase_errors(controller: DragController) -> None:
    with pytest.raises(DragStateError):
        controller.drag_over("docs")
    with pytest.raises(DragStateError):
        controller.drop()

    controller.start_drag(["file-a"])
    with pytest.raises(DragStateError):
        controller.start_drag(["file-b"])
    with pytest.raises(DragStateError):
        controller.drop()


def test_start_drag_validation(controller: DragController) -> None:
    with pytest.raises(RootOperationError):
        controller.start_drag(["root"])
    with pytest.raises(ValueError):
        controller.start_drag([])
    assert controller.phase is DragPhase.IDLE

# -----------------------------------------------------------------------------
# Legality
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("dragged, target, expected", [
    (["docs"], DragTarget("docs"), False),
    (["docs"], DragTarget("sub"), False),
    (["docs"], DragTarget("file-c", DropPosition.BEFORE), False),
    (["file-a"], DragTarget("file-b"), False),
    (["file-a"], DragTarget("root", DropPosition.AFTER), False),
    (["file-a"], DragTarget("ghost"), False),
    (["file-a"], DragTarget("empty"), True),
    (["file-a"], DragTarget("file-n", DropPosition.BEFORE), True),
    (["docs"], DragTarget("root"), True),
])
def test_can_drop(controller: DragController, dragged: List[str], target: DragTarget, expected: bool) -> None:
    assert controller.can_drop(dragged, target) is expected

# -----------------------------------------------------------------------------
# Drops
# -----------------------------------------------------------------------------

def test_drop_inside_folder_moves(controller: DragController, store: TreeStore, events: List[tuple]) -> None:
    controller.start_drag(["file-a"])
    controller.drag_over("empty")
    outcome = controller.drop()

    assert outcome.kind is MoveKind.MOVED
    assert store.get_children("empty") == ["file-a"]
    assert events == [("move", ["file-a"], "empty")]
    assert controller.phase is DragPhase.IDLE


def test_drop_before_sibling_reorders(controller: DragController, store: TreeStore, events: List[tuple]) -> None:
    controller.start_drag(["file-n"])
    controller.drag_over("docs", DropPosition.BEFORE)
    outcome = controller.drop()

    assert outcome.kind is MoveKind.REORDERED
    assert store.get_children("root") == ["file-n", "docs", "empty"]
    assert events == [("reorder", "root", ["file-n", "docs", "empty"])]


def test_drop_after_sibling(controller: DragController, store: TreeStore) -> None:
    controller.start_drag(["docs"])
    controller.drag_over("file-n", DropPosition.AFTER)
    controller.drop()
    assert store.get_children("root") == ["empty", "file-n", "docs"]


def test_drop_before_item_in_other_folder(controller: DragController, store: TreeStore) -> None:
    controller.start_drag(["file-a"])
    controller.drag_over("file-n", DropPosition.BEFORE)
    outcome = controller.drop()

    assert outcome.kind is MoveKind.MOVED
    assert store.get_children("root") == ["docs", "empty", "file-a", "file-n"]
    assert store.get_children("docs") == ["file-b", "sub"]


def test_illegal_drop_raises_and_resets(controller: DragController, store: TreeStore, events: List[tuple]) -> None:
    controller.start_drag(["docs"])
    assert controller.drag_over("sub") is False
    with pytest.raises(CyclicMoveError):
        controller.drop()

    assert controller.phase is DragPhase.IDLE
    assert store.version == 0
    assert events == []


def test_drop_next_to_root_is_rejected(controller: DragController) -> None:
    controller.start_drag(["file-a"])
    controller.drag_over("root", DropPosition.BEFORE)
    with pytest.raises(RootOperationError):
        controller.drop()


def test_unchanged_drop_skips_callbacks(controller: DragController, events: List[tuple]) -> None:
    controller.start_drag(["docs"])
    controller.drag_over("root")
    assert controller.drop().kind is MoveKind.UNCHANGED
    assert events == []


def test_failing_callback_does_not_undo_drop(store: TreeStore, engine: MutationEngine) -> None:
    def broken(ids: List[str], parent: str) -> None:
        raise RuntimeError("offline")

    controller = DragController(store, engine, on_move=broken)
    controller.start_drag(["file-a"])
    controller.drag_over("empty")
    controller.drop()
    assert store.get_node("file-a").parent_id == "empty"

# -----------------------------------------------------------------------------
# Foreign drags
# -----------------------------------------------------------------------------

def test_foreign_drag_object(controller: DragController) -> None:
    first = controller.create_foreign_drag_object(["sub", "file-c"])
    second = controller.create_foreign_drag_object(["sub"])

    assert first.format == "application/json"
    assert first.source_tree_id == "tree-1"
    assert first.ids == ("sub",)
    assert first.drag_id != second.drag_id
    with pytest.raises(RootOperationError):
        controller.create_foreign_drag_object(["root"])


def test_transfer_between_trees(controller: DragController, store: TreeStore, other_tree) -> None:
    target_store, target = other_tree
    drag = controller.create_foreign_drag_object(["sub"])

    result = target.drop_foreign(drag.to_data_transfer(), DragTarget("r2"))

    assert result.count == 2
    assert result.parent_id == "r2"
    new_sub, new_c = result.inserted_ids
    assert new_sub not in ("sub", "file-c")
    assert target_store.get_node(new_sub).name == "sub"
    assert target_store.get_node(new_sub).path == "/sub"
    assert target_store.get_children(new_sub) == [new_c]
    assert target_store.get_node(new_c).name == "c.md"

    assert sorted(controller.complete_foreign_drop(drag)) == ["file-c", "sub"]
    assert controller.complete_foreign_drop(drag) == []
    assert "sub" not in store


def test_completed_drag_history_is_bounded(
        controller: DragController,
        store: TreeStore,
        monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("treesync.domain.constants.COMPLETED_DRAG_HISTORY", 2)
    drags = [controller.create_foreign_drag_object([i]) for i in ("file-a", "file-b", "file-n")]

    for drag in drags:
        assert controller.complete_foreign_drop(drag) == [drag.ids[0]]

    assert list(controller._completed_drags) == [drags[1].drag_id, drags[2].drag_id]
    assert controller.complete_foreign_drop(drags[2]) == []
    assert controller.complete_foreign_drop(drags[0]) == []
    assert "file-a" not in store


def test_completion_from_other_tree_is_ignored(controller: DragController, store: TreeStore) -> None:
    drag = controller.create_foreign_drag_object(["file-a"])
    stranger = ForeignDragObject(drag.format, drag.data, "tree-9", drag.drag_id, drag.ids)
    assert controller.complete_foreign_drop(stranger) == []
    assert "file-a" in store


def test_foreign_drop_at_position(controller: DragController, store: TreeStore) -> None:
    payload = '[{"id": "x", "name": "x.txt", "type": "file"}]'
    result = controller.drop_foreign(
        DataTransfer(items={"application/json": payload}),
        DragTarget("file-b", DropPosition.BEFORE),
    )
    (new_id,) = result.inserted_ids
    assert store.get_children("docs") == ["file-a", new_id, "file-b", "sub"]


def test_foreign_text_drop(controller: DragController, store: TreeStore) -> None:
    result = controller.drop_foreign(DataTransfer(items={"text/plain": "hello.txt"}), DragTarget("empty"))
    (new_id,) = result.inserted_ids
    assert store.get_node(new_id).name == "hello.txt"
    assert store.get_children("empty") == [new_id]


def test_foreign_text_drop_of_reserved_name(controller: DragController, store: TreeStore) -> None:
    result = controller.drop_foreign(DataTransfer(items={"text/plain": "con."}), DragTarget("empty"))
    (new_id,) = result.inserted_ids
    assert store.get_node(new_id).name == "con_"


@pytest.mark.parametrize("size", ["1e400", "NaN", "-Infinity"])
def test_foreign_payload_with_unusable_size(controller: DragController, store: TreeStore, size: str) -> None:
    payload = '[{"id": "x", "name": "x.bin", "type": "file", "fileSize": ' + size + "}]"
    with pytest.raises(PayloadError):
        controller.drop_foreign(DataTransfer(items={"application/json": payload}), DragTarget("empty"))
    assert store.version == 0


def test_foreign_drop_rejections(controller: DragController, store: TreeStore) -> None:
    with pytest.raises(ForeignDropError):
        controller.drop_foreign(DataTransfer(), DragTarget("empty"))
    with pytest.raises(ForeignDropError):
        controller.drop_foreign(DataTransfer(items={"text/plain": "x"}), DragTarget("file-a"))
    with pytest.raises(ForeignDropError):
        controller.drop_foreign(DataTransfer(items={"text/plain": "x"}), DragTarget("root", DropPosition.AFTER))
    with pytest.raises(PayloadError):
        controller.drop_foreign(DataTransfer(items={"application/json": "{oops"}), DragTarget("empty"))
    assert store.version == 0


def test_os_files_need_an_ingestor(controller: DragController) -> None:
    transfer = DataTransfer(files=[ExternalFile(name="a.jpg")])
    with pytest.raises(ForeignDropError):
        controller.drop_foreign(transfer, DragTarget("empty"))


def test_os_files_are_routed_to_ingestor(store: TreeStore, engine: MutationEngine) -> None:
    ingestor = RecordingIngestor()
    controller = DragController(store, engine, ingestor=ingestor)
    transfer = DataTransfer(files=[
        ExternalFile(name="a.jpg", relative_path="photos/a.jpg"),
        ExternalFile(name="loose.txt"),
    ])

    result = controller.drop_foreign(transfer, DragTarget("empty"))

    assert ingestor.calls == [(["a.jpg", "loose.txt"], "empty", {"photos": ["a.jpg"]})]
    assert result.routed_to_ingestor
    assert result.folder_structure == {"photos": ["a.jpg"]}
    assert result.inserted_ids == ("up-1", "up-2")
    assert store.get_children("empty") == ["up-1"]
    assert store.get_node("up-1").path == "/empty/photos"
