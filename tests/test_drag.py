"""
Tests for the drag controller.

A recording pointer capture checks that global listeners are released on
every exit path: drop, cancel, a failing commit and teardown.
"""

import pytest

from nestfilter.core.drag import DragController, DragPhase
from nestfilter.core.interaction import DRAG, FIELD_MENU, InteractionState
from nestfilter.core.layout import DropTarget, compute_layout
from nestfilter.core.mutations import move_condition


class RecordingCapture:
    def __init__(self):
        self.events = []
        self.on_move = None
        self.on_release = None

    def acquire(self, on_move, on_release):
        self.events.append("acquire")
        self.on_move = on_move
        self.on_release = on_release

    def release(self):
        self.events.append("release")
        self.on_move = None
        self.on_release = None

    @property
    def held(self):
        return self.on_move is not None


@pytest.fixture
def capture():
    return RecordingCapture()


@pytest.fixture
def commits():
    return []


@pytest.fixture
def controller(capture, commits):
    return DragController(commit=lambda cid, target: commits.append((cid, target)), capture=capture)


class TestDragLifecycle:
    """Tests for beginning, moving and releasing a drag."""

    def test_begin_records_origin(self, controller, capture, flat_forest):
        layout = compute_layout(flat_forest)
        assert controller.begin("b", 50, 170, layout)
        assert controller.is_dragging
        assert controller.phase is DragPhase.DRAGGING
        assert controller.origin == DropTarget(None, 1)
        assert controller.target == DropTarget(None, 1)
        assert controller.preview.left == 32
        assert controller.preview.top == 163.5
        assert capture.events == ["acquire"]

    def test_begin_on_unknown_row_fails(self, controller, capture, flat_forest):
        assert not controller.begin("zzz", 0, 0, compute_layout(flat_forest))
        assert not controller.is_dragging
        assert capture.events == []

    def test_move_follows_pointer(self, controller, flat_forest):
        layout = compute_layout(flat_forest)
        controller.begin("a", 50, 130, layout)
        controller.move(60, 230)
        assert controller.preview.left == 42
        assert controller.preview.top == 223.5
        assert controller.target == DropTarget(None, 2)

    def test_release_commits_once(self, controller, capture, commits, flat_forest):
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        outcome = capture.on_release(60, 230)
        assert outcome is DragPhase.DROPPED
        assert commits == [("a", DropTarget(None, 2))]
        assert controller.last_outcome is DragPhase.DROPPED
        assert not controller.is_dragging
        assert capture.events == ["acquire", "release"]

    def test_release_outside_cancels(self, controller, capture, commits, flat_forest):
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        assert controller.release(900, 900) is DragPhase.CANCELLED
        assert commits == []
        assert capture.events == ["acquire", "release"]

    def test_release_when_idle(self, controller):
        assert controller.release(0, 0) is None

    def test_failing_commit_still_releases(self, capture, flat_forest):
        def commit(cid, target):
            raise RuntimeError("boom")

        controller = DragController(commit=commit, capture=capture)
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        with pytest.raises(RuntimeError):
            controller.release(60, 230)
        assert not capture.held
        assert not controller.is_dragging

    def test_cancel_and_teardown_release(self, controller, capture, commits, flat_forest):
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        controller.teardown()
        assert capture.events == ["acquire", "release"]
        assert commits == []
        assert controller.last_outcome is DragPhase.CANCELLED
        controller.teardown()
        assert capture.events == ["acquire", "release"]

    def test_begin_while_dragging_cancels_first(self, controller, capture, flat_forest):
        layout = compute_layout(flat_forest)
        controller.begin("a", 50, 130, layout)
        controller.begin("b", 50, 170, layout)
        assert controller.condition_id == "b"
        assert capture.events == ["acquire", "release", "acquire"]


class TestDragInteraction:
    """Tests for the drag's place in the interaction guard."""

    def test_opening_a_menu_cancels_drag(self, capture, commits, flat_forest):
        interaction = InteractionState()
        controller = DragController(
            commit=lambda cid, target: commits.append(cid),
            capture=capture,
            interaction=interaction,
        )
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        assert interaction.is_open(DRAG, "a")

        interaction.open(FIELD_MENU, "b")
        assert not controller.is_dragging
        assert not capture.held
        assert commits == []
        assert interaction.is_open(FIELD_MENU, "b")

    def test_drop_closes_interaction(self, capture, flat_forest):
        interaction = InteractionState()
        controller = DragController(commit=lambda cid, t: None, capture=capture, interaction=interaction)
        controller.begin("a", 50, 130, compute_layout(flat_forest))
        controller.release(60, 230)
        assert interaction.current is None

    def test_failing_capture_leaves_controller_idle(self, flat_forest):
        class UnavailableCapture(RecordingCapture):
            def acquire(self, on_move, on_release):
                raise RuntimeError("no application")

        capture = UnavailableCapture()
        interaction = InteractionState()
        controller = DragController(commit=lambda cid, t: None, capture=capture, interaction=interaction)

        with pytest.raises(RuntimeError):
            controller.begin("a", 50, 130, compute_layout(flat_forest))

        assert controller.phase is DragPhase.IDLE
        assert controller.preview is None
        assert controller.last_outcome is DragPhase.CANCELLED
        assert interaction.current is None
        assert capture.events == []


def test_drop_applies_single_move(flat_forest):
    """Committing through move_condition yields the previewed order."""
    state = {"forest": flat_forest}

    def commit(cid, target):
        state["forest"] = move_condition(state["forest"], cid, target.group_id, target.index)

    controller = DragController(commit=commit)
    controller.begin("a", 50, 130, compute_layout(flat_forest))
    controller.move(60, 230)
    preview_keys = [e.key for e in compute_layout(flat_forest, preview=controller.preview).entries]
    controller.release(60, 230)
    assert [item.id for item in state["forest"].items] == preview_keys == ["b", "c", "a"]
