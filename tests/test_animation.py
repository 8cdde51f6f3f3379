"""
Tests for the FLIP animation reconciler.
"""

from nestfilter.core.animation import AnimationPhase, AnimationReconciler
from nestfilter.core.layout import compute_layout
from nestfilter.core.models import FilterForest
from nestfilter.core.mutations import move_condition, remove_condition

from conftest import condition


class ManualScheduler:
    """Collects scheduled callbacks so tests decide when the next paint happens."""

    def __init__(self):
        self.pending = []

    def __call__(self, callback):
        self.pending.append(callback)

    def paint(self):
        pending, self.pending = self.pending, []
        for callback in pending:
            callback()


class TestReconciler:
    """Tests for AnimationReconciler."""

    def test_first_pass_has_no_deltas(self, flat_forest):
        """Entries without a previous position do not animate."""
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler)
        assert reconciler.reconcile(compute_layout(flat_forest)) == {}
        assert reconciler.phase is AnimationPhase.STABLE
        assert scheduler.pending == []

    def test_moved_entries_get_offsets(self, flat_forest):
        """Moved entries are offset back to where they were."""
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler)
        reconciler.reconcile(compute_layout(flat_forest))

        forest = move_condition(flat_forest, "a", None, 2)
        deltas = reconciler.reconcile(compute_layout(forest))
        assert deltas == {"a": -80.0, "b": 40.0, "c": 40.0}
        assert reconciler.offset("b") == 40.0
        assert reconciler.phase is AnimationPhase.DELTA_APPLIED
        assert len(scheduler.pending) == 1

    def test_offsets_cleared_after_paint(self, flat_forest):
        """The next paint clears the offsets and notifies the renderer."""
        settled = []
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler, on_settled=lambda: settled.append(True))
        reconciler.reconcile(compute_layout(flat_forest))
        reconciler.reconcile(compute_layout(remove_condition(flat_forest, "a")))

        scheduler.paint()
        assert reconciler.phase is AnimationPhase.STABLE
        assert reconciler.offset("b") == 0.0
        assert settled == [True]

    def test_stale_callback_ignored(self, flat_forest):
        """A callback from an older pass does not clear newer offsets."""
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler)
        reconciler.reconcile(compute_layout(flat_forest))
        reconciler.reconcile(compute_layout(move_condition(flat_forest, "a", None, 2)))
        first = scheduler.pending.pop()

        reconciler.reconcile(compute_layout(flat_forest))
        first()
        assert reconciler.phase is AnimationPhase.DELTA_APPLIED

        scheduler.paint()
        assert reconciler.phase is AnimationPhase.STABLE

    def test_removed_and_added_entries_do_not_animate(self):
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler)
        reconciler.reconcile(compute_layout(FilterForest(items=(condition("a"),))))
        deltas = reconciler.reconcile(compute_layout(FilterForest(items=(condition("b"),))))
        assert deltas == {}

    def test_dispose_makes_pending_callbacks_noops(self, flat_forest):
        settled = []
        scheduler = ManualScheduler()
        reconciler = AnimationReconciler(scheduler, on_settled=lambda: settled.append(True))
        reconciler.reconcile(compute_layout(flat_forest))
        reconciler.reconcile(compute_layout(remove_condition(flat_forest, "a")))

        reconciler.dispose()
        scheduler.paint()
        assert settled == []
        assert reconciler.reconcile(compute_layout(flat_forest)) == {}

    def test_reset_forgets_positions(self, flat_forest):
        reconciler = AnimationReconciler(ManualScheduler())
        reconciler.reconcile(compute_layout(flat_forest))
        reconciler.reset()
        assert reconciler.reconcile(compute_layout(remove_condition(flat_forest, "a"))) == {}
