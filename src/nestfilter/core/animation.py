"""
FLIP-style position animation between layout passes.

After every layout pass the reconciler compares each entry's new top with
the top it had in the previous pass. Entries that moved receive an offset
equal to the distance they moved, so they are first drawn where they were;
once the next paint has happened the offsets are cleared and the renderer
animates the entries into their new positions.
"""

from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .layout import FilterLayout, LayoutEntry
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

Scheduler = Callable[[Callable[[], None]], None]
"""Runs a callback once, at the next paint opportunity."""


class AnimationPhase(Enum):
    STABLE = "stable"
    DELTA_APPLIED = "delta_applied"


class AnimationReconciler:
    """
    Tracks entry tops across layout passes and the offsets derived from them.

    Args:
        schedule: Function deferring a callback to the next paint.
        on_settled: Optional callback invoked after offsets have been cleared,
            so the renderer can draw the final positions.
    """

    def __init__(self, schedule: Scheduler, on_settled: Optional[Callable[[], None]] = None):
        self._schedule = schedule
        self._on_settled = on_settled
        self._previous_tops: dict[str, float] = {}
        self._deltas: dict[str, float] = {}
        self._generation = 0
        self._disposed = False

    @property
    def phase(self) -> AnimationPhase:
        return AnimationPhase.DELTA_APPLIED if self._deltas else AnimationPhase.STABLE

    @property
    def deltas(self) -> dict[str, float]:
        return dict(self._deltas)

    def offset(self, key: str) -> float:
        """Vertical offset to apply to an entry for the current frame."""
        return self._deltas.get(key, 0.0)

    def reconcile(self, layout: Union[FilterLayout, Iterable[LayoutEntry]]) -> dict[str, float]:
        """
        Record a new layout pass.

        Args:
            layout: The new layout, or its entries.

        Returns:
            Offsets applied for this pass, keyed by entry key.
        """
        if self._disposed:
            return {}

        entries = layout.entries if isinstance(layout, FilterLayout) else layout
        next_tops = {entry.key: entry.top for entry in entries}

        deltas = {}
        for key, top in next_tops.items():
            previous = self._previous_tops.get(key)
            if previous is None:
                continue
            delta = previous - top
            if delta != 0:
                deltas[key] = delta

        self._previous_tops = next_tops
        self._deltas = deltas
        self._generation += 1

        if deltas:
            logger.debug(f"Animating {len(deltas)} moved entries")
            generation = self._generation
            self._schedule(lambda: self._settle(generation))

        return dict(deltas)

    def _settle(self, generation: int):
        # A newer pass owns the offsets; its own callback will clear them.
        if self._disposed or generation != self._generation:
            return
        self._deltas = {}
        if self._on_settled is not None:
            self._on_settled()

    def reset(self):
        """Forget previous positions, e.g. when a different filter is loaded."""
        self._previous_tops = {}
        self._deltas = {}
        self._generation += 1

    def dispose(self):
        """Drop all state; pending callbacks become no-ops."""
        self.reset()
        self._disposed = True
