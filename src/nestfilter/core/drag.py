"""
Pointer-gesture state machine for dragging conditions between scopes.

A drag starts on a row's handle, follows the pointer through a global
pointer capture, and on release either commits a single move of the
condition to the resolved scope and index, or cancels without touching
the tree. The capture is released on every exit path.
"""

from enum import Enum
from typing import Callable, Optional, Protocol

from .interaction import DRAG, InteractionState
from .layout import DEFAULT_LAYOUT, DragPreview, DropTarget, FilterLayout, LayoutConfig, RowEntry, resolve_drop_target
from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

PointerCallback = Callable[[float, float], None]


class DragPhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class PointerCapture(Protocol):
    """Global pointer listeners held for the duration of a gesture."""

    def acquire(self, on_move: PointerCallback, on_release: PointerCallback) -> None:
        ...

    def release(self) -> None:
        ...


class NullPointerCapture:
    """Capture for headless use, where pointer events are fed in directly."""

    def acquire(self, on_move: PointerCallback, on_release: PointerCallback) -> None:
        pass

    def release(self) -> None:
        pass


class DragController:
    """
    Drives one drag gesture at a time.

    Args:
        commit: Called with (condition_id, DropTarget) when a drop resolves
            to a valid scope. Expected to apply move_condition.
        capture: Global pointer capture acquired while dragging.
        interaction: Guard closing other menus when a drag starts.
        config: Geometry constants used for hit testing.
        on_change: Called whenever the preview changes.
    """

    def __init__(
        self,
        commit: Callable[[str, DropTarget], None],
        capture: Optional[PointerCapture] = None,
        interaction: Optional[InteractionState] = None,
        config: LayoutConfig = DEFAULT_LAYOUT,
        on_change: Optional[Callable[[], None]] = None
    ):
        self._commit = commit
        self._capture = capture if capture is not None else NullPointerCapture()
        self._interaction = interaction
        self._config = config
        self._on_change = on_change

        self._condition_id: Optional[str] = None
        self._layout: Optional[FilterLayout] = None
        self._origin: Optional[DropTarget] = None
        self._offset = (0.0, 0.0)
        self._position = (0.0, 0.0)
        self._target: Optional[DropTarget] = None
        self._captured = False
        self.last_outcome: Optional[DragPhase] = None

        if interaction is not None:
            interaction.register_closer(DRAG, self.cancel)

    # ==================== State ====================

    @property
    def is_dragging(self) -> bool:
        return self._condition_id is not None

    @property
    def phase(self) -> DragPhase:
        return DragPhase.DRAGGING if self.is_dragging else DragPhase.IDLE

    @property
    def condition_id(self) -> Optional[str]:
        return self._condition_id

    @property
    def origin(self) -> Optional[DropTarget]:
        """Scope and index the dragged condition started from."""
        return self._origin

    @property
    def target(self) -> Optional[DropTarget]:
        return self._target

    @property
    def preview(self) -> Optional[DragPreview]:
        """Drag state for the layout pass, or None when idle."""
        if not self.is_dragging:
            return None
        left, top = self._position
        return DragPreview(
            condition_id=self._condition_id,
            left=left,
            top=top,
            target=self._target,
        )

    # ==================== Gesture ====================

    def begin(self, condition_id: str, pointer_x: float, pointer_y: float, layout: FilterLayout) -> bool:
        """
        Start dragging a condition.

        Args:
            condition_id: Condition whose handle was pressed.
            pointer_x: Pointer x in layout coordinates.
            pointer_y: Pointer y in layout coordinates.
            layout: Current layout; used for hit testing until the drop.

        Returns:
            True if the drag started.
        """
        if self.is_dragging:
            self.cancel()

        entry = layout.entry(condition_id)
        if not isinstance(entry, RowEntry):
            logger.debug(f"Cannot drag {condition_id}: no row in layout")
            return False

        if self._interaction is not None:
            self._interaction.open(DRAG, condition_id)

        self._condition_id = condition_id
        self._layout = layout
        self._origin = DropTarget(entry.parent_group_id, entry.index_in_scope)
        self._offset = (pointer_x - entry.left, pointer_y - entry.top)
        self._position = (entry.left, entry.top)
        self._target = self._origin

        try:
            self._capture.acquire(self.move, self.release)
        except Exception:
            logger.error(f"Could not capture the pointer for dragging {condition_id}")
            self._finish(DragPhase.CANCELLED)
            raise
        self._captured = True
        logger.debug(f"Drag started for {condition_id} from {self._origin}")
        self._changed()
        return True

    def move(self, pointer_x: float, pointer_y: float):
        """Follow the pointer and re-resolve the destination."""
        if not self.is_dragging:
            return
        offset_x, offset_y = self._offset
        self._position = (pointer_x - offset_x, pointer_y - offset_y)
        self._target = resolve_drop_target(
            self._layout, pointer_x, pointer_y, self._condition_id, self._config
        )
        self._changed()

    def release(self, pointer_x: float, pointer_y: float) -> Optional[DragPhase]:
        """
        Drop at the pointer position.

        Returns:
            DROPPED or CANCELLED, or None if no drag was in progress.
        """
        if not self.is_dragging:
            return None

        outcome = DragPhase.CANCELLED
        condition_id = self._condition_id
        try:
            target = resolve_drop_target(
                self._layout, pointer_x, pointer_y, condition_id, self._config
            )
            if target is None:
                logger.debug(f"Drop of {condition_id} outside any scope; cancelled")
            else:
                self._commit(condition_id, target)
                outcome = DragPhase.DROPPED
                logger.debug(f"Dropped {condition_id} at {target}")
        finally:
            self._finish(outcome)
        return outcome

    def cancel(self):
        """Abandon the drag; the tree is left untouched."""
        if not self.is_dragging:
            return
        logger.debug(f"Drag of {self._condition_id} cancelled")
        self._finish(DragPhase.CANCELLED)

    def teardown(self):
        """Cancel any drag and release the capture when the owning view goes away."""
        self.cancel()
        self._release_capture()

    def _finish(self, outcome: DragPhase):
        self._condition_id = None
        self._layout = None
        self._origin = None
        self._target = None
        self.last_outcome = outcome
        try:
            self._release_capture()
        finally:
            if self._interaction is not None:
                self._interaction.close(DRAG)
            self._changed()

    def _release_capture(self):
        if not self._captured:
            return
        try:
            self._capture.release()
        finally:
            self._captured = False

    def _changed(self):
        if self._on_change is not None:
            self._on_change()
