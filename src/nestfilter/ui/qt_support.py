"""
Qt implementations of the scheduling and pointer-capture hooks used by the
core animation and drag modules.
"""

from typing import Callable, Optional

from PySide6.QtCore import QEvent, QObject, QPointF, QTimer
from PySide6.QtWidgets import QApplication, QWidget

from nestfilter.infrastructure.logging_config import get_logger


logger = get_logger(__name__)


def schedule_next_paint(callback: Callable[[], None]) -> None:
    """Run callback once the event loop has processed pending paint events."""
    QTimer.singleShot(0, callback)


class QtPointerCapture(QObject):
    """
    Application-wide mouse listener held for the duration of a drag.

    While acquired, every mouse move and button release anywhere in the
    application is reported in the coordinates of the target widget.

    Args:
        target: Widget whose coordinate system positions are reported in.
    """

    def __init__(self, target: QWidget):
        super().__init__(target)
        self._target = target
        self._on_move: Optional[Callable[[float, float], None]] = None
        self._on_release: Optional[Callable[[float, float], None]] = None
        self._installed = False

    @property
    def is_acquired(self) -> bool:
        return self._installed

    def acquire(self, on_move, on_release) -> None:
        app = QApplication.instance()
        if app is None:
            raise RuntimeError("QApplication must exist before capturing the pointer")
        self._on_move = on_move
        self._on_release = on_release
        if not self._installed:
            app.installEventFilter(self)
            self._installed = True
            logger.debug("Pointer capture acquired")

    def release(self) -> None:
        if self._installed:
            app = QApplication.instance()
            if app is not None:
                app.removeEventFilter(self)
            self._installed = False
            logger.debug("Pointer capture released")
        self._on_move = None
        self._on_release = None

    def _local(self, event) -> QPointF:
        return self._target.mapFromGlobal(event.globalPosition())

    def eventFilter(self, watched, event) -> bool:
        event_type = event.type()
        if event_type == QEvent.Type.MouseMove and self._on_move is not None:
            point = self._local(event)
            self._on_move(point.x(), point.y())
            return True
        if event_type == QEvent.Type.MouseButtonRelease and self._on_release is not None:
            point = self._local(event)
            self._on_release(point.x(), point.y())
            return True
        return super().eventFilter(watched, event)
