"""
Interaction guard for menus, drags and highlights.

Only one interactive affordance (field menu, operator menu, connector menu,
group plus-menu or drag) may be open at a time. Opening one closes
whatever else is open, invoking the closer registered for that kind so
that, for example, an in-flight drag is cancelled when a menu opens.
"""

from typing import Callable, Optional

from ..infrastructure.logging_config import get_logger


logger = get_logger(__name__)

FIELD_MENU = 'field'
OPERATOR_MENU = 'operator'
CONNECTOR_MENU = 'connector'
GROUP_MENU = 'group_plus'
DRAG = 'drag'

INTERACTION_KINDS = (FIELD_MENU, OPERATOR_MENU, CONNECTOR_MENU, GROUP_MENU, DRAG)


class InteractionState:
    """Tracks the single open affordance, identified by (kind, key)."""

    def __init__(self):
        self._kind: Optional[str] = None
        self._key: Optional[str] = None
        self._closers: dict[str, Callable[[], None]] = {}

    def register_closer(self, kind: str, closer: Callable[[], None]):
        """Register a callback run when an affordance of this kind is closed by another one."""
        self._check_kind(kind)
        self._closers[kind] = closer

    @property
    def current(self) -> Optional[tuple[str, Optional[str]]]:
        if self._kind is None:
            return None
        return self._kind, self._key

    def is_open(self, kind: str, key: Optional[str] = None) -> bool:
        """Check whether an affordance is open; without key, any of that kind."""
        if self._kind != kind:
            return False
        return key is None or self._key == key

    def open_key(self, kind: str) -> Optional[str]:
        return self._key if self._kind == kind else None

    def open(self, kind: str, key: Optional[str] = None):
        """Open an affordance, closing any other one first."""
        self._check_kind(kind)
        if self._kind is not None and (self._kind, self._key) != (kind, key):
            self.close()
        self._kind = kind
        self._key = key
        logger.debug(f"Opened {kind} ({key})")

    def toggle(self, kind: str, key: Optional[str] = None) -> bool:
        """
        Open an affordance, or close it if it is already open.

        Returns:
            True if the affordance is open afterwards.
        """
        if self.is_open(kind, key):
            self.close(kind)
            return False
        self.open(kind, key)
        return True

    def close(self, kind: Optional[str] = None):
        """
        Close the open affordance.

        Args:
            kind: Only close if the open affordance is of this kind.
        """
        if self._kind is None or (kind is not None and kind != self._kind):
            return
        closed = self._kind
        # Cleared before running the closer so a closer calling close() is a no-op.
        self._kind = None
        self._key = None
        closer = self._closers.get(closed)
        if closer is not None:
            closer()

    def _check_kind(self, kind: str):
        if kind not in INTERACTION_KINDS:
            raise ValueError(f"Unknown interaction kind: {kind!r}")


class HighlightState:
    """
    Ids highlighted after an edit: the field or operator box of a condition,
    or the connector of a scope.

    The user's next interaction clears the highlight.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.field_id: Optional[str] = None
        self.operator_id: Optional[str] = None
        self.connector_key: Optional[str] = None
        self._on_change = on_change

    def highlight_field(self, condition_id: str):
        self.field_id = condition_id
        self.operator_id = None
        self._changed()

    def highlight_operator(self, condition_id: str):
        self.operator_id = condition_id
        self.field_id = None
        self._changed()

    def highlight_connector(self, connector_key: str):
        self.connector_key = connector_key
        self.field_id = None
        self.operator_id = None
        self._changed()

    @property
    def is_active(self) -> bool:
        return any((self.field_id, self.operator_id, self.connector_key))

    def clear(self):
        if not self.is_active:
            return
        self.field_id = None
        self.operator_id = None
        self.connector_key = None
        self._changed()

    def _changed(self):
        if self._on_change is not None:
            self._on_change()
