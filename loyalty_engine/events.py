"""
In-process publish/subscribe for loyalty notifications
"""

from enum import Enum
from typing import Callable, Dict, List, Union
from loguru import logger

from .exceptions import UnknownEventKindError
from .models import PointsUpdated, TierChanged


class EventKind(str, Enum):
    """Notifications published by the engine"""

    POINTS_UPDATED = "points_updated"
    TIER_CHANGED = "tier_changed"


Notification = Union[PointsUpdated, TierChanged]
Handler = Callable[[Notification], None]

_PAYLOAD_TYPES = {
    EventKind.POINTS_UPDATED: PointsUpdated,
    EventKind.TIER_CHANGED: TierChanged,
}


class EventBus:
    """
    Observer registry keyed by event kind.

    Handlers run synchronously, in subscription order, inside emit(). A
    handler exception propagates to the emitter; the remaining handlers for
    that emission do not run.
    """

    def __init__(self):
        self._handlers: Dict[EventKind, List[Handler]] = {kind: [] for kind in EventKind}

    @staticmethod
    def _kind(kind: Union[EventKind, str]) -> EventKind:
        try:
            return EventKind(kind)
        except ValueError:
            raise UnknownEventKindError(kind) from None

    def on(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """Subscribe handler to kind; subscribing twice has no extra effect"""
        handlers = self._handlers[self._kind(kind)]
        if handler not in handlers:
            handlers.append(handler)

    def off(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """Unsubscribe handler from kind; unknown handlers are ignored"""
        handlers = self._handlers[self._kind(kind)]
        if handler in handlers:
            handlers.remove(handler)

    def handlers(self, kind: Union[EventKind, str]) -> List[Handler]:
        return list(self._handlers[self._kind(kind)])

    def emit(self, kind: Union[EventKind, str], payload: Notification) -> None:
        """Deliver payload to every current subscriber of kind"""
        kind = self._kind(kind)
        expected = _PAYLOAD_TYPES[kind]
        if not isinstance(payload, expected):
            raise TypeError(f"{kind.value} expects {expected.__name__}, got {type(payload).__name__}")

        # Snapshot so handlers may unsubscribe themselves mid-dispatch
        handlers = list(self._handlers[kind])
        logger.debug(f"Emitting {kind.value} to {len(handlers)} handler(s)")
        for handler in handlers:
            handler(payload)
