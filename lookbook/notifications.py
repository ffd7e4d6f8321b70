"""
User-facing notifications (the transient "toast" shown after a failed toggle).

The UI layer subscribes a callback; the engine only ever calls error().
"""
import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


Subscriber = Callable[[Notification], None]


class Notifier:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def error(self, message: str) -> None:
        logger.warning("Notify: %s", message)
        self._publish(Notification(level="error", message=message))

    def _publish(self, notification: Notification) -> None:
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as exc:
                logger.error("Notification subscriber %r failed: %s", callback, exc)
