"""
Notification Center

Every ledger mutation emits a short user-facing notification. The center:
- Logs each one through structlog at the matching level
- Keeps the history for the current process
- Fans it out to subscribers (the presentation layer)

A failing subscriber is logged and skipped; it never breaks the
mutation that emitted the notification.
"""

from typing import Callable, Optional

import structlog

from zen_ledger.models.notification import Notification, NotificationSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


Subscriber = Callable[[Notification], None]


class NotificationCenter:
    """Central sink for ledger notifications."""

    def __init__(self, subscribers: Optional[list[Subscriber]] = None):
        self._subscribers: list[Subscriber] = list(subscribers or [])
        self._history: list[Notification] = []
        self._logger = structlog.get_logger("zen_ledger.notifications")

    @property
    def history(self) -> tuple[Notification, ...]:
        return tuple(self._history)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def emit(self, notification: Notification) -> Notification:
        """Log, record and deliver a notification."""
        log_dict = notification.to_log_dict()
        if notification.severity == NotificationSeverity.WARN:
            self._logger.warning("notification", **log_dict)
        else:
            self._logger.info("notification", **log_dict)

        self._history.append(notification)

        for subscriber in list(self._subscribers):
            try:
                subscriber(notification)
            except Exception as e:
                self._logger.error(
                    "notification_delivery_failed",
                    kind=notification.kind.value,
                    error=str(e),
                )

        return notification

    def clear(self) -> None:
        self._history.clear()
