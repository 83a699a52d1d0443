"""User-facing notifications for failures surfaced at runtime."""

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()


class NotifyLevel(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: NotifyLevel
    message: str
    identifier: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


NotificationSink = Callable[[Notification], None]


class Notifier:
    """Collects notifications and forwards them to an optional display sink.

    The sink is the host's transient message area. A failing sink is logged
    and never allowed to break the caller.
    """

    def __init__(self, sink: NotificationSink | None = None, limit: int = 200) -> None:
        self._sink = sink
        self._limit = limit
        self._history: list[Notification] = []

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def notify(
        self,
        message: str,
        level: NotifyLevel = NotifyLevel.INFO,
        identifier: str | None = None,
    ) -> Notification:
        note = Notification(level=level, message=message, identifier=identifier)
        self._history.append(note)
        if len(self._history) > self._limit:
            del self._history[: len(self._history) - self._limit]

        log = logger.error if level is NotifyLevel.ERROR else logger.info
        log("notification", level=level.value, message=message, identifier=identifier)

        if self._sink is not None:
            try:
                self._sink(note)
            except Exception:
                logger.exception("notification_sink_failed")
        return note

    def error(self, message: str, identifier: str | None = None) -> Notification:
        return self.notify(message, NotifyLevel.ERROR, identifier)

    def clear(self) -> None:
        self._history.clear()
