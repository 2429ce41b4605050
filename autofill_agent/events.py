from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .models import LogEvent, LogLevel

_LOGGING_LEVELS = {
    LogLevel.info: logging.INFO,
    LogLevel.success: logging.INFO,
    LogLevel.warning: logging.WARNING,
    LogLevel.error: logging.ERROR,
}


class RunLog:
    """Ordered log events of one automation run, mirrored to a stdlib logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("autofill_agent.run")
        self._events: List[LogEvent] = []

    def _emit(self, level: LogLevel, message: str, selector: Optional[str]) -> LogEvent:
        event = LogEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            message=message,
            selector=selector,
        )
        self._events.append(event)
        self._logger.log(_LOGGING_LEVELS[level], message)
        return event

    def info(self, message: str, selector: Optional[str] = None) -> LogEvent:
        return self._emit(LogLevel.info, message, selector)

    def success(self, message: str, selector: Optional[str] = None) -> LogEvent:
        return self._emit(LogLevel.success, message, selector)

    def warning(self, message: str, selector: Optional[str] = None) -> LogEvent:
        return self._emit(LogLevel.warning, message, selector)

    def error(self, message: str, selector: Optional[str] = None) -> LogEvent:
        return self._emit(LogLevel.error, message, selector)

    @property
    def events(self) -> List[LogEvent]:
        return list(self._events)

    def count(self, level: LogLevel) -> int:
        return sum(1 for event in self._events if event.level == level)
