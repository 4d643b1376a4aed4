"""Optional error reporting sink for failed upstream calls."""

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class ErrorReporter(ABC):
    """Receives a report for every failed upstream request."""

    @abstractmethod
    def report(self, url: str, method: str, body: dict[str, Any] | None, message: str) -> None:
        ...


class NullReporter(ErrorReporter):
    """Production default: drops every report."""

    def report(self, url: str, method: str, body: dict[str, Any] | None, message: str) -> None:
        return None


class LoggingReporter(ErrorReporter):
    """Development sink: writes reports to the debug log."""

    def report(self, url: str, method: str, body: dict[str, Any] | None, message: str) -> None:
        logger.debug("Upstream error %s %s body=%s: %s", method, url, body, message)


def build_reporter(dev_mode: bool) -> ErrorReporter:
    return LoggingReporter() if dev_mode else NullReporter()
