"""Progress reporting for long running deployer operations."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def start(self, message: str) -> None: ...

    def succeed(self, message: Optional[str] = None) -> None: ...

    def fail(self, message: Optional[str] = None) -> None: ...


class LoggingProgressReporter:
    """Reports progress through the ``deployer.progress`` logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger
        self._current: Optional[str] = None

    def start(self, message: str) -> None:
        self._current = message
        self._log.info(message)

    def succeed(self, message: Optional[str] = None) -> None:
        self._log.info(message or f"{self._current}: done")
        self._current = None

    def fail(self, message: Optional[str] = None) -> None:
        self._log.error(message or f"{self._current}: failed")
        self._current = None


class RecordingProgressReporter:
    """Keeps every progress event in memory."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Optional[str]]] = []

    def start(self, message: str) -> None:
        self.events.append(("start", message))

    def succeed(self, message: Optional[str] = None) -> None:
        self.events.append(("succeed", message))

    def fail(self, message: Optional[str] = None) -> None:
        self.events.append(("fail", message))
