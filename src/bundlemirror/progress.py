from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import threading
from typing import Callable, Union


class ProgressScope(str, Enum):
    OVERALL = "overall"
    FILE = "file"


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    scope: ProgressScope
    bytes_done: int
    bytes_total: int
    percent: int
    address: str = ""


@dataclass(frozen=True, slots=True)
class LogEvent:
    level: LogLevel
    message: str


MirrorEvent = Union[ProgressEvent, LogEvent]
EventSink = Callable[[MirrorEvent], None]


def percent_of(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return (100 * done) // total


@dataclass(slots=True)
class ProgressState:
    """Running byte total for one transfer pass.

    Only whole, successfully transferred files are committed, so bytes from a
    failed attempt never reach ``total_bytes_transferred``.
    """

    total_bytes_estimated: int
    total_bytes_transferred: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def snapshot(self) -> int:
        with self._lock:
            return self.total_bytes_transferred

    def commit(self, byte_count: int) -> int:
        with self._lock:
            self.total_bytes_transferred += byte_count
            return self.total_bytes_transferred

    def overall_event(self, bytes_done: int, address: str = "") -> ProgressEvent:
        return ProgressEvent(
            scope=ProgressScope.OVERALL,
            bytes_done=bytes_done,
            bytes_total=self.total_bytes_estimated,
            percent=percent_of(bytes_done, self.total_bytes_estimated),
            address=address,
        )


class LoggingReporter:
    """Event sink that writes engine events to a ``logging.Logger``.

    Overall progress is logged at INFO each time its whole-percent value
    changes; per-file progress goes to DEBUG.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("bundlemirror.progress")
        self._last_overall: int | None = None
        self._last_file: tuple[str, int] | None = None

    def __call__(self, event: MirrorEvent) -> None:
        if isinstance(event, LogEvent):
            level = logging.WARNING if event.level is LogLevel.WARNING else logging.INFO
            self.logger.log(level, "%s", event.message)
            return

        if event.scope is ProgressScope.OVERALL:
            if event.percent == self._last_overall:
                return
            self._last_overall = event.percent
            self.logger.info(
                "Overall %3d%% (%s / %s bytes)", event.percent, event.bytes_done, event.bytes_total
            )
            return

        key = (event.address, event.percent)
        if key == self._last_file:
            return
        self._last_file = key
        self.logger.debug(
            "%s %3d%% (%s / %s bytes)", event.address, event.percent, event.bytes_done, event.bytes_total
        )
