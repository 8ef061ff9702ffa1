"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.handlers
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    normalized = level.upper()
    logging.basicConfig(
        level=getattr(logging, normalized, logging.INFO),
        format=LOG_FORMAT,
    )


class _RingMemoryHandler(logging.handlers.MemoryHandler):
    """Drops the oldest records instead of flushing when full."""

    def shouldFlush(self, record: logging.LogRecord) -> bool:
        if len(self.buffer) > self.capacity:
            del self.buffer[0]
        return False


class DebugReplayBuffer:
    """Keep DEBUG records in memory so a failed run can print them after the fact.

    While installed, the root logger accepts DEBUG records; the handlers that were already
    attached keep filtering at the previously configured level.
    """

    def __init__(self, capacity: int = 10000, stream=None) -> None:
        self._target = logging.StreamHandler(stream if stream is not None else sys.stderr)
        self._target.setFormatter(logging.Formatter(f"[replay] {LOG_FORMAT}"))
        self._handler = _RingMemoryHandler(
            capacity=capacity,
            flushLevel=logging.CRITICAL + 1,
            target=self._target,
            flushOnClose=False,
        )
        self._handler.setLevel(logging.DEBUG)
        self._previous_level: int | None = None
        self._adjusted_handlers: list[logging.Handler] = []

    def install(self) -> DebugReplayBuffer:
        root = logging.getLogger()
        self._previous_level = root.level
        for handler in root.handlers:
            if handler.level == logging.NOTSET:
                handler.setLevel(root.level)
                self._adjusted_handlers.append(handler)
        root.setLevel(logging.DEBUG)
        root.addHandler(self._handler)
        return self

    def replay(self) -> None:
        self._handler.flush()

    def discard(self) -> None:
        with self._handler.lock:
            self._handler.buffer.clear()

    def uninstall(self) -> None:
        root = logging.getLogger()
        root.removeHandler(self._handler)
        if self._previous_level is not None:
            root.setLevel(self._previous_level)
        for handler in self._adjusted_handlers:
            handler.setLevel(logging.NOTSET)
        self._adjusted_handlers.clear()
        self.discard()
        self._handler.close()

    def __enter__(self) -> DebugReplayBuffer:
        return self.install()

    def __exit__(self, *exc_info) -> None:
        self.uninstall()
