"""Append-only output log shared between producers and one consumer."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class LogSink:
    """Thread-safe text log.

    Producers (runner and watcher callbacks) call :meth:`write` from any
    context. The owning context either drains new text with :meth:`drain`
    or gets pushed each write through ``listener``.
    """

    def __init__(self, listener: Callable[[str], None] | None = None) -> None:
        self._lock = threading.Lock()
        self._history: list[str] = []
        self._pending: queue.SimpleQueue[str] = queue.SimpleQueue()
        self._listener = listener

    def write(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            self._history.append(text)
        self._pending.put(text)
        if self._listener is not None:
            try:
                self._listener(text)
            except Exception:
                logger.exception("Log listener failed")

    def line(self, text: str) -> None:
        """Write ``text`` as a full line."""
        self.write(text if text.endswith("\n") else text + "\n")

    def drain(self) -> str:
        """Return everything written since the last drain."""
        parts: list[str] = []
        while True:
            try:
                parts.append(self._pending.get_nowait())
            except queue.Empty:
                break
        return "".join(parts)

    def text(self) -> str:
        with self._lock:
            return "".join(self._history)

    def clear(self) -> None:
        with self._lock:
            self._history.clear()
        self.drain()
