"""Long-running process watcher with streamed, cancellable output."""

from __future__ import annotations

import asyncio
import codecs
import logging
import signal
import threading
import time
from typing import Callable, Sequence

from droidbar.errors import SpawnError
from droidbar.services.runner import READ_CHUNK_SIZE, ChunkCallback, emit_chunk, kill_process_group
from droidbar.storage.models import WatchStatus

logger = logging.getLogger(__name__)

ExitCallback = Callable[[WatchStatus], None]

KILL_AFTER_SECONDS = 5.0


class WatchHandle:
    """A running watch session.

    The child process belongs to the handle; callers only get :meth:`cancel`,
    :meth:`wait` and read-only state. Chunks are delivered from the event
    loop, so a caller on another thread has to marshal them into its own
    state (see :class:`droidbar.services.logsink.LogSink`).
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        on_chunk: ChunkCallback,
        on_exit: ExitCallback | None = None,
        chunk_size: int = READ_CHUNK_SIZE,
        kill_after: float = KILL_AFTER_SECONDS,
        label: str = "",
    ) -> None:
        self._proc = proc
        self._loop = asyncio.get_running_loop()
        self._on_chunk = on_chunk
        self._on_exit = on_exit
        self._chunk_size = chunk_size
        self._kill_after = kill_after
        self._label = label or str(proc.pid)
        self._lock = threading.RLock()
        self._open = True
        self._cancelled = False
        self._status: WatchStatus | None = None
        self._done: asyncio.Future[WatchStatus] = self._loop.create_future()
        self._started = time.monotonic()
        self._reader = self._loop.create_task(self._pump())

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._open

    @property
    def status(self) -> WatchStatus | None:
        """Terminal status, or None while the session is still running."""
        return self._status

    def cancel(self) -> None:
        """Terminate the child and stop chunk delivery.

        Safe to call more than once, after the child has exited, and from
        any thread. No chunk is delivered once this returns.
        """
        with self._lock:
            if not self._open:
                return
            self._open = False

        logger.info("Cancelling watch session %s (pid=%d)", self._label, self._proc.pid)
        if self._loop.is_closed():
            return
        if self._in_loop_thread():
            self._terminate()
        else:
            self._loop.call_soon_threadsafe(self._terminate)

    async def wait(self) -> WatchStatus:
        """Wait for the session to end and return its terminal status."""
        return await asyncio.shield(self._done)

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _terminate(self) -> None:
        if self._done.done():
            return
        # Only a child still running when the signal goes out counts as cancelled.
        if self._proc.returncode is None:
            with self._lock:
                self._cancelled = True
        kill_process_group(self._proc, signal.SIGTERM)
        self._loop.call_later(self._kill_after, self._escalate)

    def _escalate(self) -> None:
        if not self._done.done():
            kill_process_group(self._proc, signal.SIGKILL)

    def _deliver(self, text: str) -> None:
        # Holding the lock while delivering keeps cancel() from returning mid-chunk.
        with self._lock:
            if self._open:
                emit_chunk(self._on_chunk, text)

    async def _pump(self) -> None:
        assert self._proc.stdout is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = await self._proc.stdout.read(self._chunk_size)
                if not data:
                    break
                self._deliver(decoder.decode(data))
            self._deliver(decoder.decode(b"", final=True))
        except Exception:
            logger.exception("Reading output of watch session %s failed", self._label)
            kill_process_group(self._proc)

        returncode = await self._proc.wait()

        with self._lock:
            self._open = False
            cancelled = self._cancelled

        status = WatchStatus(
            exit_code=returncode if returncode >= 0 else None,
            signal=-returncode if returncode < 0 else None,
            cancelled=cancelled,
            execution_time_ms=int((time.monotonic() - self._started) * 1000),
        )
        self._status = status
        if status.crashed:
            logger.warning("Watch session %s ended unexpectedly: %s", self._label, status)
        else:
            logger.info("Watch session %s ended: %s", self._label, status)

        if self._on_exit is not None:
            try:
                self._on_exit(status)
            except Exception:
                logger.exception("Exit callback failed")
        self._done.set_result(status)


class LogWatcher:
    """Owns at most one watch session; starting a new one cancels the previous."""

    def __init__(self, chunk_size: int = READ_CHUNK_SIZE, kill_after: float = KILL_AFTER_SECONDS) -> None:
        self.chunk_size = chunk_size
        self.kill_after = kill_after
        self._handle: WatchHandle | None = None

    @property
    def active(self) -> WatchHandle | None:
        """The open session, if any."""
        if self._handle is not None and self._handle.is_open:
            return self._handle
        return None

    async def start(
        self,
        executable: str,
        args: Sequence[str],
        on_chunk: ChunkCallback,
        on_exit: ExitCallback | None = None,
        cwd: str | None = None,
    ) -> WatchHandle:
        """Spawn ``executable`` with ``args`` and stream its combined output to ``on_chunk``."""
        previous = self.active
        if previous is not None:
            logger.info("Replacing open watch session pid=%d", previous.pid)
            previous.cancel()

        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=cwd,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            command = " ".join([executable, *args])
            logger.warning("Failed to start %s: %s", command, e)
            raise SpawnError(f"Failed to start {executable}: {e}", command, cwd) from e

        logger.info("Watching pid=%d: %s %s", proc.pid, executable, " ".join(args))
        self._handle = WatchHandle(
            proc,
            on_chunk,
            on_exit,
            chunk_size=self.chunk_size,
            kill_after=self.kill_after,
            label=executable.rsplit("/", 1)[-1],
        )
        return self._handle

    def stop(self) -> bool:
        """Cancel the open session. Returns False when nothing was running."""
        handle = self.active
        if handle is None:
            return False
        handle.cancel()
        return True
