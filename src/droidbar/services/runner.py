"""Shell command runner service."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import time
from pathlib import Path
from typing import Callable

from droidbar.config import AppConfig
from droidbar.errors import SpawnError, non_zero_exit_message
from droidbar.storage.models import CapturedOutput

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

ChunkCallback = Callable[[str], None]


def kill_process_group(proc: asyncio.subprocess.Process, sig: int = signal.SIGKILL) -> None:
    """Signal the child and everything it spawned.

    The shell exiting does not mean its group is gone: a background job can
    still hold the output pipe, so the group is signalled regardless.
    """
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


def emit_chunk(callback: ChunkCallback, text: str) -> None:
    """Hand decoded output to a caller callback; a failing callback never kills the read loop."""
    if not text:
        return
    try:
        callback(text)
    except Exception:
        logger.exception("Output callback failed")


def decode_output(raw: bytes) -> tuple[str, bool]:
    """Decode child output as UTF-8, replacing invalid sequences instead of dropping them."""
    try:
        return raw.decode("utf-8"), True
    except UnicodeDecodeError:
        return raw.decode("utf-8", errors="replace"), False


class CommandRunner:
    """Run a command line through the configured shell and capture its combined output."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    async def run(
        self,
        command: str,
        working_directory: str | Path,
        *,
        timeout: float | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> CapturedOutput:
        """Run ``command`` in ``working_directory`` and wait for it to finish.

        stdout and stderr share one pipe, so the captured text keeps the
        interleaving the child produced. ``on_chunk`` sees the output as it
        arrives; the full output is still returned at the end.

        A non-zero exit status, a timeout or undecodable output are reported
        through ``CapturedOutput.warnings``. Only a failure to start the
        child raises (:class:`SpawnError`). Cancelling the awaiting task kills
        the child.
        """
        work_dir = Path(working_directory).expanduser().resolve()
        if not work_dir.is_dir():
            raise SpawnError(f"Working directory not found: {work_dir}", command, str(work_dir))

        limit = self.config.runner.timeout if timeout is None else timeout
        shell = self.config.runner.shell

        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(work_dir),
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.warning("Failed to spawn %s -c %r in %s: %s", shell, command, work_dir, e)
            raise SpawnError(f"Failed to run command: {e}", command, str(work_dir)) from e

        logger.info("Started pid=%d: %s (cwd=%s)", proc.pid, command, work_dir)

        buffer = bytearray()
        timed_out = False
        try:
            await asyncio.wait_for(
                self._collect(proc, buffer, on_chunk),
                timeout=limit or None,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Command timed out after %ss, killing pid=%d", limit, proc.pid)
            kill_process_group(proc)
            await proc.wait()
        except asyncio.CancelledError:
            logger.info("Command cancelled, killing pid=%d", proc.pid)
            kill_process_group(proc)
            await proc.wait()
            raise

        elapsed_ms = int((time.monotonic() - start) * 1000)
        exit_code = proc.returncode if proc.returncode is not None else -1
        raw = bytes(buffer)
        text, decoded_ok = decode_output(raw)

        warnings: list[str] = []
        if not decoded_ok:
            logger.warning("Output of %r is not valid UTF-8 (%d bytes)", command, len(raw))
            warnings.append("Output was not valid UTF-8; invalid bytes were replaced")
        if timed_out:
            warnings.append(f"Command timed out after {limit}s")
        elif exit_code != 0:
            warnings.append(non_zero_exit_message(exit_code))

        logger.info("pid=%d exited with %d in %dms", proc.pid, exit_code, elapsed_ms)

        return CapturedOutput(
            text=text,
            raw=raw,
            exit_code=exit_code,
            decoded_ok=decoded_ok,
            timed_out=timed_out,
            execution_time_ms=elapsed_ms,
            warnings=warnings,
        )

    def run_sync(
        self,
        command: str,
        working_directory: str | Path,
        *,
        timeout: float | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> CapturedOutput:
        """Blocking variant of :meth:`run` for callers without an event loop."""
        return asyncio.run(self.run(command, working_directory, timeout=timeout, on_chunk=on_chunk))

    @staticmethod
    async def _collect(
        proc: asyncio.subprocess.Process,
        buffer: bytearray,
        on_chunk: ChunkCallback | None,
    ) -> None:
        assert proc.stdout is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await proc.stdout.read(READ_CHUNK_SIZE)
            if not data:
                break
            buffer.extend(data)
            if on_chunk is not None:
                emit_chunk(on_chunk, decoder.decode(data))
        if on_chunk is not None:
            emit_chunk(on_chunk, decoder.decode(b"", final=True))
        await proc.wait()
