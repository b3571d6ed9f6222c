"""Output formatting helpers."""

from __future__ import annotations

import signal

from droidbar.storage.models import CapturedOutput, WatchStatus


def format_duration(ms: int) -> str:
    """Format milliseconds to human-readable duration."""
    if ms < 1000:
        return f"{ms}ms"
    elif ms < 60000:
        return f"{ms / 1000:.1f}s"
    else:
        minutes = ms // 60000
        seconds = (ms % 60000) // 1000
        return f"{minutes}m {seconds}s"


def format_run_summary(result: CapturedOutput) -> str:
    """One-line status for a finished command."""
    if result.timed_out:
        icon = "TIMEOUT"
    elif result.exit_code == 0:
        icon = "OK"
    else:
        icon = f"ERR({result.exit_code})"
    return f"[{icon}] {format_duration(result.execution_time_ms)}"


def signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def describe_watch_status(status: WatchStatus) -> str:
    """Human-readable account of how a watch session ended."""
    if status.cancelled:
        return "stopped"
    if status.signal is not None:
        return f"killed by {signal_name(status.signal)}"
    if status.exit_code == 0:
        return "finished"
    return f"exited with status {status.exit_code}"
