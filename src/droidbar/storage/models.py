"""Data models for droidbar."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CapturedOutput:
    """Result of a single command run (combined stdout and stderr)."""

    text: str = ""
    raw: bytes = b""
    exit_code: int = 0
    decoded_ok: bool = True
    timed_out: bool = False
    execution_time_ms: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def warning(self) -> str:
        return self.warnings[0] if self.warnings else ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


@dataclass
class WatchStatus:
    """Terminal status of a watch session, delivered after the last chunk."""

    exit_code: int | None = None
    signal: int | None = None
    cancelled: bool = False
    execution_time_ms: int = 0

    @property
    def crashed(self) -> bool:
        if self.cancelled:
            return False
        return self.signal is not None or (self.exit_code is not None and self.exit_code != 0)
