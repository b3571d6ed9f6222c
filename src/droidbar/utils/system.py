"""System utility checks."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

BUILD_FILES = ("build.gradle", "build.gradle.kts")


def check_adb(adb_path: str = "adb") -> tuple[bool, str]:
    """Check if adb is installed and return its version line."""
    resolved = shutil.which(adb_path)
    if not resolved:
        return False, f"adb not found ({adb_path}). Install Android SDK Platform-Tools and add it to PATH."
    try:
        result = subprocess.run(
            [resolved, "version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        output = result.stdout.strip() or result.stderr.strip()
        return True, output.splitlines()[0] if output else resolved
    except subprocess.TimeoutExpired:
        return False, "adb version check timed out"
    except OSError as e:
        return False, f"Error checking adb: {e}"


def check_shell(shell: str) -> tuple[bool, str]:
    """Check that the configured shell exists and is executable."""
    path = Path(shell)
    if not path.is_file():
        return False, f"Shell not found: {shell}"
    if not os.access(path, os.X_OK):
        return False, f"Shell is not executable: {shell}"
    return True, shell


def check_project_dir(path: str) -> tuple[bool, str]:
    """Validate a project directory path."""
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        return False, f"Directory not found: {resolved}"
    if not resolved.is_dir():
        return False, f"Not a directory: {resolved}"
    return True, str(resolved)


def find_build_file(project: str | Path) -> Path | None:
    """Locate the app module build script (Groovy or Kotlin DSL)."""
    app_dir = Path(project) / "app"
    for name in BUILD_FILES:
        candidate = app_dir / name
        if candidate.is_file():
            return candidate
    return None
