"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

CONFIG_DIR = Path.home() / ".droidbar"
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_FILE = CONFIG_DIR / "droidbar.log"

DEFAULT_LOGCAT_ARGS: list[str] = ["logcat", "-v", "time", "*:D"]


def _default_shell() -> str:
    return "/bin/zsh" if Path("/bin/zsh").exists() else "/bin/sh"


@dataclass
class ProjectConfig:
    path: str = ""
    # No manifest parsing: the launch target comes from config.
    package_name: str = "com.example.app"
    main_activity: str = ".MainActivity"


@dataclass
class RunnerConfig:
    shell: str = field(default_factory=_default_shell)
    timeout: int = 600


@dataclass
class AdbConfig:
    path: str = "adb"
    logcat_args: list[str] = field(default_factory=lambda: list(DEFAULT_LOGCAT_ARGS))


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.droidbar/droidbar.log"


@dataclass
class AppConfig:
    project: ProjectConfig = field(default_factory=ProjectConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    adb: AdbConfig = field(default_factory=AdbConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def ensure_config_dir() -> None:
    """Create config directory with secure permissions."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, 0o700)


def load_config() -> AppConfig:
    """Load configuration from TOML file with env var overrides."""
    config = AppConfig()

    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, "rb") as f:
            data = tomllib.load(f)

        project = data.get("project", {})
        config.project.path = project.get("path", config.project.path)
        config.project.package_name = project.get("package_name", config.project.package_name)
        config.project.main_activity = project.get("main_activity", config.project.main_activity)

        runner = data.get("runner", {})
        config.runner.shell = runner.get("shell", config.runner.shell)
        config.runner.timeout = runner.get("timeout", config.runner.timeout)

        adb = data.get("adb", {})
        config.adb.path = adb.get("path", config.adb.path)
        config.adb.logcat_args = adb.get("logcat_args", config.adb.logcat_args)

        logging_cfg = data.get("logging", {})
        config.logging.level = logging_cfg.get("level", config.logging.level)
        config.logging.file = logging_cfg.get("file", config.logging.file)

    # Environment variable overrides
    if env_project := os.environ.get("DROIDBAR_PROJECT"):
        config.project.path = env_project
    if env_package := os.environ.get("DROIDBAR_PACKAGE"):
        config.project.package_name = env_package
    if env_shell := os.environ.get("DROIDBAR_SHELL"):
        config.runner.shell = env_shell
    if env_timeout := os.environ.get("DROIDBAR_TIMEOUT"):
        config.runner.timeout = int(env_timeout)
    if env_adb := os.environ.get("DROIDBAR_ADB"):
        config.adb.path = env_adb
    if env_log_level := os.environ.get("DROIDBAR_LOG_LEVEL"):
        config.logging.level = env_log_level

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file."""
    ensure_config_dir()

    data = {
        "project": {
            "path": config.project.path,
            "package_name": config.project.package_name,
            "main_activity": config.project.main_activity,
        },
        "runner": {
            "shell": config.runner.shell,
            "timeout": config.runner.timeout,
        },
        "adb": {
            "path": config.adb.path,
            "logcat_args": config.adb.logcat_args,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)


# Global singleton
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or load the global config singleton."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset the global config (for testing)."""
    global _config
    _config = None
