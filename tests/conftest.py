"""Shared test fixtures."""

from __future__ import annotations

import pytest

from droidbar.config import AdbConfig, AppConfig, LoggingConfig, ProjectConfig, RunnerConfig


@pytest.fixture
def project_dir(tmp_path):
    """An Android-shaped project directory with an app/build.gradle."""
    project = tmp_path / "MyApp"
    (project / "app").mkdir(parents=True)
    (project / "app" / "build.gradle").write_text("plugins { id 'com.android.application' }\n")
    return project


@pytest.fixture
def app_config(tmp_path, project_dir):
    """Create a test configuration."""
    return AppConfig(
        project=ProjectConfig(
            path=str(project_dir),
            package_name="com.example.demo",
            main_activity=".MainActivity",
        ),
        runner=RunnerConfig(shell="/bin/sh", timeout=10),
        adb=AdbConfig(path="adb"),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "droidbar.log")),
    )
