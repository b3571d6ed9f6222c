"""Android project actions: build, install, launch and logcat."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from droidbar.config import AppConfig
from droidbar.errors import SpawnError
from droidbar.services.logsink import LogSink
from droidbar.services.runner import CommandRunner
from droidbar.services.watcher import LogWatcher, WatchHandle
from droidbar.storage.models import CapturedOutput, WatchStatus
from droidbar.utils.formatting import describe_watch_status, format_run_summary
from droidbar.utils.system import check_project_dir, find_build_file

logger = logging.getLogger(__name__)

BUILD_DEBUG = "./gradlew assembleDebug"
INSTALL_DEBUG = "./gradlew installDebug"
NO_PROJECT = "Please select an Android project first"


class AndroidTools:
    """Maps user actions onto the command runner and log watcher.

    Everything the actions report goes to ``sink``.
    """

    def __init__(
        self,
        config: AppConfig,
        sink: LogSink | None = None,
        runner: CommandRunner | None = None,
        watcher: LogWatcher | None = None,
    ) -> None:
        self.config = config
        self.sink = sink or LogSink()
        self.runner = runner or CommandRunner(config)
        self.watcher = watcher or LogWatcher()
        self.project_path: str = ""
        self._logs_stopped = False

    @property
    def watching_logs(self) -> bool:
        return self.watcher.active is not None

    def select_project(self, path: str) -> bool:
        """Select the project directory and report whether an app build script exists."""
        valid, resolved = check_project_dir(path)
        if not valid:
            self.sink.line(resolved)
            return False

        self.project_path = resolved
        self.sink.line(f"Selected project: {Path(resolved).name}")
        self.sink.line("Looking for build.gradle...")
        build_file = find_build_file(resolved)
        if build_file is None:
            self.sink.line("Could not find build.gradle in app/ directory")
            return False
        self.sink.line(f"Found {build_file.name}")
        return True

    def launch_command(self) -> str:
        project = self.config.project
        component = f"{project.package_name}/{project.main_activity}"
        adb = shlex.quote(self.config.adb.path)
        return f"{INSTALL_DEBUG} && {adb} shell am start -n {shlex.quote(component)}"

    async def build_apk(self) -> CapturedOutput | None:
        return await self._run("Building APK...", BUILD_DEBUG)

    async def install_apk(self) -> CapturedOutput | None:
        return await self._run("Installing APK...", INSTALL_DEBUG)

    async def run_on_device(self) -> CapturedOutput | None:
        return await self._run("Running on device...", self.launch_command())

    async def exec(self, command: str) -> CapturedOutput | None:
        return await self._run(f"$ {command}", command)

    async def toggle_logs(self) -> WatchHandle | None:
        """Start logcat, or stop it when it is already running."""
        if self.watching_logs:
            self.stop_logs()
            return None
        return await self.start_logs()

    async def start_logs(self) -> WatchHandle | None:
        self._logs_stopped = False
        self.sink.line("")
        self.sink.line("Starting logcat...")
        try:
            return await self.watcher.start(
                self.config.adb.path,
                self.config.adb.logcat_args,
                on_chunk=self.sink.write,
                on_exit=self._logs_ended,
                cwd=self.project_path or None,
            )
        except SpawnError as e:
            self.sink.line(f"Failed to start logcat: {e}")
            return None

    def stop_logs(self) -> bool:
        if not self.watcher.stop():
            return False
        self._logs_stopped = True
        self.sink.line("")
        self.sink.line("Stopped logcat")
        return True

    def _logs_ended(self, status: WatchStatus) -> None:
        if status.cancelled or self._logs_stopped:
            return
        self.sink.line("")
        self.sink.line(f"logcat {describe_watch_status(status)}")

    async def _run(self, banner: str, command: str) -> CapturedOutput | None:
        if not self.project_path:
            self.sink.line(NO_PROJECT)
            return None

        self.sink.line("")
        self.sink.line(banner)
        try:
            result = await self.runner.run(command, self.project_path, on_chunk=self.sink.write)
        except SpawnError as e:
            self.sink.line(str(e))
            return None

        if result.text and not result.text.endswith("\n"):
            self.sink.write("\n")
        for warning in result.warnings:
            self.sink.line(warning)
        self.sink.line(format_run_summary(result))
        return result
