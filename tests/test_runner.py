"""Tests for the command runner service."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from droidbar.errors import SpawnError
from droidbar.services.runner import CommandRunner, decode_output


@pytest.fixture
def runner(app_config):
    return CommandRunner(app_config)


class TestCommandRunner:
    @pytest.mark.asyncio
    async def test_exit_code(self, runner, project_dir):
        result = await runner.run("exit 7", project_dir)
        assert result.exit_code == 7
        assert not result.ok
        assert result.warnings == ["Command failed with status: 7"]
        assert result.warning == "Command failed with status: 7"

    @pytest.mark.asyncio
    async def test_ascii_output(self, runner, project_dir):
        result = await runner.run("echo hello", project_dir)
        assert result.exit_code == 0
        assert result.ok
        assert result.text == "hello\n"
        assert result.raw == b"hello\n"
        assert result.decoded_ok
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_utf8_output(self, runner, project_dir):
        result = await runner.run(r"printf 'h\303\251llo \342\234\223\n'", project_dir)
        assert result.text == "héllo ✓\n"
        assert result.decoded_ok

    @pytest.mark.asyncio
    async def test_stderr_combined(self, runner, project_dir):
        result = await runner.run("echo out; echo err 1>&2; echo done", project_dir)
        assert result.text == "out\nerr\ndone\n"

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_kept(self, runner, project_dir):
        result = await runner.run(r"printf '\377\376ok'", project_dir)
        assert result.exit_code == 0
        assert not result.decoded_ok
        assert result.raw == b"\xff\xfeok"
        assert result.text.endswith("ok")
        assert "�" in result.text
        assert any("UTF-8" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, runner, project_dir):
        result = await runner.run("pwd", project_dir)
        assert Path(result.text.strip()).resolve() == project_dir.resolve()

    @pytest.mark.asyncio
    async def test_streams_chunks(self, runner, project_dir):
        chunks: list[str] = []
        result = await runner.run("for i in 1 2 3; do echo line $i; done", project_dir, on_chunk=chunks.append)
        assert "".join(chunks) == result.text == "line 1\nline 2\nline 3\n"

    @pytest.mark.asyncio
    async def test_failing_chunk_callback(self, runner, project_dir):
        def boom(_text: str) -> None:
            raise RuntimeError("sink closed")

        result = await runner.run("echo survived", project_dir, on_chunk=boom)
        assert result.text == "survived\n"

    @pytest.mark.asyncio
    async def test_missing_directory(self, runner, tmp_path):
        with pytest.raises(SpawnError) as exc_info:
            await runner.run("echo hi", tmp_path / "nope")
        assert "not found" in str(exc_info.value)
        assert exc_info.value.command == "echo hi"

    @pytest.mark.asyncio
    async def test_directory_is_a_file(self, runner, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(SpawnError):
            await runner.run("echo hi", target)

    @pytest.mark.asyncio
    async def test_missing_shell(self, app_config, project_dir, tmp_path):
        app_config.runner.shell = str(tmp_path / "no-such-shell")
        runner = CommandRunner(app_config)
        with pytest.raises(SpawnError):
            await asyncio.wait_for(runner.run("echo hi", project_dir), timeout=5)

    @pytest.mark.asyncio
    async def test_permission_denied(self, runner, project_dir):
        with patch(
            "droidbar.services.runner.asyncio.create_subprocess_exec",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(SpawnError) as exc_info:
                await runner.run("echo hi", project_dir)
        assert "denied" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, runner, project_dir):
        result = await runner.run("echo started; sleep 5", project_dir, timeout=0.5)
        assert result.timed_out
        assert not result.ok
        assert result.text.startswith("started")
        assert "timed out" in result.warning.lower()
        assert result.execution_time_ms < 5000

    @pytest.mark.asyncio
    async def test_config_timeout_used(self, app_config, project_dir):
        app_config.runner.timeout = 1
        runner = CommandRunner(app_config)
        result = await runner.run("sleep 5", project_dir)
        assert result.timed_out

    @pytest.mark.asyncio
    async def test_cancel_kills_child(self, runner, project_dir):
        task = asyncio.create_task(runner.run("sleep 5", project_dir))
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=3)

    def test_run_sync(self, runner, project_dir):
        result = runner.run_sync("echo sync", project_dir)
        assert result.text == "sync\n"
        assert result.exit_code == 0


class TestDecodeOutput:
    def test_valid(self):
        assert decode_output("ü".encode()) == ("ü", True)

    def test_invalid(self):
        text, ok = decode_output(b"a\x80b")
        assert not ok
        assert text == "a�b"


class TestProcessGroupCleanup:
    @pytest.mark.asyncio
    async def test_timeout_kills_background_children(self, runner, project_dir, tmp_path):
        marker = tmp_path / "late"
        result = await runner.run(f"(sleep 2; touch {marker}) & echo started", project_dir, timeout=0.5)
        assert result.timed_out
        assert result.text == "started\n"
        assert result.execution_time_ms < 2000

        await asyncio.sleep(2.5)
        assert not marker.exists()
