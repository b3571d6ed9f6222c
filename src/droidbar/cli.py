"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from droidbar import __version__
from droidbar.config import (
    CONFIG_FILE,
    LOG_FILE,
    AdbConfig,
    AppConfig,
    LoggingConfig,
    ProjectConfig,
    RunnerConfig,
    load_config,
    save_config,
)
from droidbar.services.android import AndroidTools
from droidbar.services.logsink import LogSink
from droidbar.storage.models import CapturedOutput
from droidbar.utils.system import check_adb, check_project_dir, check_shell, find_build_file

app = typer.Typer(
    name="droidbar",
    help="Build, install, launch and tail logs of an Android project.",
    add_completion=False,
)
console = Console()

ProjectOption = typer.Option(None, "--project", "-p", help="Android project directory")


def _echo(text: str) -> None:
    console.print(text, end="", markup=False, highlight=False, soft_wrap=True)


def _setup_logging(config: AppConfig) -> None:
    log_path = Path(config.logging.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(log_path)),
            logging.StreamHandler(),
        ],
    )


def _tools(project: Optional[str]) -> AndroidTools:
    """Load config, set up logging and select the project."""
    config = load_config()
    _setup_logging(config)

    path = project or config.project.path
    if not path:
        console.print("[red]No project selected.[/red]")
        console.print("Pass [bold]--project[/bold] or run [bold]droidbar select <path>[/bold].")
        raise typer.Exit(1)

    tools = AndroidTools(config, sink=LogSink(listener=_echo))
    tools.select_project(path)
    if not tools.project_path:
        raise typer.Exit(1)
    return tools


def _finish(result: CapturedOutput | None) -> None:
    if result is None:
        raise typer.Exit(1)
    if not result.ok:
        raise typer.Exit(result.exit_code if result.exit_code > 0 else 1)


@app.command()
def init() -> None:
    """Interactive setup wizard."""
    console.print(f"\n[bold]droidbar v{__version__}[/bold]")
    console.print("Interactive Setup\n")

    # 1. Check adb
    console.print("[dim]Checking adb...[/dim]")
    installed, version_info = check_adb()
    if installed:
        console.print(f"  adb: [green]{version_info}[/green]")
    else:
        console.print(f"  [yellow]Warning: {version_info}[/yellow]")
        console.print("  Builds still work, but install/run/logcat need adb.\n")

    # 2. Project directory
    console.print("\n[bold]Step 1:[/bold] Android Project Directory")
    project_path = typer.prompt("  Project path", default=str(Path.cwd()))
    valid, resolved = check_project_dir(project_path)
    if not valid:
        console.print(f"[red]{resolved}[/red]")
        raise typer.Exit(1)
    if find_build_file(resolved) is None:
        console.print("  [yellow]Warning: could not find build.gradle in app/ directory[/yellow]")

    # 3. Launch target
    console.print("\n[bold]Step 2:[/bold] Application Package")
    console.print("  Used to launch the app with 'adb shell am start'.")
    package_name = typer.prompt("  Package name", default="com.example.app")
    main_activity = typer.prompt("  Launch activity", default=".MainActivity")

    # 4. adb path
    console.print("\n[bold]Step 3:[/bold] adb Executable")
    adb_path = typer.prompt("  adb path", default="adb")

    config = AppConfig(
        project=ProjectConfig(path=resolved, package_name=package_name, main_activity=main_activity),
        runner=RunnerConfig(),
        adb=AdbConfig(path=adb_path),
        logging=LoggingConfig(),
    )
    save_config(config)

    console.print(f"\n[green]Configuration saved to {CONFIG_FILE}[/green]")
    console.print("\nNext steps:")
    console.print("  [bold]droidbar build[/bold]   Build the debug APK")
    console.print("  [bold]droidbar run[/bold]     Install and launch on the device")
    console.print("  [bold]droidbar logcat[/bold]  Follow device logs\n")


@app.command()
def select(path: str = typer.Argument(..., help="Android project directory")) -> None:
    """Select the project directory used by the other commands."""
    config = load_config()
    tools = AndroidTools(config, sink=LogSink(listener=_echo))
    tools.select_project(path)
    if not tools.project_path:
        raise typer.Exit(1)

    config.project.path = tools.project_path
    save_config(config)
    console.print(f"[green]project.path = {tools.project_path}[/green]")


@app.command()
def build(project: Optional[str] = ProjectOption) -> None:
    """Build the debug APK (gradlew assembleDebug)."""
    tools = _tools(project)
    _finish(asyncio.run(tools.build_apk()))


@app.command()
def install(project: Optional[str] = ProjectOption) -> None:
    """Install the debug APK (gradlew installDebug)."""
    tools = _tools(project)
    _finish(asyncio.run(tools.install_apk()))


@app.command()
def run(project: Optional[str] = ProjectOption) -> None:
    """Install the debug APK and launch its main activity."""
    tools = _tools(project)
    _finish(asyncio.run(tools.run_on_device()))


@app.command("exec")
def exec_command(
    command: str = typer.Argument(..., help="Command line to run in the project directory"),
    project: Optional[str] = ProjectOption,
) -> None:
    """Run an arbitrary command in the project directory."""
    tools = _tools(project)
    _finish(asyncio.run(tools.exec(command)))


@app.command()
def logcat(project: Optional[str] = ProjectOption) -> None:
    """Follow adb logcat until Ctrl+C."""
    tools = _tools(project)

    async def _follow() -> bool:
        handle = await tools.start_logs()
        if handle is None:
            return False

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, tools.stop_logs)

        status = await handle.wait()
        return not status.crashed

    if not asyncio.run(_follow()):
        raise typer.Exit(1)


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., runner.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = load_config()

    if key is None:
        # Show all config
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("project.path", cfg.project.path or "(not set)")
        table.add_row("project.package_name", cfg.project.package_name)
        table.add_row("project.main_activity", cfg.project.main_activity)
        table.add_row("runner.shell", cfg.runner.shell)
        table.add_row("runner.timeout", str(cfg.runner.timeout) if cfg.runner.timeout else "none")
        table.add_row("adb.path", cfg.adb.path)
        table.add_row("adb.logcat_args", " ".join(cfg.adb.logcat_args))
        table.add_row("logging.level", cfg.logging.level)
        table.add_row("logging.file", cfg.logging.file)

        console.print(table)
        return

    if value is None:
        console.print("[red]Usage: droidbar config <key> <value>[/red]")
        raise typer.Exit(1)

    # Set config value
    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., runner.timeout)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    section_map = {"project": cfg.project, "runner": cfg.runner, "adb": cfg.adb, "logging": cfg.logging}

    if section not in section_map:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    # Type coercion
    current = getattr(obj, attr)
    try:
        if isinstance(current, bool):
            typed_value = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            typed_value = int(value)
        elif isinstance(current, list):
            typed_value = value.split()
        else:
            typed_value = value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def doctor() -> None:
    """Check adb, the shell and the selected project."""
    cfg = load_config()
    healthy = True

    installed, version_info = check_adb(cfg.adb.path)
    if installed:
        console.print(f"adb: [green]{version_info}[/green]")
    else:
        console.print(f"adb: [yellow]{version_info}[/yellow]")

    shell_ok, shell_info = check_shell(cfg.runner.shell)
    if shell_ok:
        console.print(f"Shell: [green]{shell_info}[/green]")
    else:
        console.print(f"Shell: [red]{shell_info}[/red]")
        healthy = False

    if not cfg.project.path:
        console.print("Project: [yellow]not selected[/yellow]")
    else:
        valid, resolved = check_project_dir(cfg.project.path)
        if not valid:
            console.print(f"Project: [red]{resolved}[/red]")
            healthy = False
        elif find_build_file(resolved) is None:
            console.print(f"Project: [yellow]{resolved} (no app/build.gradle)[/yellow]")
        else:
            console.print(f"Project: [green]{resolved}[/green]")

    console.print(f"Launch: {cfg.project.package_name}/{cfg.project.main_activity}")

    if not healthy:
        raise typer.Exit(1)


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View droidbar's own log file."""
    log_path = Path(LOG_FILE).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text()
    log_lines = content.strip().split("\n")
    for line in log_lines[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"droidbar v{__version__}")

    cfg = load_config()
    installed, version_info = check_adb(cfg.adb.path)
    if installed:
        console.print(f"adb: {version_info}")
    else:
        console.print("adb: [yellow]not installed[/yellow]")

    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
