"""Tests for configuration module."""

from __future__ import annotations

from droidbar.config import (
    DEFAULT_LOGCAT_ARGS,
    AdbConfig,
    AppConfig,
    ProjectConfig,
    RunnerConfig,
    get_config,
    load_config,
    reset_config,
    save_config,
)


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.project.path == ""
        assert config.project.package_name == "com.example.app"
        assert config.project.main_activity == ".MainActivity"
        assert config.runner.shell in ("/bin/zsh", "/bin/sh")
        assert config.runner.timeout == 600
        assert config.adb.path == "adb"
        assert config.adb.logcat_args == ["logcat", "-v", "time", "*:D"]

    def test_logcat_args_not_shared(self):
        config = AppConfig()
        config.adb.logcat_args.append("-c")
        assert DEFAULT_LOGCAT_ARGS == ["logcat", "-v", "time", "*:D"]
        assert AppConfig().adb.logcat_args == DEFAULT_LOGCAT_ARGS

    def test_save_and_load(self, tmp_path, monkeypatch):
        import droidbar.config as cfg_module

        config_file = tmp_path / "config.toml"
        monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_file)
        monkeypatch.setattr(cfg_module, "CONFIG_DIR", tmp_path)

        config = AppConfig(
            project=ProjectConfig(path="/tmp/MyApp", package_name="com.acme.app"),
            runner=RunnerConfig(shell="/bin/sh", timeout=0),
            adb=AdbConfig(path="/opt/sdk/platform-tools/adb", logcat_args=["logcat", "*:E"]),
        )

        save_config(config)
        assert config_file.exists()

        loaded = load_config()
        assert loaded.project.path == "/tmp/MyApp"
        assert loaded.project.package_name == "com.acme.app"
        assert loaded.runner.shell == "/bin/sh"
        assert loaded.runner.timeout == 0
        assert loaded.adb.path == "/opt/sdk/platform-tools/adb"
        assert loaded.adb.logcat_args == ["logcat", "*:E"]

    def test_env_overrides(self, tmp_path, monkeypatch):
        import droidbar.config as cfg_module

        monkeypatch.setattr(cfg_module, "CONFIG_FILE", tmp_path / "missing.toml")
        monkeypatch.setenv("DROIDBAR_PROJECT", "/work/app")
        monkeypatch.setenv("DROIDBAR_PACKAGE", "org.sample")
        monkeypatch.setenv("DROIDBAR_TIMEOUT", "42")
        monkeypatch.setenv("DROIDBAR_ADB", "/usr/local/bin/adb")

        loaded = load_config()
        assert loaded.project.path == "/work/app"
        assert loaded.project.package_name == "org.sample"
        assert loaded.runner.timeout == 42
        assert loaded.adb.path == "/usr/local/bin/adb"

    def test_singleton(self, tmp_path, monkeypatch):
        import droidbar.config as cfg_module

        monkeypatch.setattr(cfg_module, "CONFIG_FILE", tmp_path / "missing.toml")
        reset_config()
        try:
            assert get_config() is get_config()
        finally:
            reset_config()
