"""Tests for the CLI's startup sequence (logging, then config)."""

from __future__ import annotations

import logging

import pytest

from provider_manager.cli import _build_parser, _load_config_with_logging


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("SVC_LOG_LEVEL", "PROVIDER_MANAGER_CONFIG", "DB_TYPE"):
        monkeypatch.delenv(var, raising=False)
    yield tmp_path
    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)


def _args(*argv: str):
    return _build_parser().parse_args(["server", *argv])


def _write_config(directory, body: str) -> str:
    cfg_file = directory / "config.yaml"
    cfg_file.write_text(body, encoding="utf-8")
    return str(cfg_file)


def _log_text(directory, log_fpath: str) -> str:
    for handler in logging.root.handlers:
        handler.flush()
    return (directory / log_fpath).read_text(encoding="utf-8")


class TestLoadConfigWithLogging:
    def test_config_messages_reach_log_file(self, workdir) -> None:
        path = _write_config(workdir, "database:\n  type: oracle\n")

        config, cfg_abs_path, log_fpath, level = _load_config_with_logging(_args("--config", path))

        content = _log_text(workdir, log_fpath)
        assert config.database.type == "sqlite"
        assert cfg_abs_path == path
        assert level == "INFO"
        assert "Invalid database type 'oracle'" in content
        assert "Configuration" in content and "loaded" in content

    def test_config_level_applied_without_flag(self, workdir) -> None:
        _write_config(workdir, "server:\n  log_level: warning\n")

        _, _, _, level = _load_config_with_logging(_args())

        assert level == "WARNING"
        assert logging.getLogger("provider_manager").level == logging.WARNING

    def test_flag_wins_over_config(self, workdir, monkeypatch) -> None:
        monkeypatch.setenv("SVC_LOG_LEVEL", "error")
        _write_config(workdir, "server:\n  log_level: warning\n")

        _, _, _, level = _load_config_with_logging(_args("--log-level", "debug"))

        assert level == "DEBUG"
        assert logging.getLogger("provider_manager").level == logging.DEBUG

    def test_env_level_used_for_startup(self, workdir, monkeypatch) -> None:
        monkeypatch.setenv("SVC_LOG_LEVEL", "error")

        _, cfg_abs_path, log_fpath, level = _load_config_with_logging(_args())

        # SVC_LOG_LEVEL is also a config override, so both agree
        assert cfg_abs_path is None
        assert level == "ERROR"
        assert log_fpath.endswith("_ERROR.log")
