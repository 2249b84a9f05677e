"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from yitpush.config import AppConfig, DeepSeekConfig, GitConfig, LoggingConfig

ENV_VARS = (
    "DEEPSEEK_API_KEY",
    "YITPUSH_API_URL",
    "YITPUSH_MODEL",
    "YITPUSH_API_TIMEOUT",
    "YITPUSH_MAX_RETRIES",
    "YITPUSH_LANGUAGE",
    "YITPUSH_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config and log files of every test inside tmp_path."""
    import yitpush.cli as cli_module
    import yitpush.config as cfg_module

    config_dir = tmp_path / ".yitpush"
    monkeypatch.setattr(cfg_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(cfg_module, "CONFIG_FILE", config_dir / "config.toml")
    monkeypatch.setattr(cli_module, "CONFIG_FILE", config_dir / "config.toml")
    monkeypatch.setenv("YITPUSH_LOG_FILE", str(tmp_path / "logs" / "yitpush.log"))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return config_dir


@pytest.fixture
def app_config(tmp_path):
    """Create a test configuration."""
    return AppConfig(
        deepseek=DeepSeekConfig(api_key="test-key", timeout=5, max_retries=3, base_delay=1.0),
        git=GitConfig(default_language="english", default_remote="origin"),
        logging=LoggingConfig(level="DEBUG", file=str(tmp_path / "test.log")),
    )


@pytest.fixture
def no_clipboard():
    with patch("yitpush.commands.common.copy_to_clipboard", return_value=(False, "no clipboard")) as mock:
        yield mock
