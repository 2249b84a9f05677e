"""Configuration management using TOML + environment variables."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

CONFIG_DIR = Path.home() / ".yitpush"
CONFIG_FILE = CONFIG_DIR / "config.toml"
LOG_FILE = CONFIG_DIR / "yitpush.log"

DEEPSEEK_API_URL = "https://api.deepseek.com/v1/chat/completions"
DEEPSEEK_MODEL = "deepseek-reasoner"

# Context window of the model minus room for the completion and prompt framing,
# at a conservative three characters per token for code diffs.
DEEPSEEK_MAX_CONTEXT_TOKENS = 131072
DEEPSEEK_MAX_COMPLETION_TOKENS = 8000
DEEPSEEK_RESERVED_TOKENS = DEEPSEEK_MAX_COMPLETION_TOKENS + 8000
AVERAGE_CHARS_PER_TOKEN = 3
MAX_PROMPT_CHARS = (DEEPSEEK_MAX_CONTEXT_TOKENS - DEEPSEEK_RESERVED_TOKENS) * AVERAGE_CHARS_PER_TOKEN

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class DeepSeekConfig:
    api_key: str = ""
    api_url: str = DEEPSEEK_API_URL
    model: str = DEEPSEEK_MODEL
    max_tokens: int = DEEPSEEK_MAX_COMPLETION_TOKENS
    timeout: int = 120
    max_retries: int = 3
    base_delay: float = 1.0
    max_prompt_chars: int = MAX_PROMPT_CHARS


@dataclass
class GitConfig:
    default_language: str = "english"
    default_remote: str = "origin"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: str = "~/.yitpush/yitpush.log"


@dataclass
class AppConfig:
    deepseek: DeepSeekConfig = field(default_factory=DeepSeekConfig)
    git: GitConfig = field(default_factory=GitConfig)
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

        deepseek = data.get("deepseek", {})
        config.deepseek.api_url = deepseek.get("api_url", config.deepseek.api_url)
        config.deepseek.model = deepseek.get("model", config.deepseek.model)
        config.deepseek.max_tokens = deepseek.get("max_tokens", config.deepseek.max_tokens)
        config.deepseek.timeout = deepseek.get("timeout", config.deepseek.timeout)
        config.deepseek.max_retries = deepseek.get("max_retries", config.deepseek.max_retries)
        config.deepseek.base_delay = deepseek.get("base_delay", config.deepseek.base_delay)
        config.deepseek.max_prompt_chars = deepseek.get("max_prompt_chars", config.deepseek.max_prompt_chars)

        git = data.get("git", {})
        config.git.default_language = git.get("default_language", config.git.default_language)
        config.git.default_remote = git.get("default_remote", config.git.default_remote)

        logging_cfg = data.get("logging", {})
        config.logging.level = logging_cfg.get("level", config.logging.level)
        config.logging.file = logging_cfg.get("file", config.logging.file)

    # Environment variable overrides
    if env_key := os.environ.get("DEEPSEEK_API_KEY"):
        config.deepseek.api_key = env_key.strip()
    if env_url := os.environ.get("YITPUSH_API_URL"):
        config.deepseek.api_url = env_url
    if env_model := os.environ.get("YITPUSH_MODEL"):
        config.deepseek.model = env_model
    if env_timeout := os.environ.get("YITPUSH_API_TIMEOUT"):
        config.deepseek.timeout = int(env_timeout)
    if env_retries := os.environ.get("YITPUSH_MAX_RETRIES"):
        config.deepseek.max_retries = int(env_retries)
    if env_language := os.environ.get("YITPUSH_LANGUAGE"):
        config.git.default_language = env_language
    if env_log_level := os.environ.get("YITPUSH_LOG_LEVEL"):
        config.logging.level = env_log_level
    if env_log_file := os.environ.get("YITPUSH_LOG_FILE"):
        config.logging.file = env_log_file

    return config


def save_config(config: AppConfig) -> None:
    """Save configuration to TOML file. The API key is never written."""
    ensure_config_dir()

    data = {
        "deepseek": {
            "api_url": config.deepseek.api_url,
            "model": config.deepseek.model,
            "max_tokens": config.deepseek.max_tokens,
            "timeout": config.deepseek.timeout,
            "max_retries": config.deepseek.max_retries,
            "base_delay": config.deepseek.base_delay,
            "max_prompt_chars": config.deepseek.max_prompt_chars,
        },
        "git": {
            "default_language": config.git.default_language,
            "default_remote": config.git.default_remote,
        },
        "logging": {
            "level": config.logging.level,
            "file": config.logging.file,
        },
    }

    with open(CONFIG_FILE, "wb") as f:
        tomli_w.dump(data, f)

    os.chmod(CONFIG_FILE, 0o600)


def configure_logging(config: AppConfig, verbose: bool = False) -> None:
    """Send log records to the configured log file, and to stderr when verbose."""
    log_path = Path(config.logging.file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else getattr(logging, config.logging.level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(str(log_path), encoding="utf-8", delay=True),
            *([logging.StreamHandler()] if verbose else []),
        ],
    )
