"""Save generated texts as Markdown files."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from yitpush.utils.formatting import safe_filename_part

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info("Saved %s (%d chars)", path, len(text))
    return path


def save_commit_message(text: str, directory: Path | None = None, now: datetime | None = None) -> Path:
    """Write commit-message-<timestamp>.md and return its path."""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return _write((directory or Path.cwd()) / f"commit-message-{stamp}.md", text)


def save_pr_description(
    text: str,
    from_branch: str,
    to_branch: str,
    directory: Path | None = None,
    now: datetime | None = None,
) -> Path:
    """Write pr-description-<from>-to-<to>-<timestamp>.md and return its path."""
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    name = f"pr-description-{safe_filename_part(from_branch)}-to-{safe_filename_part(to_branch)}-{stamp}.md"
    return _write((directory or Path.cwd()) / name, text)
