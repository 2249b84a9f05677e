"""System utility checks."""

from __future__ import annotations

import shutil
import subprocess

import pyperclip


def check_cli(name: str, version_args: list[str], install_hint: str) -> tuple[bool, str]:
    """Check if an executable is installed and return its version line."""
    path = shutil.which(name)
    if not path:
        return False, f"{name} not found. {install_hint}"
    try:
        result = subprocess.run(
            [path, *version_args],
            capture_output=True,
            text=True,
            timeout=30,
        )
        output = result.stdout.strip() or result.stderr.strip()
        return True, output.splitlines()[0] if output else "installed"
    except subprocess.TimeoutExpired:
        return False, f"{name} version check timed out"
    except OSError as e:
        return False, f"Error checking {name}: {e}"


def check_git_cli() -> tuple[bool, str]:
    return check_cli("git", ["--version"], "Install: https://git-scm.com/downloads")


def check_az_cli() -> tuple[bool, str]:
    return check_cli(
        "az", ["--version"], "Install: https://docs.microsoft.com/en-us/cli/azure/install-azure-cli"
    )


def copy_to_clipboard(text: str) -> tuple[bool, str]:
    """Copy text to the system clipboard. Returns (copied, reason)."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        return False, str(e)
    return True, ""
