"""External process runner service."""

from __future__ import annotations

import asyncio
import logging
import time

from yitpush.storage.models import CaptureResult

logger = logging.getLogger(__name__)


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def _communicate(command: str, args: list[str]) -> tuple[str, str, int]:
    """Run a command with both streams piped, draining them concurrently."""
    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        command,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout_bytes, stderr_bytes = await proc.communicate()
    exit_code = proc.returncode if proc.returncode is not None else -1

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.debug("%s %s exited %d in %dms", command, " ".join(args), exit_code, elapsed_ms)
    return _decode(stdout_bytes), _decode(stderr_bytes), exit_code


async def run_capturing(command: str, args: list[str]) -> tuple[str, int]:
    """Run a command and return (stdout, exit_code).

    A process that cannot be started is reported as ("", -1).
    """
    try:
        stdout, stderr, exit_code = await _communicate(command, args)
    except OSError as e:
        logger.warning("Could not start %s: %s", command, e)
        return "", -1

    if exit_code != 0 and stderr.strip():
        logger.debug("%s stderr: %s", command, stderr.strip())
    return stdout, exit_code


async def run_capturing_with_error(command: str, args: list[str]) -> CaptureResult:
    """Run a command and return stdout on exit code 0, stderr otherwise."""
    try:
        stdout, stderr, exit_code = await _communicate(command, args)
    except OSError as e:
        logger.warning("Could not start %s: %s", command, e)
        return CaptureResult.failure(str(e))

    if exit_code == 0:
        return CaptureResult.success(stdout)
    return CaptureResult.failure(stderr)


async def run_interactive(command: str, args: list[str]) -> bool:
    """Run a command attached to the terminal and report whether it succeeded."""
    try:
        proc = await asyncio.create_subprocess_exec(command, *args)
        exit_code = await proc.wait()
    except OSError as e:
        logger.warning("Could not start %s: %s", command, e)
        return False

    logger.debug("%s %s exited %d", command, " ".join(args), exit_code)
    return exit_code == 0
