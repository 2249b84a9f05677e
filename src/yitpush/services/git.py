"""Git plumbing built on the process runner."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.markup import escape

from yitpush.services.process import run_capturing, run_capturing_with_error, run_interactive
from yitpush.storage.models import Branch, CaptureResult

logger = logging.getLogger(__name__)
console = Console()

GIT = "git"
BRANCH_FORMAT = "%(refname:short)|%(committerdate:format:%Y-%m-%d %H:%M)|%(refname)"


async def is_git_repository() -> bool:
    _, exit_code = await run_capturing(GIT, ["rev-parse", "--git-dir"])
    return exit_code == 0


async def get_working_diff() -> str:
    """Collect staged, unstaged and untracked changes into one labelled text."""
    staged, _ = await run_capturing(GIT, ["diff", "--cached"])
    unstaged, _ = await run_capturing(GIT, ["diff"])
    untracked, _ = await run_capturing(GIT, ["ls-files", "--others", "--exclude-standard"])

    sections: list[str] = []
    if staged.strip():
        sections.append(f"=== Staged Changes ===\n{staged}\n")
    if unstaged.strip():
        sections.append(f"=== Unstaged Changes ===\n{unstaged}\n")
    if untracked.strip():
        sections.append(f"=== New Files (Untracked) ===\n{untracked}")
    return "\n".join(sections)


async def get_current_branch() -> str | None:
    stdout, exit_code = await run_capturing(GIT, ["branch", "--show-current"])
    if exit_code != 0:
        return None
    return stdout.strip() or None


def parse_branches(output: str) -> list[Branch]:
    """Parse `git branch --format` output, skipping HEAD pointers and malformed lines."""
    branches: list[Branch] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split("|", 2)
        if len(parts) < 3:
            continue
        name, date, refname = (p.strip() for p in parts)
        # refs/remotes/<remote>/HEAD is a symbolic pointer, not a branch
        if refname.endswith("/HEAD"):
            continue
        branch_type = "remote" if refname.startswith("refs/remotes/") else "local"
        branches.append(Branch(name=name, type=branch_type, date=date))
    return branches


async def get_branches() -> list[Branch]:
    """List local and remote branches, most recently committed first."""
    stdout, exit_code = await run_capturing(
        GIT, ["branch", "-a", "--sort=-committerdate", f"--format={BRANCH_FORMAT}"]
    )
    if exit_code != 0 or not stdout.strip():
        return []
    return parse_branches(stdout)


async def get_branch_diff(from_branch: str, to_branch: str) -> str:
    """Diff of what `from_branch` adds on top of its merge base with `to_branch`."""
    stdout, exit_code = await run_capturing(GIT, ["diff", f"{to_branch}...{from_branch}"])
    return stdout if exit_code == 0 else ""


async def run_git(*args: str) -> bool:
    """Run a git command, printing its stderr on failure."""
    result = await run_capturing_with_error(GIT, list(args))
    if not result.ok and result.stderr.strip():
        console.print(f"[red]Git error:[/red] {escape(result.stderr.strip())}")
    return result.ok


def is_missing_upstream(stderr: str) -> bool:
    return "no upstream branch" in stderr


async def push(remote: str | None = None) -> CaptureResult:
    args = ["push", remote] if remote else ["push"]
    console.print(f"   git {' '.join(args)}")
    return await run_capturing_with_error(GIT, args)


async def push_set_upstream(remote: str, branch: str) -> CaptureResult:
    console.print(f"   git push --set-upstream {remote} {branch}")
    return await run_capturing_with_error(GIT, ["push", "--set-upstream", remote, branch])


async def get_remote_url(name: str) -> str | None:
    result = await run_capturing_with_error(GIT, ["remote", "get-url", name])
    return result.stdout.strip() if result.ok else None


async def add_remote(name: str, url: str) -> bool:
    return await run_git("remote", "add", name, url)


async def remove_remote(name: str) -> bool:
    return await run_git("remote", "remove", name)


async def fetch_all() -> bool:
    return await run_git("fetch", "--all", "--prune")


async def checkout(branch: str) -> bool:
    return await run_git("checkout", branch)


async def checkout_tracking(remote_branch: str) -> bool:
    return await run_git("checkout", "-t", remote_branch)


async def pull() -> bool:
    return await run_git("pull")


async def clone(url: str, target_dir: str) -> bool:
    """Clone with progress output going straight to the terminal."""
    return await run_interactive(GIT, ["clone", url, target_dir])


def local_name(remote_branch: str) -> str:
    """Strip the remote prefix: "origin/feature-x" -> "feature-x"."""
    _, sep, rest = remote_branch.partition("/")
    return rest if sep else remote_branch
