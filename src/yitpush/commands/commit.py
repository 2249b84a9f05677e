"""Stage, commit and push with an AI-generated commit message."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.markup import escape

from yitpush.commands.common import ensure_git_repository, require_api_key, show_generated
from yitpush.config import AppConfig
from yitpush.services import git
from yitpush.services.deepseek import DeepSeekClient
from yitpush.services.templates import render_commit_prompt
from yitpush.storage.markdown import save_commit_message
from yitpush.utils.menus import confirm_yes

logger = logging.getLogger(__name__)
console = Console()


async def push_changes(config: AppConfig, require_confirmation: bool, remote: str | None = None) -> bool:
    """Push, setting the upstream branch when the current branch has none."""
    result = await git.push(remote)
    if result.ok:
        return True

    error = result.stderr.strip()
    if git.is_missing_upstream(error):
        upstream_remote = remote or config.git.default_remote
        branch = await git.get_current_branch()

        if require_confirmation:
            console.print(f"[red]Git error:[/red] {escape(error)}")
            if branch is None:
                console.print("\nNote: The current branch has no upstream branch.")
                console.print("      You can set it with: git push --set-upstream origin <branch-name>")
                return False
            console.print(f"\nThe current branch '{escape(branch)}' has no upstream branch.")
            if not confirm_yes(f"Do you want to push and set upstream to {upstream_remote}/{branch}?"):
                console.print("Push cancelled.")
                return False

        if branch is not None:
            upstream = await git.push_set_upstream(upstream_remote, branch)
            if upstream.ok:
                return True
            error = upstream.stderr.strip()

    if error:
        console.print(f"[red]Git error:[/red] {escape(error)}")
    return False


async def run_commit(
    config: AppConfig,
    confirm: bool = False,
    detailed: bool = False,
    language: str = "english",
    save: bool = False,
) -> int:
    """Generate a commit message for all local changes, commit them and push."""
    if not await ensure_git_repository():
        return 1
    if not require_api_key(config):
        return 1

    console.print("Analyzing git changes...")
    diff = await git.get_working_diff()
    has_changes = bool(diff.strip())

    if has_changes:
        console.print(f"Found changes ({len(diff)} characters)\n")
    else:
        console.print("[yellow]No changes detected in the repository.[/yellow]")
        console.print("\nWill attempt to push existing commits...\n")

    message = ""
    if has_changes:
        console.print(f"Generating commit message with DeepSeek...{' (detailed mode)' if detailed else ''}")
        prompt = render_commit_prompt(diff, config.deepseek.max_prompt_chars, detailed=detailed, language=language)
        message = await DeepSeekClient(config.deepseek).generate(prompt)

        if not message.strip():
            console.print("[red]Error: Failed to generate commit message.[/red]")
            return 1

        console.print("\nGenerated commit message:")
        show_generated(message, "Commit Message")
        console.print()

        if save:
            path = save_commit_message(message)
            console.print(f"[green]Commit message saved to:[/green] {path.name}\n")

        if confirm:
            if not confirm_yes("Do you want to proceed with this commit?"):
                console.print("\nCommit cancelled.")
                return 0
        else:
            console.print("Proceeding automatically (use --confirm to review)...")
    elif confirm:
        if not confirm_yes("No changes to commit. Do you want to push existing commits?"):
            console.print("\nPush cancelled.")
            return 0
    else:
        console.print("No changes to commit, proceeding with push...")

    console.print("\nExecuting git commands...")

    if has_changes:
        console.print("   git add .")
        if not await git.run_git("add", "."):
            console.print("[red]Error: git add failed.[/red]")
            return 1

        console.print("   git commit")
        if not await git.run_git("commit", "-m", message):
            console.print("[red]Error: git commit failed.[/red]")
            return 1

    if not await push_changes(config, confirm):
        return 1

    if has_changes:
        console.print("\n[green]Successfully committed and pushed changes![/green]")
    else:
        console.print("\n[green]Successfully pushed changes![/green]")
    logger.info("commit finished (changes=%s)", has_changes)
    return 0
