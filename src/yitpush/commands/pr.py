"""Generate a pull request description between two branches."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.markup import escape

from yitpush.commands.common import ensure_git_repository, require_api_key, show_generated
from yitpush.config import AppConfig
from yitpush.services import git
from yitpush.services.deepseek import DeepSeekClient
from yitpush.services.templates import render_pr_prompt
from yitpush.storage.markdown import save_pr_description
from yitpush.storage.models import Branch
from yitpush.utils.formatting import format_branch_rows
from yitpush.utils.menus import select

logger = logging.getLogger(__name__)
console = Console()


def choose_branches(branches: list[Branch]) -> tuple[str, str] | None:
    """Ask for the source branch, then the target branch.

    Going back from the target returns to the source choice; going back from
    the source gives up and returns None.
    """
    rows = format_branch_rows(branches)
    by_row = dict(zip(rows, (b.name for b in branches)))

    while True:
        from_row = select(
            "Select [green]source[/green] branch (branch with changes):", rows
        )
        if from_row is None:
            return None
        from_branch = by_row[from_row]
        console.print(f"\n[green]Source branch:[/green] {escape(from_branch)}")

        target_rows = [row for row in rows if by_row[row] != from_branch]
        to_row = select("Select [green]target[/green] branch (branch to merge into):", target_rows)
        if to_row is None:
            continue
        to_branch = by_row[to_row]
        console.print(f"\n[green]Target branch:[/green] {escape(to_branch)}")
        return from_branch, to_branch


async def run_pr(
    config: AppConfig,
    detailed: bool = False,
    language: str = "english",
    save: bool = False,
) -> int:
    if not await ensure_git_repository():
        return 1

    console.print("[bold blue]PR Description Generator[/bold blue]\n")
    if not require_api_key(config):
        return 1

    console.print("Fetching branches...")
    branches = await git.get_branches()
    if len(branches) < 2:
        console.print("[red]Need at least 2 branches to compare.[/red]")
        return 1

    chosen = choose_branches(branches)
    if chosen is None:
        return 0
    from_branch, to_branch = chosen

    console.print(
        f"\nAnalyzing differences between [cyan]{escape(from_branch)}[/cyan] and [cyan]{escape(to_branch)}[/cyan]..."
    )
    diff = await git.get_branch_diff(from_branch, to_branch)
    if not diff.strip():
        console.print("[yellow]No differences found between the selected branches.[/yellow]")
        return 0
    console.print(f"Found differences ({len(diff)} characters)\n")

    console.print(f"Generating PR description with DeepSeek...{' (detailed mode)' if detailed else ''}")
    prompt = render_pr_prompt(diff, config.deepseek.max_prompt_chars, detailed=detailed, language=language)
    description = await DeepSeekClient(config.deepseek).generate(prompt)

    if not description.strip():
        console.print("[red]Error: Failed to generate PR description.[/red]")
        return 1

    console.print()
    show_generated(description, "PR Description")

    if save:
        path = save_pr_description(description, from_branch, to_branch)
        console.print(f"\n[green]PR description saved to:[/green] {path.name}")

    logger.info("PR description generated for %s -> %s", from_branch, to_branch)
    return 0
