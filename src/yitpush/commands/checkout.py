"""Interactive branch checkout."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from yitpush.commands.common import ensure_git_repository
from yitpush.services import git
from yitpush.utils.formatting import format_branch_rows
from yitpush.utils.menus import select_index

console = Console()


async def _pull_latest() -> None:
    console.print("Pulling latest changes...")
    if not await git.pull():
        console.print("[yellow]Could not pull latest changes.[/yellow]")


async def run_checkout() -> int:
    if not await ensure_git_repository():
        return 1

    console.print("[bold blue]Interactive Branch Checkout[/bold blue]\n")

    console.print("Fetching remote branches...")
    if not await git.fetch_all():
        console.print("[yellow]Could not fetch remote branches. Continuing with known branches...[/yellow]\n")

    branches = await git.get_branches()
    current = await git.get_current_branch()
    if current:
        branches = [b for b in branches if b.name != current]
        console.print(f"Current branch: [cyan]{escape(current)}[/cyan]\n")

    if not branches:
        console.print("[yellow]No other branches found.[/yellow]")
        return 0

    rows = format_branch_rows(branches)
    index = select_index("Select branch to checkout:", rows)
    if index is None:
        return 0
    branch = branches[index]

    if branch.is_remote:
        local = git.local_name(branch.name)
        console.print(
            f"\nChecking out remote branch [cyan]{escape(branch.name)}[/cyan] as [cyan]{escape(local)}[/cyan]..."
        )
        switched = await git.checkout_tracking(branch.name)
    else:
        console.print(f"\nChecking out [cyan]{escape(branch.name)}[/cyan]...")
        switched = await git.checkout(branch.name)

    if switched:
        console.print(f"[green]Switched to branch '{escape(branch.name)}'[/green]")
        await _pull_latest()
        return 0

    if branch.is_remote:
        # The tracking branch may already exist locally
        local = git.local_name(branch.name)
        console.print("[yellow]Tracking branch may already exist. Trying local checkout...[/yellow]")
        if await git.checkout(local):
            console.print(f"[green]Switched to branch '{escape(local)}'[/green]")
            await _pull_latest()
            return 0

    console.print("[red]Failed to checkout branch.[/red]")
    return 1
