"""Helpers shared by the command handlers."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from yitpush.config import AppConfig
from yitpush.services import git
from yitpush.utils.system import copy_to_clipboard

console = Console()


async def ensure_git_repository() -> bool:
    if await git.is_git_repository():
        return True
    console.print("[red]Error: Not a git repository.[/red]")
    console.print("\nPlease run this command from within a git repository.")
    return False


def require_api_key(config: AppConfig) -> bool:
    if config.deepseek.api_key:
        return True
    console.print("[red]Error: DEEPSEEK_API_KEY environment variable not found.[/red]")
    console.print("\nPlease set your DeepSeek API key:")
    console.print("  export DEEPSEEK_API_KEY='your-api-key-here'")
    return False


def show_generated(text: str, header: str) -> None:
    """Display generated text in a panel and copy it to the clipboard."""
    console.print(Panel(escape(text), title=header, border_style="cyan", padding=(1, 0)))
    copied, reason = copy_to_clipboard(text)
    if copied:
        console.print("[green]Copied to clipboard[/green]")
    else:
        console.print(f"[yellow]Could not copy to clipboard: {escape(reason)}[/yellow]")
