"""Interactive terminal prompts."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

BACK_OPTION = "← Back"


def select(title: str, choices: list[str], back: bool = True) -> str | None:
    """Show a numbered menu and return the chosen entry.

    With `back`, option 0 is "← Back" and selecting it returns None.
    """
    index = select_index(title, choices, back=back)
    return None if index is None else choices[index]


def select_index(title: str, choices: list[str], back: bool = True) -> int | None:
    """Like `select`, but return the zero-based position of the chosen entry."""
    console.print(f"\n{title}")
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="cyan", justify="right")
    table.add_column()
    for number, choice in enumerate(choices, start=1):
        table.add_row(str(number), escape(choice))
    if back:
        table.add_row("0", f"[dim]{BACK_OPTION}[/dim]")
    console.print(table)

    lowest = 0 if back else 1
    while True:
        index = typer.prompt("Select", type=int)
        if lowest <= index <= len(choices):
            break
        console.print(f"[red]Enter a number between {lowest} and {len(choices)}.[/red]")

    if index == 0:
        return None
    return index - 1


def ask_text(label: str, default: str | None = None) -> str:
    if default is None:
        return typer.prompt(label).strip()
    return typer.prompt(label, default=default, show_default=bool(default)).strip()


def ask_int(label: str) -> int:
    return typer.prompt(label, type=int)


def confirm_yes(question: str) -> bool:
    """Ask a y/n question; only "y" or "yes" count as consent."""
    answer = typer.prompt(f"{question} (y/n)", default="", show_default=False)
    return answer.strip().lower() in ("y", "yes")
