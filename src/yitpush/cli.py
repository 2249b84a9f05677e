"""CLI entry point using typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Coroutine, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from yitpush import __version__
from yitpush.commands import azure_devops
from yitpush.commands.checkout import run_checkout
from yitpush.commands.commit import run_commit
from yitpush.commands.pr import run_pr
from yitpush.config import CONFIG_FILE, AppConfig, configure_logging, load_config, save_config
from yitpush.utils.system import check_az_cli, check_git_cli

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="yitpush",
    help="AI-powered git commits, PR descriptions and Azure DevOps helpers.",
    add_completion=False,
    no_args_is_help=True,
)
azure_app = typer.Typer(help="Manage Azure DevOps resources.", no_args_is_help=True)
repo_app = typer.Typer(help="Create or clone Azure DevOps repositories.", no_args_is_help=True)
variable_group_app = typer.Typer(help="Inspect pipeline variable groups.", no_args_is_help=True)
hu_app = typer.Typer(help="Work with user stories and their tasks.", no_args_is_help=True)

app.add_typer(azure_app, name="azure-devops")
azure_app.add_typer(repo_app, name="repo")
azure_app.add_typer(variable_group_app, name="variable-group")
azure_app.add_typer(hu_app, name="hu")

console = Console()

LANGUAGE_HELP = "Output language (e.g., english, spanish, french)"
ORG_HELP = "Organization name or URL"
PROJECT_HELP = "Project name"
ID_HELP = "Work item ID"


def _config(ctx: typer.Context) -> AppConfig:
    if not isinstance(ctx.obj, AppConfig):
        ctx.obj = load_config()
    return ctx.obj


def _run(coro: Coroutine[object, object, int]) -> None:
    exit_code = asyncio.run(coro)
    if exit_code:
        raise typer.Exit(exit_code)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """AI-powered git commits, PR descriptions and Azure DevOps helpers."""
    config = load_config()
    configure_logging(config, verbose=verbose)
    ctx.obj = config


@app.command()
def commit(
    ctx: typer.Context,
    confirm: bool = typer.Option(False, "--confirm", help="Ask for confirmation before committing"),
    detailed: bool = typer.Option(False, "--detailed", help="Generate detailed commit with title + body"),
    language: Optional[str] = typer.Option(None, "--language", "--lang", help=LANGUAGE_HELP),
    save: bool = typer.Option(False, "--save", help="Save commit message to a markdown file"),
) -> None:
    """Stage, commit and push changes with an AI-generated message."""
    config = _config(ctx)
    try:
        exit_code = asyncio.run(
            run_commit(
                config,
                confirm=confirm,
                detailed=detailed,
                language=language or config.git.default_language,
                save=save,
            )
        )
    except typer.Abort:
        raise
    except Exception as e:
        logger.exception("commit failed")
        console.print(f"\n[red]Unexpected error: {escape(str(e))}[/red]")
        exit_code = 1
    if exit_code:
        raise typer.Exit(exit_code)


@app.command()
def pr(
    ctx: typer.Context,
    detailed: bool = typer.Option(False, "--detailed", help="Generate detailed PR description"),
    language: Optional[str] = typer.Option(None, "--language", "--lang", help=LANGUAGE_HELP),
    save: bool = typer.Option(False, "--save", help="Save PR description to a markdown file"),
) -> None:
    """Generate a pull request description between two branches."""
    config = _config(ctx)
    _run(run_pr(config, detailed=detailed, language=language or config.git.default_language, save=save))


@app.command()
def checkout() -> None:
    """Interactive branch checkout."""
    _run(run_checkout())


@repo_app.command("new")
def repo_new() -> None:
    """Create a new repository interactively and add it as a remote."""
    _run(azure_devops.repo_new())


@repo_app.command("checkout")
def repo_checkout() -> None:
    """Clone a repository interactively."""
    _run(azure_devops.repo_checkout())


@variable_group_app.command("list")
def variable_group_list() -> None:
    """List variable groups and inspect their variables."""
    _run(azure_devops.variable_group_list())


@hu_app.command("list")
def hu_list(
    organization: Optional[str] = typer.Argument(None, help=ORG_HELP),
    project: Optional[str] = typer.Argument(None, help=PROJECT_HELP),
    work_item_id: Optional[int] = typer.Argument(None, metavar="ID", help=ID_HELP),
) -> None:
    """Show a user story and its tasks."""
    _run(azure_devops.hu_list(organization, project, work_item_id))


@hu_app.command("task")
def hu_task(
    organization: Optional[str] = typer.Argument(None, help=ORG_HELP),
    project: Optional[str] = typer.Argument(None, help=PROJECT_HELP),
    work_item_id: Optional[int] = typer.Argument(None, metavar="ID", help=ID_HELP),
) -> None:
    """Create tasks under a user story."""
    _run(azure_devops.hu_task(organization, project, work_item_id))


@azure_app.command("link")
def link(
    ctx: typer.Context,
    organization: Optional[str] = typer.Argument(None, help=ORG_HELP),
    project: Optional[str] = typer.Argument(None, help=PROJECT_HELP),
    work_item_id: Optional[int] = typer.Argument(None, metavar="ID", help=ID_HELP),
) -> None:
    """Link the current git branch to a work item."""
    config = _config(ctx)
    _run(azure_devops.link(organization, project, work_item_id, remote=config.git.default_remote))


@app.command()
def config(
    ctx: typer.Context,
    key: str = typer.Argument(None, help="Config key (e.g., deepseek.timeout)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = _config(ctx)

    if key is None:
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("deepseek.api_key", cfg.deepseek.api_key[:6] + "..." if cfg.deepseek.api_key else "(not set)")
        table.add_row("deepseek.api_url", cfg.deepseek.api_url)
        table.add_row("deepseek.model", cfg.deepseek.model)
        table.add_row("deepseek.max_tokens", str(cfg.deepseek.max_tokens))
        table.add_row("deepseek.timeout", str(cfg.deepseek.timeout))
        table.add_row("deepseek.max_retries", str(cfg.deepseek.max_retries))
        table.add_row("deepseek.base_delay", str(cfg.deepseek.base_delay))
        table.add_row("deepseek.max_prompt_chars", str(cfg.deepseek.max_prompt_chars))
        table.add_row("git.default_language", cfg.git.default_language)
        table.add_row("git.default_remote", cfg.git.default_remote)
        table.add_row("logging.level", cfg.logging.level)
        table.add_row("logging.file", cfg.logging.file)

        console.print(table)
        console.print(f"\n[dim]Config file: {CONFIG_FILE}[/dim]")
        return

    if value is None:
        console.print("[red]Usage: yitpush config <key> <value>[/red]")
        raise typer.Exit(1)

    if key == "deepseek.api_key":
        console.print("[red]The API key is read from the DEEPSEEK_API_KEY environment variable only.[/red]")
        raise typer.Exit(1)

    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., deepseek.timeout)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    section_map = {"deepseek": cfg.deepseek, "git": cfg.git, "logging": cfg.logging}

    if section not in section_map:
        console.print(f"[red]Unknown section: {section}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {key}[/red]")
        raise typer.Exit(1)

    # Type coercion
    current = getattr(obj, attr)
    try:
        if isinstance(current, bool):
            typed_value = value.lower() in ("true", "1", "yes")
        elif isinstance(current, int):
            typed_value = int(value)
        elif isinstance(current, float):
            typed_value = float(value)
        else:
            typed_value = value
    except ValueError:
        console.print(f"[red]Invalid value type for {key}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{key} = {typed_value}[/green]")


@app.command()
def logs(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View the yitpush log."""
    log_path = Path(_config(ctx).logging.file).expanduser().resolve()
    content = log_path.read_text(encoding="utf-8", errors="replace") if log_path.exists() else ""
    if not content.strip():
        console.print("[dim]No log entries found.[/dim]")
        return

    for line in content.strip().split("\n")[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"yitpush v{__version__}")

    for label, check in (("git", check_git_cli), ("Azure CLI", check_az_cli)):
        installed, info = check()
        if installed:
            console.print(f"{label}: {escape(info)}")
        else:
            console.print(f"{label}: [yellow]not installed[/yellow]")

    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
