"""Azure DevOps commands: repositories, variable groups and work items."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from yitpush.commands.common import ensure_git_repository
from yitpush.services import azure, git
from yitpush.storage.models import AzureRepo, WorkItem
from yitpush.utils.formatting import format_variable_group_rows
from yitpush.utils.menus import ask_int, ask_text, select, select_index

logger = logging.getLogger(__name__)
console = Console()

RELOGIN = "Yes, re-login"
CANCEL = "Cancel"
MANUAL_ORG = "Enter organization name manually"
USE_EXISTING = "Use existing repository"
REMOTE_AZURE = "azure"
REMOTE_REPLACE_ORIGIN = "origin (replace)"
REMOTE_CUSTOM = "custom"


# --- setup ---


async def handle_relogin() -> bool:
    """Offer to log in again after an expired Azure session."""
    console.print("[yellow]Your Azure session has expired or requires re-authentication.[/yellow]")
    if select("Would you like to [green]re-login[/green] to Azure?", [RELOGIN, CANCEL], back=False) != RELOGIN:
        return False

    console.print("\nStarting Azure re-authentication...\n")
    if not await azure.logout():
        console.print("[dim]Note: logout returned an error (may already be logged out).[/dim]")
    if not await azure.login():
        console.print("[red]Azure login failed.[/red]")
        return False

    console.print("\n[green]Successfully re-authenticated with Azure.[/green]\n")
    return True


async def ensure_cli_ready() -> bool:
    """Check az, the azure-devops extension and the login, fixing what can be fixed."""
    if not await azure.is_cli_installed():
        console.print("[red]Azure CLI (az) is not installed.[/red]")
        console.print("\nInstall it from: https://docs.microsoft.com/en-us/cli/azure/install-azure-cli")
        return False

    console.print("Checking Azure DevOps extension...")
    if not await azure.has_devops_extension():
        console.print("Installing Azure DevOps extension...")
        if not await azure.install_devops_extension():
            console.print("[red]Failed to install Azure DevOps extension.[/red]")
            return False
    console.print("[green]Azure DevOps extension available.[/green]\n")

    logged_in, user = await azure.get_signed_in_user()
    if not logged_in:
        console.print("Not logged into Azure. Starting interactive login...\n")
        if not await azure.login():
            console.print("[red]Azure login failed.[/red]")
            return False
        console.print("\n[green]Successfully logged into Azure.[/green]\n")
    else:
        console.print(f"[green]Logged into Azure as:[/green] {escape(user)}\n")
    return True


async def _discover_organizations() -> list[str] | None:
    console.print("Fetching organizations...")
    organizations = await azure.fetch_organizations(on_auth_error=handle_relogin)
    if organizations:
        return sorted(organizations, key=str.lower)

    console.print("[yellow]Could not automatically detect Azure DevOps organizations.[/yellow]")
    console.print("[dim]This can happen if your Azure account is not linked to Azure DevOps via the API.[/dim]\n")
    if select("How would you like to specify the organization?", [MANUAL_ORG, CANCEL], back=False) != MANUAL_ORG:
        return None
    name = ask_text("Enter organization name (from https://dev.azure.com/<organization>)")
    return [name] if name else None


async def ensure_setup() -> tuple[str, str] | None:
    """Make sure az is usable, then let the user pick an organization and a project.

    Returns (organization URL, project name), or None when cancelled or failed.
    """
    if not await ensure_cli_ready():
        return None

    organizations = await _discover_organizations()
    if not organizations:
        return None

    while True:
        org = select("Select [green]organization[/green]:", organizations)
        if org is None:
            return None
        org_url = azure.normalize_org_url(org)
        console.print(f"\n[green]Organization:[/green] {escape(org)}")

        console.print("\nFetching projects...")
        projects = await azure.fetch_projects(org_url)
        if not projects:
            console.print("[red]No projects found in this organization.[/red]")
            return None

        project = select("Select [green]project[/green]:", sorted(projects, key=str.lower))
        if project is None:
            continue
        console.print(f"\n[green]Project:[/green] {escape(project)}")
        return org_url, project


# --- repositories ---


async def _choose_remote_name() -> str | None:
    """Pick the git remote name for the Azure repo; None means go back."""
    existing = await git.get_remote_url("origin")
    if existing is None:
        return "origin"

    console.print(f"\n[yellow]Remote 'origin' already exists:[/yellow] {escape(existing)}")
    choice = select(
        "Select [green]remote name[/green] for Azure DevOps:",
        [REMOTE_AZURE, REMOTE_REPLACE_ORIGIN, REMOTE_CUSTOM],
    )
    if choice is None:
        return None
    if choice == REMOTE_REPLACE_ORIGIN:
        await git.remove_remote("origin")
        return "origin"
    if choice == REMOTE_CUSTOM:
        return ask_text("Enter remote name", default=REMOTE_AZURE)
    return choice


async def _existing_or_new_repo(org_url: str, project: str, name: str) -> AzureRepo | None:
    console.print(f"\nChecking if repository '[cyan]{escape(name)}[/cyan]' already exists...")
    repo = await azure.show_repo(org_url, project, name)

    if repo is not None:
        console.print(f"[yellow]Repository '{escape(name)}' already exists:[/yellow] {escape(repo.remote_url)}")
        if select("What do you want to do?", [USE_EXISTING, CANCEL], back=False) != USE_EXISTING:
            console.print("[yellow]Cancelled.[/yellow]")
            return None
        console.print(f"[green]Using existing repository:[/green] {escape(repo.remote_url)}")
        return repo

    console.print(f"Creating repository '[cyan]{escape(name)}[/cyan]'...")
    repo = await azure.create_repo(org_url, project, name)
    if repo is None:
        console.print("[red]Failed to create repository.[/red]")
        return None
    if not repo.remote_url:
        console.print("[red]Repository created but could not get remote URL.[/red]")
        return None
    console.print(f"[green]Repository created:[/green] {escape(repo.remote_url)}")
    return repo


async def repo_new() -> int:
    """Create (or reuse) an Azure DevOps repository and add it as a git remote."""
    console.print("[bold blue]Azure DevOps - Create New Repository[/bold blue]\n")

    setup = await ensure_setup()
    if setup is None:
        return 1
    org_url, project = setup

    while True:
        name = ask_text("Repository name", default=Path.cwd().name)
        repo = await _existing_or_new_repo(org_url, project, name)
        if repo is None:
            return 1

        remote_name = await _choose_remote_name()
        if remote_name is None:
            continue

        if not await git.add_remote(remote_name, repo.remote_url):
            console.print(f"[red]Failed to add remote '{escape(remote_name)}'.[/red]")
            return 1

        console.print(f"\n[green]Remote '{escape(remote_name)}' configured:[/green] {escape(repo.remote_url)}")
        return 0


async def repo_checkout() -> int:
    """Clone a repository picked from an Azure DevOps project."""
    console.print("[bold blue]Azure DevOps - Clone Repository[/bold blue]\n")

    setup = await ensure_setup()
    if setup is None:
        return 1
    org_url, project = setup

    console.print("\nFetching repositories...")
    repos = await azure.fetch_repos(org_url, project)
    if not repos:
        console.print("[red]No repositories found in this project.[/red]")
        return 1

    repos.sort(key=lambda r: r.name.lower())
    name = select("Select [green]repository[/green] to clone:", [r.name for r in repos])
    if name is None:
        return 0
    repo = next(r for r in repos if r.name == name)
    console.print(f"\n[green]Repository:[/green] {escape(repo.name)}")

    target_dir = ask_text("Clone into directory", default=str(Path.cwd() / repo.name))

    console.print(f"\nCloning [cyan]{escape(repo.name)}[/cyan]...")
    if not await git.clone(repo.remote_url, target_dir):
        console.print("[red]Failed to clone repository.[/red]")
        return 1

    console.print(f"\n[green]Repository cloned successfully into:[/green] {escape(target_dir)}")
    return 0


# --- variable groups ---


async def variable_group_list() -> int:
    """Browse the variable groups of a project and inspect their variables."""
    console.print("[bold blue]Azure DevOps - Variable Groups[/bold blue]\n")

    setup = await ensure_setup()
    if setup is None:
        return 1
    org_url, project = setup

    console.print("\nFetching variable groups...")
    groups = await azure.fetch_variable_groups(org_url, project)
    if groups is None:
        console.print("[red]Failed to fetch variable groups.[/red]")
        return 1
    if not groups:
        console.print("[yellow]No variable groups found in this project.[/yellow]")
        return 0

    rows = format_variable_group_rows(groups)
    while True:
        index = select_index("Select a [green]variable group[/green] to view its variables:", rows)
        if index is None:
            return 0
        group = groups[index]

        console.print(f"\n[bold cyan]Variables in '{escape(group.name)}':[/bold cyan]\n")
        if group.variables:
            table = Table(border_style="cyan")
            table.add_column("Name", style="bold")
            table.add_column("Value")
            for variable in group.variables:
                table.add_row(escape(variable.name), escape(variable.value))
            console.print(table)
        else:
            console.print("[yellow]No variables found in this group.[/yellow]")

        typer.prompt("\nPress Enter to return to the list", default="", show_default=False)


# --- work items ---


async def resolve_work_item_context(
    organization: str | None, project: str | None, work_item_id: int | None
) -> tuple[str, str, int] | None:
    """Use the organization, project and id given on the command line, asking for what is missing."""
    if organization and project:
        if not await ensure_cli_ready():
            return None
        org_url = azure.normalize_org_url(organization)
    else:
        setup = await ensure_setup()
        if setup is None:
            return None
        org_url, project = setup

    if work_item_id is None:
        work_item_id = ask_int("User story ID")
    return org_url, project, work_item_id


def print_work_item(item: WorkItem) -> None:
    console.print(f"\n[bold cyan]#{item.id}[/bold cyan] {escape(item.title)}")
    console.print(f"  Type: {escape(item.type)}   State: {escape(item.state)}   Assigned to: {escape(item.assigned_to)}")


async def _load_story(org_url: str, work_item_id: int) -> WorkItem | None:
    console.print(f"\nFetching work item #{work_item_id}...")
    story = await azure.show_work_item(org_url, work_item_id)
    if story is None:
        console.print(f"[red]Could not load work item #{work_item_id}.[/red]")
        return None
    print_work_item(story)
    return story


async def hu_list(organization: str | None, project: str | None, work_item_id: int | None) -> int:
    """Show a user story and its child tasks."""
    context = await resolve_work_item_context(organization, project, work_item_id)
    if context is None:
        return 1
    org_url, _, work_item_id = context

    story = await _load_story(org_url, work_item_id)
    if story is None:
        return 1

    children = await azure.fetch_children(org_url, story)
    if not children:
        console.print("\n[yellow]No tasks found for this user story.[/yellow]")
        return 0

    table = Table(title="Tasks", border_style="cyan")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("State", style="green")
    table.add_column("Assigned To")
    for child in children:
        table.add_row(str(child.id), escape(child.type), escape(child.title), escape(child.state), escape(child.assigned_to))
    console.print()
    console.print(table)
    return 0


async def hu_task(organization: str | None, project: str | None, work_item_id: int | None) -> int:
    """Create tasks under a user story, one title per prompt."""
    context = await resolve_work_item_context(organization, project, work_item_id)
    if context is None:
        return 1
    org_url, project, work_item_id = context

    story = await _load_story(org_url, work_item_id)
    if story is None:
        return 1

    console.print("\n[dim]Enter one task title per line. Leave empty to finish.[/dim]")
    created: list[WorkItem] = []
    failed = False
    while True:
        title = ask_text("Task title", default="")
        if not title:
            break

        task = await azure.create_task(org_url, project, title, story)
        if task is None:
            failed = True
            continue
        if not await azure.add_parent(org_url, task.id, story.id):
            failed = True
            continue
        created.append(task)
        console.print(f"[green]Created task #{task.id}:[/green] {escape(task.title)}")

    if created:
        ids = ", ".join(f"#{t.id}" for t in created)
        console.print(f"\n[green]{len(created)} task(s) linked to #{story.id}:[/green] {ids}")
    elif not failed:
        console.print("\n[yellow]No tasks created.[/yellow]")
    return 1 if failed else 0


async def link(
    organization: str | None,
    project: str | None,
    work_item_id: int | None,
    remote: str = "origin",
) -> int:
    """Link the current git branch to a work item."""
    if not await ensure_git_repository():
        return 1

    branch = await git.get_current_branch()
    if branch is None:
        console.print("[red]Could not determine the current branch.[/red]")
        return 1
    remote_url = await git.get_remote_url(remote)
    if remote_url is None:
        console.print(f"[red]Remote '{escape(remote)}' is not configured.[/red]")
        return 1

    context = await resolve_work_item_context(organization, project, work_item_id)
    if context is None:
        return 1
    org_url, project, work_item_id = context

    repo_name = azure.repo_name_from_url(remote_url)
    console.print(f"\nResolving repository '[cyan]{escape(repo_name)}[/cyan]'...")
    repo = await azure.show_repo(org_url, project, repo_name)
    if repo is None or not repo.id or not repo.project_id:
        console.print(f"[red]Repository '{escape(repo_name)}' was not found in project '{escape(project)}'.[/red]")
        return 1

    console.print(f"Linking branch [cyan]{escape(branch)}[/cyan] to work item #{work_item_id}...")
    result = await azure.link_branch(org_url, project, work_item_id, repo, branch)
    if not result.ok:
        if azure.is_auth_error(result.stderr):
            console.print("[yellow]Your Azure session has expired. Run 'az login' and try again.[/yellow]")
        console.print(f"[red]Failed to link branch:[/red] [dim]{escape(result.stderr.strip())}[/dim]")
        return 1

    console.print(f"[green]Branch '{escape(branch)}' linked to work item #{work_item_id}.[/green]")
    logger.info("Linked %s to work item %d", branch, work_item_id)
    return 0
