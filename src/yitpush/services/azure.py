"""Azure DevOps operations driven through the `az` CLI.

Every call goes through the process runner. JSON printed by `az` is parsed
tolerantly: a malformed payload or a missing property never aborts a listing,
it becomes a placeholder or the entry is skipped.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.parse
from typing import Any, Awaitable, Callable

from rich.console import Console
from rich.markup import escape

from yitpush.services.process import run_capturing_with_error, run_interactive
from yitpush.storage.models import AzureRepo, CaptureResult, Variable, VariableGroup, WorkItem

logger = logging.getLogger(__name__)
console = Console()

AZURE_DEVOPS_RESOURCE = "499b84ac-1321-427f-aa17-267ca6975798"
VSSPS_API = "https://app.vssps.visualstudio.com/_apis"
DEVOPS_HOST = "https://dev.azure.com"
API_VERSION = "7.0"
CHILD_RELATION = "System.LinkTypes.Hierarchy-Forward"
SECRET_MASK = "******"

AUTH_ERROR_MARKERS: tuple[str, ...] = (
    "AADSTS50078",  # MFA expired
    "AADSTS700082",  # token expired
    "AADSTS50076",  # MFA required
    "AADSTS70043",  # bad token
    "AADSTS50173",  # credential expired
    "AADSTS700024",  # client assertion expired
    "AADSTS65001",  # consent required
    "InvalidAuthenticationToken",
    "Authentication failed",
)

AuthErrorHandler = Callable[[], Awaitable[bool]]


# --- process helpers ---


def az_command(args: list[str] | tuple[str, ...]) -> tuple[str, list[str]]:
    """Resolve the executable and argument list for an `az` invocation."""
    if sys.platform == "win32":
        # az is a batch script on Windows
        return "cmd.exe", ["/c", "az", *args]
    return "az", list(args)


async def az_capture_with_error(*args: str) -> CaptureResult:
    command, argv = az_command(args)
    return await run_capturing_with_error(command, argv)


async def az_capture(*args: str) -> str | None:
    result = await az_capture_with_error(*args)
    return result.stdout if result.ok else None


async def az_interactive(*args: str) -> bool:
    command, argv = az_command(args)
    return await run_interactive(command, argv)


def is_auth_error(error: str | None) -> bool:
    """Whether an az error message signals an expired or missing Azure session."""
    if not error:
        return False
    return any(marker in error for marker in AUTH_ERROR_MARKERS)


# --- tolerant JSON helpers ---


def parse_json(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug("Ignoring malformed az output: %s", e)
        return None


def list_items(payload: Any) -> list[Any]:
    """Accept either a bare JSON array or an object wrapping it in "value"."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("value"), list):
        return payload["value"]
    return []


def get_field(obj: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dict keys, returning `default` when any step is absent."""
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current or current[key] is None:
            return default
        current = current[key]
    return current


def normalize_org_url(org: str) -> str:
    """Turn an organization name or URL into https://dev.azure.com/<org>."""
    org = org.strip().rstrip("/")
    if org.startswith(("http://", "https://")):
        return org
    return f"{DEVOPS_HOST}/{org}"


def repo_name_from_url(remote_url: str) -> str:
    """Repository name from an HTTPS or SSH Azure Repos remote URL."""
    path = remote_url.strip().rstrip("/")
    name = path.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return urllib.parse.unquote(name)


# --- environment ---


async def is_cli_installed() -> bool:
    return await az_capture("--version") is not None


async def has_devops_extension() -> bool:
    return await az_capture("extension", "show", "--name", "azure-devops", "--output", "json") is not None


async def install_devops_extension() -> bool:
    return await az_interactive("extension", "add", "--name", "azure-devops")


async def get_signed_in_user() -> tuple[bool, str]:
    """Return (logged_in, user name)."""
    account = await az_capture("account", "show", "--output", "json")
    if account is None:
        return False, ""
    return True, str(get_field(parse_json(account), "user", "name", default="unknown"))


async def login() -> bool:
    return await az_interactive("login")


async def logout() -> bool:
    return await az_interactive("logout")


# --- discovery ---


async def _rest_get(url: str, on_auth_error: AuthErrorHandler | None) -> CaptureResult:
    args = ("rest", "--method", "get", "--resource", AZURE_DEVOPS_RESOURCE, "--url", url)
    result = await az_capture_with_error(*args)
    if not result.ok and is_auth_error(result.stderr) and on_auth_error is not None:
        logger.info("Azure session expired, asking for re-login")
        if not await on_auth_error():
            return result
        result = await az_capture_with_error(*args)
    return result


async def fetch_organizations(on_auth_error: AuthErrorHandler | None = None) -> list[str]:
    """Organizations the signed-in user is a member of."""
    profile = await _rest_get(f"{VSSPS_API}/profile/profiles/me?api-version={API_VERSION}", on_auth_error)
    member_id = get_field(parse_json(profile.stdout), "id") if profile.ok else None
    if not member_id:
        if not profile.ok and profile.stderr.strip():
            console.print(
                f"[red]Failed to fetch Azure DevOps profile:[/red] [dim]{escape(profile.stderr.strip())}[/dim]"
            )
        return []

    accounts = await _rest_get(
        f"{VSSPS_API}/accounts?memberId={member_id}&api-version={API_VERSION}", on_auth_error
    )
    if not accounts.ok:
        if accounts.stderr.strip():
            console.print(f"[red]Failed to fetch organizations:[/red] [dim]{escape(accounts.stderr.strip())}[/dim]")
        return []

    organizations = []
    for account in list_items(parse_json(accounts.stdout)):
        name = get_field(account, "accountName")
        if isinstance(name, str):
            organizations.append(name)
    return organizations


async def fetch_projects(org_url: str) -> list[str]:
    output = await az_capture("devops", "project", "list", "--organization", org_url, "--output", "json")
    names = (get_field(p, "name") for p in list_items(parse_json(output)))
    return [name for name in names if isinstance(name, str)]


def parse_repo(obj: Any) -> AzureRepo:
    return AzureRepo(
        name=str(get_field(obj, "name", default="")),
        remote_url=str(get_field(obj, "remoteUrl", default="")),
        id=str(get_field(obj, "id", default="")),
        project_id=str(get_field(obj, "project", "id", default="")),
    )


async def fetch_repos(org_url: str, project: str) -> list[AzureRepo]:
    output = await az_capture(
        "repos", "list", "--organization", org_url, "--project", project, "--output", "json"
    )
    repos = []
    for item in list_items(parse_json(output)):
        if isinstance(get_field(item, "name"), str) and isinstance(get_field(item, "remoteUrl"), str):
            repos.append(parse_repo(item))
    return repos


async def show_repo(org_url: str, project: str, name: str) -> AzureRepo | None:
    """The repository if it exists, else None."""
    output = await az_capture(
        "repos", "show", "--repository", name, "--organization", org_url, "--project", project, "--output", "json"
    )
    if output is None:
        return None
    repo = parse_repo(parse_json(output))
    repo.name = repo.name or name
    return repo


async def create_repo(org_url: str, project: str, name: str) -> AzureRepo | None:
    result = await az_capture_with_error(
        "repos", "create", "--name", name, "--organization", org_url, "--project", project, "--output", "json"
    )
    if not result.ok:
        logger.error("az repos create failed: %s", result.stderr.strip())
        return None
    repo = parse_repo(parse_json(result.stdout))
    repo.name = repo.name or name
    return repo


# --- variable groups ---


def parse_variable_group(obj: Any) -> VariableGroup:
    group_id = get_field(obj, "id")
    variables = []
    raw_variables = get_field(obj, "variables")
    if isinstance(raw_variables, dict):
        for name, entry in raw_variables.items():
            is_secret = get_field(entry, "isSecret") is True
            value = get_field(entry, "value", default="")
            if is_secret:
                value = SECRET_MASK
            elif not isinstance(value, str):
                value = ""
            variables.append(Variable(name=name, value=value, is_secret=is_secret))

    return VariableGroup(
        id=str(group_id) if group_id is not None else "-",
        name=str(get_field(obj, "name", default="-")),
        description=str(get_field(obj, "description", default="")),
        variables=variables,
    )


async def fetch_variable_groups(org_url: str, project: str) -> list[VariableGroup] | None:
    """Variable groups of a project, or None if az failed."""
    output = await az_capture(
        "pipelines", "variable-group", "list", "--organization", org_url, "--project", project, "--output", "json"
    )
    if output is None:
        return None
    return [parse_variable_group(item) for item in list_items(parse_json(output))]


# --- work items ---


def _work_item_id_from_url(url: str) -> int | None:
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else None


def parse_work_item(obj: Any) -> WorkItem | None:
    item_id = get_field(obj, "id")
    if not isinstance(item_id, int):
        return None

    assigned = get_field(obj, "fields", "System.AssignedTo")
    if isinstance(assigned, dict):
        assigned = assigned.get("displayName") or assigned.get("uniqueName")

    child_ids = []
    for relation in get_field(obj, "relations", default=[]) or []:
        if get_field(relation, "rel") != CHILD_RELATION:
            continue
        child_id = _work_item_id_from_url(str(get_field(relation, "url", default="")))
        if child_id is not None:
            child_ids.append(child_id)

    return WorkItem(
        id=item_id,
        title=str(get_field(obj, "fields", "System.Title", default="-")),
        type=str(get_field(obj, "fields", "System.WorkItemType", default="-")),
        state=str(get_field(obj, "fields", "System.State", default="-")),
        assigned_to=str(assigned) if assigned else "unassigned",
        area_path=str(get_field(obj, "fields", "System.AreaPath", default="")),
        iteration_path=str(get_field(obj, "fields", "System.IterationPath", default="")),
        child_ids=child_ids,
    )


async def show_work_item(org_url: str, work_item_id: int) -> WorkItem | None:
    result = await az_capture_with_error(
        "boards", "work-item", "show",
        "--id", str(work_item_id),
        "--organization", org_url,
        "--expand", "relations",
        "--output", "json",
    )
    if not result.ok:
        logger.error("az boards work-item show %d failed: %s", work_item_id, result.stderr.strip())
        return None
    return parse_work_item(parse_json(result.stdout))


async def fetch_children(org_url: str, parent: WorkItem) -> list[WorkItem]:
    """Child work items of `parent`, skipping any that cannot be read."""
    children = []
    for child_id in parent.child_ids:
        child = await show_work_item(org_url, child_id)
        if child is not None:
            children.append(child)
    return children


async def create_task(org_url: str, project: str, title: str, parent: WorkItem) -> WorkItem | None:
    """Create a Task in the same area and iteration as `parent`."""
    args = [
        "boards", "work-item", "create",
        "--type", "Task",
        "--title", title,
        "--organization", org_url,
        "--project", project,
    ]
    if parent.area_path:
        args += ["--area", parent.area_path]
    if parent.iteration_path:
        args += ["--iteration", parent.iteration_path]
    args += ["--output", "json"]

    result = await az_capture_with_error(*args)
    if not result.ok:
        console.print(f"[red]Failed to create task:[/red] [dim]{escape(result.stderr.strip())}[/dim]")
        return None
    return parse_work_item(parse_json(result.stdout))


async def add_parent(org_url: str, work_item_id: int, parent_id: int) -> bool:
    result = await az_capture_with_error(
        "boards", "work-item", "relation", "add",
        "--id", str(work_item_id),
        "--relation-type", "parent",
        "--target-id", str(parent_id),
        "--organization", org_url,
        "--output", "json",
    )
    if not result.ok:
        console.print(f"[red]Failed to link #{work_item_id} to #{parent_id}:[/red] [dim]{escape(result.stderr.strip())}[/dim]")
    return result.ok


def branch_artifact_uri(project_id: str, repo_id: str, branch: str) -> str:
    """Artifact URI that shows a git branch in a work item's Development section."""
    return f"vstfs:///Git/Ref/{project_id}%2F{repo_id}%2FGB{urllib.parse.quote(branch, safe='')}"


async def link_branch(org_url: str, project: str, work_item_id: int, repo: AzureRepo, branch: str) -> CaptureResult:
    """Attach a branch to a work item as an ArtifactLink."""
    patch = [
        {
            "op": "add",
            "path": "/relations/-",
            "value": {
                "rel": "ArtifactLink",
                "url": branch_artifact_uri(repo.project_id, repo.id, branch),
                "attributes": {"name": "Branch"},
            },
        }
    ]
    url = (
        f"{org_url}/{urllib.parse.quote(project, safe='')}/_apis/wit/workitems/{work_item_id}"
        f"?api-version={API_VERSION}"
    )
    return await az_capture_with_error(
        "rest", "--method", "patch",
        "--resource", AZURE_DEVOPS_RESOURCE,
        "--url", url,
        "--headers", "Content-Type=application/json-patch+json",
        "--body", json.dumps(patch),
    )
