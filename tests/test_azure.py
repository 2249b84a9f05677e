"""Tests for the Azure DevOps service."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from yitpush.services import azure
from yitpush.storage.models import AzureRepo, CaptureResult, WorkItem

ORG = "https://dev.azure.com/contoso"

STORY = {
    "id": 42,
    "fields": {
        "System.Title": "As a user I can log in",
        "System.WorkItemType": "User Story",
        "System.State": "Active",
        "System.AssignedTo": {"displayName": "Dana Doe", "uniqueName": "dana@contoso.com"},
        "System.AreaPath": "Shop\\Web",
        "System.IterationPath": "Shop\\Sprint 7",
    },
    "relations": [
        {"rel": "System.LinkTypes.Hierarchy-Forward", "url": f"{ORG}/_apis/wit/workItems/43"},
        {"rel": "System.LinkTypes.Hierarchy-Reverse", "url": f"{ORG}/_apis/wit/workItems/7"},
        {"rel": "System.LinkTypes.Hierarchy-Forward", "url": f"{ORG}/_apis/wit/workItems/44"},
    ],
}


def ok(payload) -> CaptureResult:
    return CaptureResult.success(json.dumps(payload))


class TestHelpers:
    def test_normalize_org_url(self):
        assert azure.normalize_org_url("contoso") == ORG
        assert azure.normalize_org_url("https://dev.azure.com/contoso/") == ORG

    def test_repo_name_from_url(self):
        assert azure.repo_name_from_url("https://contoso@dev.azure.com/contoso/Shop/_git/web-app") == "web-app"
        assert azure.repo_name_from_url("git@ssh.dev.azure.com:v3/contoso/Shop/web-app") == "web-app"
        assert azure.repo_name_from_url("https://dev.azure.com/contoso/Shop/_git/My%20Repo") == "My Repo"

    def test_is_auth_error(self):
        assert azure.is_auth_error("ERROR: AADSTS700082: The refresh token has expired")
        assert azure.is_auth_error("InvalidAuthenticationToken")
        assert not azure.is_auth_error("ERROR: project not found")
        assert not azure.is_auth_error(None)

    def test_parse_json_tolerates_garbage(self):
        assert azure.parse_json("not json") is None
        assert azure.parse_json("") is None

    def test_list_items(self):
        assert azure.list_items([1, 2]) == [1, 2]
        assert azure.list_items({"count": 1, "value": [3]}) == [3]
        assert azure.list_items({"oops": True}) == []

    def test_get_field(self):
        assert azure.get_field({"a": {"b": 1}}, "a", "b") == 1
        assert azure.get_field({"a": None}, "a", "b", default="x") == "x"
        assert azure.get_field([], "a", default=0) == 0

    def test_az_command_windows(self):
        with patch.object(azure.sys, "platform", "win32"):
            assert azure.az_command(["repos", "list"]) == ("cmd.exe", ["/c", "az", "repos", "list"])
        with patch.object(azure.sys, "platform", "linux"):
            assert azure.az_command(["repos", "list"]) == ("az", ["repos", "list"])

    def test_branch_artifact_uri(self):
        uri = azure.branch_artifact_uri("p-1", "r-2", "feature/login")
        assert uri == "vstfs:///Git/Ref/p-1%2Fr-2%2FGBfeature%2Flogin"


class TestParsing:
    def test_parse_work_item(self):
        item = azure.parse_work_item(STORY)
        assert item.id == 42
        assert item.title == "As a user I can log in"
        assert item.assigned_to == "Dana Doe"
        assert item.area_path == "Shop\\Web"
        assert item.child_ids == [43, 44]

    def test_parse_work_item_missing_fields(self):
        item = azure.parse_work_item({"id": 5})
        assert item == WorkItem(id=5)
        assert item.assigned_to == "unassigned"

    def test_parse_work_item_without_id(self):
        assert azure.parse_work_item({"fields": {}}) is None
        assert azure.parse_work_item(None) is None

    def test_parse_variable_group_masks_secrets(self):
        group = azure.parse_variable_group(
            {
                "id": 3,
                "name": "prod",
                "description": None,
                "variables": {
                    "DB_HOST": {"value": "db.local"},
                    "DB_PASSWORD": {"isSecret": True, "value": None},
                    "WEIRD": {"value": 12},
                },
            }
        )
        assert group.id == "3"
        assert group.description == ""
        assert [(v.name, v.value, v.is_secret) for v in group.variables] == [
            ("DB_HOST", "db.local", False),
            ("DB_PASSWORD", "******", True),
            ("WEIRD", "", False),
        ]

    def test_parse_variable_group_placeholders(self):
        group = azure.parse_variable_group({})
        assert (group.id, group.name, group.variables) == ("-", "-", [])


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_fetch_organizations(self):
        mock = AsyncMock(
            side_effect=[
                ok({"id": "member-1"}),
                ok({"count": 2, "value": [{"accountName": "contoso"}, {"accountName": "fabrikam"}]}),
            ]
        )
        with patch("yitpush.services.azure.az_capture_with_error", mock):
            assert await azure.fetch_organizations() == ["contoso", "fabrikam"]
        accounts_url = mock.await_args_list[1].args[-1]
        assert "memberId=member-1" in accounts_url
        assert "api-version=7.0" in accounts_url

    @pytest.mark.asyncio
    async def test_fetch_organizations_relogin_then_retry(self):
        expired = CaptureResult.failure("AADSTS50078: MFA expired")
        mock = AsyncMock(side_effect=[expired, ok({"id": "m"}), ok({"value": [{"accountName": "contoso"}]})])
        relogin = AsyncMock(return_value=True)
        with patch("yitpush.services.azure.az_capture_with_error", mock):
            assert await azure.fetch_organizations(on_auth_error=relogin) == ["contoso"]
        relogin.assert_awaited_once()
        assert mock.await_count == 3

    @pytest.mark.asyncio
    async def test_fetch_organizations_relogin_declined(self):
        expired = CaptureResult.failure("AADSTS50078: MFA expired")
        relogin = AsyncMock(return_value=False)
        with patch("yitpush.services.azure.az_capture_with_error", AsyncMock(return_value=expired)):
            assert await azure.fetch_organizations(on_auth_error=relogin) == []

    @pytest.mark.asyncio
    async def test_fetch_repos_skips_incomplete(self):
        payload = json.dumps(
            [
                {"name": "web", "remoteUrl": "https://x/_git/web", "id": "r1", "project": {"id": "p1"}},
                {"name": "broken"},
            ]
        )
        with patch("yitpush.services.azure.az_capture", AsyncMock(return_value=payload)):
            repos = await azure.fetch_repos(ORG, "Shop")
        assert repos == [AzureRepo(name="web", remote_url="https://x/_git/web", id="r1", project_id="p1")]

    @pytest.mark.asyncio
    async def test_fetch_projects_malformed(self):
        with patch("yitpush.services.azure.az_capture", AsyncMock(return_value="{{{")):
            assert await azure.fetch_projects(ORG) == []

    @pytest.mark.asyncio
    async def test_fetch_variable_groups_failure(self):
        with patch("yitpush.services.azure.az_capture", AsyncMock(return_value=None)):
            assert await azure.fetch_variable_groups(ORG, "Shop") is None


class TestWorkItems:
    @pytest.mark.asyncio
    async def test_fetch_children(self):
        story = azure.parse_work_item(STORY)
        child = ok({"id": 43, "fields": {"System.Title": "Build form"}})
        missing = CaptureResult.failure("not found")
        with patch("yitpush.services.azure.az_capture_with_error", AsyncMock(side_effect=[child, missing])):
            children = await azure.fetch_children(ORG, story)
        assert [c.id for c in children] == [43]

    @pytest.mark.asyncio
    async def test_create_task_inherits_area_and_iteration(self):
        story = azure.parse_work_item(STORY)
        mock = AsyncMock(return_value=ok({"id": 99, "fields": {"System.Title": "Write tests"}}))
        with patch("yitpush.services.azure.az_capture_with_error", mock):
            task = await azure.create_task(ORG, "Shop", "Write tests", story)
        assert task.id == 99
        args = mock.await_args.args
        assert args[args.index("--type") + 1] == "Task"
        assert args[args.index("--area") + 1] == "Shop\\Web"
        assert args[args.index("--iteration") + 1] == "Shop\\Sprint 7"

    @pytest.mark.asyncio
    async def test_add_parent(self):
        mock = AsyncMock(return_value=ok({}))
        with patch("yitpush.services.azure.az_capture_with_error", mock):
            assert await azure.add_parent(ORG, 99, 42) is True
        args = mock.await_args.args
        assert args[args.index("--relation-type") + 1] == "parent"
        assert args[args.index("--target-id") + 1] == "42"

    @pytest.mark.asyncio
    async def test_link_branch_patch_body(self):
        repo = AzureRepo(name="web", remote_url="u", id="r1", project_id="p1")
        mock = AsyncMock(return_value=ok({"id": 42}))
        with patch("yitpush.services.azure.az_capture_with_error", mock):
            result = await azure.link_branch(ORG, "My Shop", 42, repo, "main")
        assert result.ok

        args = mock.await_args.args
        assert args[args.index("--method") + 1] == "patch"
        assert args[args.index("--url") + 1] == f"{ORG}/My%20Shop/_apis/wit/workitems/42?api-version=7.0"
        body = json.loads(args[args.index("--body") + 1])
        assert body == [
            {
                "op": "add",
                "path": "/relations/-",
                "value": {
                    "rel": "ArtifactLink",
                    "url": "vstfs:///Git/Ref/p1%2Fr1%2FGBmain",
                    "attributes": {"name": "Branch"},
                },
            }
        ]
