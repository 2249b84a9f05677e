"""Tests for the Azure DevOps and checkout command flows."""

from __future__ import annotations

from unittest.mock import AsyncMock, call, patch

import pytest

from yitpush.commands import azure_devops
from yitpush.commands.checkout import run_checkout
from yitpush.storage.models import AzureRepo, Branch, CaptureResult, Variable, VariableGroup, WorkItem

ORG = "https://dev.azure.com/contoso"
STORY = WorkItem(id=42, title="Login", type="User Story", state="Active", child_ids=[43])


@pytest.fixture
def cli_ready():
    with patch("yitpush.commands.azure_devops.ensure_cli_ready", new_callable=AsyncMock, return_value=True) as mock:
        yield mock


class TestWorkItemContext:
    @pytest.mark.asyncio
    async def test_arguments_skip_setup(self, cli_ready):
        with patch("yitpush.commands.azure_devops.ensure_setup", new_callable=AsyncMock) as setup:
            context = await azure_devops.resolve_work_item_context("contoso", "Shop", 42)
        assert context == (ORG, "Shop", 42)
        setup.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_arguments_use_setup_and_prompt(self):
        with patch(
            "yitpush.commands.azure_devops.ensure_setup", new_callable=AsyncMock, return_value=(ORG, "Shop")
        ), patch("yitpush.commands.azure_devops.ask_int", return_value=7):
            context = await azure_devops.resolve_work_item_context(None, None, None)
        assert context == (ORG, "Shop", 7)

    @pytest.mark.asyncio
    async def test_setup_cancelled(self):
        with patch("yitpush.commands.azure_devops.ensure_setup", new_callable=AsyncMock, return_value=None):
            assert await azure_devops.resolve_work_item_context(None, None, 1) is None


class TestHuCommands:
    @pytest.mark.asyncio
    async def test_hu_task_creates_and_links(self, cli_ready):
        tasks = [WorkItem(id=100, title="Form"), WorkItem(id=101, title="Tests")]
        with patch("yitpush.services.azure.show_work_item", new_callable=AsyncMock, return_value=STORY), patch(
            "yitpush.services.azure.create_task", new_callable=AsyncMock, side_effect=tasks
        ) as create, patch(
            "yitpush.services.azure.add_parent", new_callable=AsyncMock, return_value=True
        ) as add_parent, patch(
            "yitpush.commands.azure_devops.ask_text", side_effect=["Form", "Tests", ""]
        ):
            assert await azure_devops.hu_task("contoso", "Shop", 42) == 0

        assert create.await_args_list == [
            call(ORG, "Shop", "Form", STORY),
            call(ORG, "Shop", "Tests", STORY),
        ]
        assert add_parent.await_args_list == [call(ORG, 100, 42), call(ORG, 101, 42)]

    @pytest.mark.asyncio
    async def test_hu_task_reports_failure(self, cli_ready):
        with patch("yitpush.services.azure.show_work_item", new_callable=AsyncMock, return_value=STORY), patch(
            "yitpush.services.azure.create_task", new_callable=AsyncMock, return_value=None
        ), patch("yitpush.commands.azure_devops.ask_text", side_effect=["Form", ""]):
            assert await azure_devops.hu_task("contoso", "Shop", 42) == 1

    @pytest.mark.asyncio
    async def test_hu_list_missing_story(self, cli_ready):
        with patch("yitpush.services.azure.show_work_item", new_callable=AsyncMock, return_value=None):
            assert await azure_devops.hu_list("contoso", "Shop", 42) == 1

    @pytest.mark.asyncio
    async def test_hu_list(self, cli_ready):
        child = WorkItem(id=43, title="Form", type="Task", state="New")
        with patch("yitpush.services.azure.show_work_item", new_callable=AsyncMock, return_value=STORY), patch(
            "yitpush.services.azure.fetch_children", new_callable=AsyncMock, return_value=[child]
        ) as children:
            assert await azure_devops.hu_list("contoso", "Shop", 42) == 0
        children.assert_awaited_once_with(ORG, STORY)


class TestLink:
    @pytest.mark.asyncio
    async def test_links_current_branch(self, cli_ready):
        repo = AzureRepo(name="web", remote_url="https://x/_git/web", id="r1", project_id="p1")
        with patch("yitpush.services.git.is_git_repository", new_callable=AsyncMock, return_value=True), patch(
            "yitpush.services.git.get_current_branch", new_callable=AsyncMock, return_value="feature/login"
        ), patch(
            "yitpush.services.git.get_remote_url", new_callable=AsyncMock, return_value="https://x/_git/web"
        ), patch(
            "yitpush.services.azure.show_repo", new_callable=AsyncMock, return_value=repo
        ) as show_repo, patch(
            "yitpush.services.azure.link_branch", new_callable=AsyncMock, return_value=CaptureResult.success("{}")
        ) as link_branch:
            assert await azure_devops.link("contoso", "Shop", 42) == 0

        show_repo.assert_awaited_once_with(ORG, "Shop", "web")
        link_branch.assert_awaited_once_with(ORG, "Shop", 42, repo, "feature/login")

    @pytest.mark.asyncio
    async def test_missing_remote(self, cli_ready):
        with patch("yitpush.services.git.is_git_repository", new_callable=AsyncMock, return_value=True), patch(
            "yitpush.services.git.get_current_branch", new_callable=AsyncMock, return_value="main"
        ), patch("yitpush.services.git.get_remote_url", new_callable=AsyncMock, return_value=None):
            assert await azure_devops.link("contoso", "Shop", 42) == 1


class TestRelogin:
    @pytest.mark.asyncio
    async def test_relogin_accepted(self):
        with patch("yitpush.commands.azure_devops.select", return_value=azure_devops.RELOGIN), patch(
            "yitpush.services.azure.logout", new_callable=AsyncMock, return_value=True
        ), patch("yitpush.services.azure.login", new_callable=AsyncMock, return_value=True) as login:
            assert await azure_devops.handle_relogin() is True
        login.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_relogin_cancelled(self):
        with patch("yitpush.commands.azure_devops.select", return_value=azure_devops.CANCEL), patch(
            "yitpush.services.azure.login", new_callable=AsyncMock
        ) as login:
            assert await azure_devops.handle_relogin() is False
        login.assert_not_called()


class TestVariableGroups:
    @pytest.mark.asyncio
    async def test_identical_rows_keep_their_own_group(self, capsys):
        groups = [
            VariableGroup(variables=[Variable("FIRST_VAR", "one")]),
            VariableGroup(variables=[Variable("SECOND_VAR", "two")]),
        ]
        with patch(
            "yitpush.commands.azure_devops.ensure_setup", new_callable=AsyncMock, return_value=(ORG, "Shop")
        ), patch(
            "yitpush.services.azure.fetch_variable_groups", new_callable=AsyncMock, return_value=groups
        ), patch(
            "yitpush.commands.azure_devops.select_index", side_effect=[0, 1, None]
        ) as select_index, patch(
            "yitpush.commands.azure_devops.typer.prompt", return_value=""
        ):
            assert await azure_devops.variable_group_list() == 0

        rows = select_index.call_args.args[1]
        assert rows[0] == rows[1]
        out = capsys.readouterr().out
        assert out.index("FIRST_VAR") < out.index("SECOND_VAR")

    @pytest.mark.asyncio
    async def test_fetch_failure(self):
        with patch(
            "yitpush.commands.azure_devops.ensure_setup", new_callable=AsyncMock, return_value=(ORG, "Shop")
        ), patch("yitpush.services.azure.fetch_variable_groups", new_callable=AsyncMock, return_value=None):
            assert await azure_devops.variable_group_list() == 1


class TestCheckout:
    @pytest.mark.asyncio
    async def test_remote_branch_falls_back_to_local(self):
        branches = [Branch("main", "local"), Branch("origin/develop", "remote")]

        def pick(title, rows, back=True):
            assert len(rows) == 1
            return 0

        with patch("yitpush.services.git.is_git_repository", new_callable=AsyncMock, return_value=True), patch(
            "yitpush.services.git.fetch_all", new_callable=AsyncMock, return_value=False
        ), patch("yitpush.services.git.get_branches", new_callable=AsyncMock, return_value=branches), patch(
            "yitpush.services.git.get_current_branch", new_callable=AsyncMock, return_value="main"
        ), patch(
            "yitpush.services.git.checkout_tracking", new_callable=AsyncMock, return_value=False
        ) as tracking, patch(
            "yitpush.services.git.checkout", new_callable=AsyncMock, return_value=True
        ) as checkout, patch(
            "yitpush.services.git.pull", new_callable=AsyncMock, return_value=True
        ) as pull, patch(
            "yitpush.commands.checkout.select_index", side_effect=pick
        ):
            assert await run_checkout() == 0

        tracking.assert_awaited_once_with("origin/develop")
        checkout.assert_awaited_once_with("develop")
        pull.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_back_does_nothing(self):
        with patch("yitpush.services.git.is_git_repository", new_callable=AsyncMock, return_value=True), patch(
            "yitpush.services.git.fetch_all", new_callable=AsyncMock, return_value=True
        ), patch(
            "yitpush.services.git.get_branches", new_callable=AsyncMock, return_value=[Branch("dev", "local")]
        ), patch(
            "yitpush.services.git.get_current_branch", new_callable=AsyncMock, return_value="main"
        ), patch(
            "yitpush.services.git.checkout", new_callable=AsyncMock
        ) as checkout, patch(
            "yitpush.commands.checkout.select_index", return_value=None
        ):
            assert await run_checkout() == 0
        checkout.assert_not_called()
