"""Tests for the per-repository agent facade."""

import json

import pytest

from prwright.agent import PRAgent
from prwright.config import Settings
from prwright.core.llm import LLMResponse, ToolCall
from prwright.core.state import AgentTaskState
from prwright.core.store import StateStore
from prwright.errors import GitHubAPIError
from prwright.models import TaskRequest

BRANCH = "feature/dark-mode"

CHANGES = json.dumps([
    {"path": "src/dark.css", "content": "body { background: #000; }", "action": "create"},
])


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path),
        llm={"retry_base_delay": 0},
        github={"token": "ghp_fromsettings"},
    )


@pytest.fixture
async def store(tmp_path):
    s = StateStore(tmp_path / "state.db")
    await s.start()
    yield s
    await s.stop()


@pytest.fixture
def tokens():
    return []


@pytest.fixture
def agent(settings, mock_llm, store, fake_repo, tokens):
    def factory(token):
        tokens.append(token)
        return fake_repo

    return PRAgent(settings, mock_llm, instance_id="octo/demo", store=store, github_factory=factory)


class TestPlannedMode:
    async def test_opens_pr(self, agent, mock_llm, store, request_, tokens):
        mock_llm.complete.return_value = LLMResponse(content=CHANGES)
        await agent.start()
        result = await agent.run_planned(request_)

        assert result.success is True
        assert result.pr_url == "https://github.com/octo/demo/pull/1"
        state = agent.snapshot()
        assert state.status == "completed"
        assert all(s.status == "completed" for s in state.plan.steps)
        assert tokens == ["ghp_fromsettings"]

        saved = await store.load("octo/demo")
        assert saved.status == "completed"
        assert saved.result.pr_url == result.pr_url

    async def test_not_connected(self, mock_llm, request_):
        agent = PRAgent(Settings(), mock_llm)
        result = await agent.run_planned(request_)
        assert result.success is False
        assert "GitHub not connected" in result.error
        assert agent.snapshot().status == "error"
        assert agent.snapshot().progress_messages[-1].startswith("Error: GitHub not connected")

    async def test_new_task_replaces_finished_one(self, agent, mock_llm, request_):
        mock_llm.complete.return_value = LLMResponse(content="no json")
        first = await agent.run_planned(request_)
        assert first.success is False
        mock_llm.complete.return_value = LLMResponse(content=CHANGES)
        second = await agent.run_planned(request_)
        assert second.success is True
        assert agent.snapshot().status == "completed"


class TestAutonomousMode:
    async def test_opens_pr(self, agent, mock_llm, request_, fake_repo):
        mock_llm.complete.side_effect = [
            LLMResponse(tool_calls=[ToolCall("t1", "get_repo_structure", {"path": ""})]),
            LLMResponse(tool_calls=[ToolCall("t2", "commit_files", {
                "branchName": BRANCH,
                "changes": [{"path": "src/dark.css", "content": "x", "action": "create"}],
            })]),
            LLMResponse(tool_calls=[ToolCall("t3", "create_pull_request", {"branchName": BRANCH})]),
        ]
        result = await agent.run_autonomous(request_)

        assert result.success is True
        assert result.branch_name == BRANCH
        state = agent.snapshot()
        assert state.status == "completed"
        assert state.plan is None
        assert state.progress_messages[0] == "Starting autonomous PR creation for octo/demo"

    async def test_derived_branch_frozen_for_the_task(self, agent, mock_llm, fake_repo):
        request = TaskRequest(repo_url="octo/demo", description="Add dark mode")
        mock_llm.complete.side_effect = [
            LLMResponse(tool_calls=[ToolCall("t1", "commit_files", {
                "changes": [{"path": "x.css", "content": "x", "action": "create"}],
            })]),
            LLMResponse(tool_calls=[ToolCall("t2", "create_pull_request", {})]),
        ]
        result = await agent.run_autonomous(request)

        assert result.success is True
        assert result.branch_name.startswith("feature/")
        assert result.branch_name.endswith("-add-dark-mode")
        assert fake_repo.trees[result.branch_name]["x.css"] == "x"
        assert agent.snapshot().current_request.branch_name == result.branch_name

    async def test_invalid_locator_never_contacts_github(self, agent, mock_llm, fake_repo):
        request = TaskRequest(repo_url="nonsense", description="Do it")
        result = await agent.run_autonomous(request)

        assert result.success is False
        assert result.error.startswith("Invalid GitHub repository URL")
        assert fake_repo.calls == []
        mock_llm.complete.assert_not_awaited()
        assert agent.snapshot().status == "error"

    async def test_model_stops_without_pr(self, agent, mock_llm, request_):
        mock_llm.complete.return_value = LLMResponse(content="I think we are done")
        result = await agent.run_autonomous(request_)
        assert result.success is False
        assert result.error == "ReAct agent did not complete PR creation"
        assert agent.snapshot().progress_messages[-1] == (
            "Error: ReAct agent did not complete PR creation"
        )


class TestConnection:
    async def test_set_token_persists(self, agent, store):
        outcome = await agent.set_github_token("ghp_new")
        assert outcome == {"connected": True, "username": "octocat"}
        assert await store.load_token("octo/demo") == "ghp_new"
        state = agent.snapshot()
        assert state.github_connected is True
        assert state.github_username == "octocat"

    async def test_stored_token_preferred_over_settings(self, agent, store, tokens):
        await store.save_token("octo/demo", "ghp_stored", "octocat")
        await agent.ensure_github_connection()
        assert tokens == ["ghp_stored"]

    async def test_rejected_token(self, agent, fake_repo, store):
        async def unauthorized():
            raise GitHubAPIError(401, "Bad credentials")

        fake_repo.get_user = unauthorized
        outcome = await agent.set_github_token("ghp_bad")
        assert outcome["connected"] is False
        assert "401" in outcome["error"]
        assert await store.load_token("octo/demo") is None
        assert agent.snapshot().github_connected is False

    async def test_status_and_disconnect(self, agent, store):
        assert await agent.check_github_status() == {"connected": False}
        await agent.set_github_token("ghp_new")
        assert await agent.check_github_status() == {"connected": True, "username": "octocat"}

        assert await agent.disconnect() == {"disconnected": True}
        assert await store.load_token("octo/demo") is None
        status = agent.get_status()
        assert status["status"] == "idle"
        assert status["github_connected"] is False


    async def test_disconnect_ignores_configured_token(self, agent, request_, tokens):
        await agent.disconnect()
        assert await agent.ensure_github_connection() is None
        result = await agent.run_planned(request_)
        assert "GitHub not connected" in result.error
        assert tokens == []

        await agent.set_github_token("ghp_new")
        assert await agent.ensure_github_connection() is not None
        assert tokens == ["ghp_new"]


class TestRecovery:
    async def test_interrupted_task_marked_failed(self, settings, mock_llm, store, request_):
        await store.save("octo/demo", AgentTaskState(status="generating", current_request=request_))
        agent = PRAgent(settings, mock_llm, instance_id="octo/demo", store=store)
        await agent.start()

        state = agent.snapshot()
        assert state.status == "error"
        assert state.result.error == "Task was interrupted before completion"
        assert (await store.load("octo/demo")).status == "error"

    async def test_finished_task_restored_as_is(self, settings, mock_llm, store):
        await store.save("octo/demo", AgentTaskState(status="completed", progress_messages=["done"]))
        agent = PRAgent(settings, mock_llm, instance_id="octo/demo", store=store)
        await agent.start()
        assert agent.snapshot().progress_messages == ["done"]
        assert agent.get_status()["status"] == "completed"


class TestStatus:
    async def test_exposes_username_and_plan(self, agent, mock_llm, request_):
        await agent.set_github_token("ghp_new")
        mock_llm.complete.return_value = LLMResponse(content=CHANGES)
        await agent.run_planned(request_)

        status = agent.get_status()
        assert status["github_username"] == "octocat"
        assert [s["status"] for s in status["plan"]["steps"]] == ["completed"] * 7

    async def test_no_plan_when_idle(self, agent):
        assert agent.get_status()["plan"] is None
