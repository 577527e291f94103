"""prwright command line entry point."""

from __future__ import annotations

import asyncio
import sys

import click

from prwright.agent import PRAgent
from prwright.config import Settings, load_settings
from prwright.core.llm import create_provider
from prwright.core.state import AgentTaskState
from prwright.core.store import StateStore
from prwright.errors import InvalidRepoLocatorError
from prwright.models import TaskRequest, parse_repo_locator
from prwright.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


def instance_id_for(repo_url: str) -> str:
    """Agent instances are keyed by repository identity."""
    try:
        return parse_repo_locator(repo_url).full_name.lower()
    except InvalidRepoLocatorError:
        return "default"


def _load(config_path: str | None, log_level: str | None) -> Settings:
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    return settings


def _print_state(state: AgentTaskState) -> None:
    click.echo(f"status: {state.status}")
    if state.plan:
        for step in state.plan.steps:
            suffix = f" - {step.error}" if step.error else ""
            click.echo(f"  [{step.status:>9}] {step.label}{suffix}")
    if state.result:
        if state.result.success:
            click.echo(f"pr: {state.result.pr_url} ({state.result.branch_name})")
        else:
            click.echo(f"error: {state.result.error}")


async def _run_task(settings: Settings, request: TaskRequest, mode: str) -> bool:
    store = StateStore(settings.get_state_db())
    await store.start()
    llm = create_provider(settings.llm)
    agent = PRAgent(settings, llm, instance_id=instance_id_for(request.repo_url), store=store)
    log.info("task_requested", repo=request.repo_url, mode=mode)
    try:
        await agent.start()
        agent.sink.subscribe(_echo_new_progress())
        if mode == "autonomous":
            result = await agent.run_autonomous(request)
        else:
            result = await agent.run_planned(request)
        _print_state(agent.snapshot())
        return result.success
    finally:
        await agent.stop()
        await llm.close()
        await store.stop()


def _echo_new_progress():
    seen = 0

    def listener(state: AgentTaskState) -> None:
        nonlocal seen
        if len(state.progress_messages) < seen:
            seen = 0
        for message in state.progress_messages[seen:]:
            click.echo(f"> {message}", err=True)
        seen = len(state.progress_messages)

    return listener


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Turn natural-language change requests into GitHub pull requests."""
    ctx.obj = _load(config_path, log_level)


@cli.command()
@click.argument("repo")
@click.argument("description")
@click.option(
    "--mode",
    type=click.Choice(["planned", "autonomous"]),
    default="planned",
    show_default=True,
    help="Fixed seven-step plan or free tool-calling loop",
)
@click.option("--branch", default=None, help="Feature branch name (derived if omitted)")
@click.option("--target", default=None, help="Base branch for the pull request")
@click.pass_obj
def run(
    settings: Settings,
    repo: str,
    description: str,
    mode: str,
    branch: str | None,
    target: str | None,
) -> None:
    """Open a pull request on REPO implementing DESCRIPTION."""
    request = TaskRequest(
        repo_url=repo,
        description=description,
        branch_name=branch,
        target_branch=target or settings.agent.default_target_branch,
    )
    ok = asyncio.run(_run_task(settings, request, mode))
    sys.exit(0 if ok else 1)


@cli.command()
@click.argument("repo")
@click.pass_obj
def status(settings: Settings, repo: str) -> None:
    """Show the last checkpointed task state for REPO."""

    async def _status() -> AgentTaskState | None:
        store = StateStore(settings.get_state_db())
        await store.start()
        try:
            return await store.load(instance_id_for(repo))
        finally:
            await store.stop()

    state = asyncio.run(_status())
    if state is None:
        click.echo("no task recorded")
        return
    _print_state(state)


@cli.command("list")
@click.pass_obj
def list_instances(settings: Settings) -> None:
    """List every repository with a checkpointed task."""

    async def _list() -> list[tuple[str, str, str]]:
        store = StateStore(settings.get_state_db())
        await store.start()
        try:
            return await store.list_instances()
        finally:
            await store.stop()

    for instance_id, task_status, updated_at in asyncio.run(_list()):
        click.echo(f"{instance_id:<40} {task_status:<12} {updated_at}")


@cli.command()
@click.argument("repo")
@click.option("--token", prompt=True, hide_input=True, help="GitHub personal access token")
@click.pass_obj
def connect(settings: Settings, repo: str, token: str) -> None:
    """Verify TOKEN and store it for REPO's agent."""

    async def _connect() -> dict:
        store = StateStore(settings.get_state_db())
        await store.start()
        llm = create_provider(settings.llm)
        agent = PRAgent(settings, llm, instance_id=instance_id_for(repo), store=store)
        try:
            await agent.start()
            return await agent.set_github_token(token)
        finally:
            await agent.stop()
            await llm.close()
            await store.stop()

    outcome = asyncio.run(_connect())
    if outcome.get("connected"):
        click.echo(f"Connected to GitHub as {outcome.get('username')}")
    else:
        click.echo(f"Connection failed: {outcome.get('error')}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
