"""CLI entry point for gitops-runner."""

import logging
import os
import sys
from pathlib import Path

import click

from gitops_runner.config import get_config
from gitops_runner.core import branches as branches_mod
from gitops_runner.core import checkout as checkout_mod
from gitops_runner.core import events as events_mod
from gitops_runner.core.locks import BranchLockStore
from gitops_runner.core.quality import AsyncTaskPoller
from gitops_runner.errors import GitopsError
from gitops_runner.integrations import files as files_mod
from gitops_runner.integrations import sonarqube as sonarqube_mod
from gitops_runner.integrations.git import GitClient
from gitops_runner.models import CheckoutMergeRequest


def _load_config():
    try:
        return get_config()
    except GitopsError as e:
        _fail(e)


def _fail(error: GitopsError):
    click.echo(f"Error ({error.kind.value}): {error}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """gitops-runner - GitOps checkout, merge locking and quality gates for CI jobs"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Branch Commands ───────────────────────────────────────────────────────────


@main.command("classify")
@click.argument("ref")
def classify_command(ref):
    """Print the GitOps class of a branch reference."""
    config = _load_config()
    try:
        click.echo(branches_mod.classify(ref, config.branch_patterns))
    except GitopsError as e:
        _fail(e)


@main.command("checkout")
@click.option("--dry-run", is_flag=True, help="Print the checkout plan without running git")
def checkout_command(dry_run):
    """Check out the reference selected for the triggering GitLab event."""
    config = _load_config()
    try:
        events_mod.log_gitlab_env(os.environ)
        event = events_mod.event_from_env(os.environ, manual_branch=config.manual_branch)
        dispatcher = checkout_mod.CheckoutDispatcher.from_config(config)

        if dry_run:
            plan = dispatcher.dispatch(event)
        elif config.workspace_path is None:
            click.echo("GR_WORKSPACE_PATH must be set to the job workspace to check out into", err=True)
            sys.exit(1)
        else:
            git = GitClient(config.workspace_path, config.git_user_name, config.git_user_email)
            plan = checkout_mod.auto_checkout(
                event, dispatcher, git, files_mod.LocalFileStore(), config.workspace_path
            )
    except GitopsError as e:
        _fail(e)

    if isinstance(plan, CheckoutMergeRequest):
        click.echo(f"Merge request !{plan.mr_id} into {plan.target_branch}")
        click.echo(f"  Source: {plan.source_repo} ({plan.source_repo_url})")
        click.echo(f"  Target: {plan.target_repo_url}")
    else:
        click.echo(f"Branch {plan.branch}")
        click.echo(f"  Repo: {plan.repo_url}")


# ── Lock Commands ─────────────────────────────────────────────────────────────


@main.group("locks")
def locks_group():
    """Manage merge-request locked target branches."""
    pass


def _lock_store():
    return BranchLockStore.from_config(_load_config())


@locks_group.command("list")
def locks_list():
    """List locked target branches."""
    try:
        locked = _lock_store().locked_branches()
    except GitopsError as e:
        _fail(e)
    if not locked:
        click.echo("No locked branches.")
        return
    for branch in locked:
        click.echo(f"  {branch}")


@locks_group.command("check")
@click.argument("branch")
def locks_check(branch):
    """Exit 0 if merges into BRANCH are allowed, 1 if it is locked."""
    try:
        allowed = _lock_store().is_allowed(branch)
    except GitopsError as e:
        _fail(e)
    if allowed:
        click.echo(f"Merges into {branch} are allowed")
    else:
        click.echo(f"{branch} is locked")
        sys.exit(1)


@locks_group.command("add")
@click.argument("branches", nargs=-1, required=True)
def locks_add(branches):
    """Lock one or more target branches."""
    try:
        locked = _lock_store().lock(list(branches))
    except GitopsError as e:
        _fail(e)
    click.echo(f"Locked branches: {', '.join(locked)}")


@locks_group.command("remove")
@click.argument("branches", nargs=-1, required=True)
def locks_remove(branches):
    """Unlock one or more target branches."""
    try:
        remaining = _lock_store().unlock(list(branches))
    except GitopsError as e:
        _fail(e)
    click.echo(f"Unlocked: {', '.join(branches)}")
    if remaining:
        click.echo(f"  Still locked: {', '.join(remaining)}")


# ── Quality Gate Command ──────────────────────────────────────────────────────


@main.command("quality-gate")
@click.option("--task-id", default=None, help="Analysis task id (default: read from report-task.txt)")
@click.option("--interval", default=None, type=float, help="Seconds between status queries")
@click.option("--timeout", default=None, type=float, help="Give up after this many seconds")
def quality_gate(task_id, interval, timeout):
    """Wait for the SonarQube analysis and fail if the quality gate fails."""
    config = _load_config()
    if not config.sonar_url or not config.sonar_token:
        click.echo("SonarQube not configured: GR_SONAR_URL and GR_SONAR_TOKEN must be set", err=True)
        sys.exit(1)

    try:
        if not task_id:
            task_id = sonarqube_mod.read_report_task_id(config.workspace_path or Path.cwd())
        with sonarqube_mod.SonarQubeClient(config.sonar_url, config.sonar_token) as client:
            poller = AsyncTaskPoller(
                client,
                config.sonar_query_interval_secs if interval is None else interval,
                config.sonar_timeout_secs if timeout is None else timeout,
            )
            verdict = poller.wait_for_quality_result(task_id)
    except GitopsError as e:
        _fail(e)
    click.echo(f"Quality gate: {verdict}")


# ── Housekeeping Command ──────────────────────────────────────────────────────


@main.command("housekeep")
@click.argument("parent_dir", type=click.Path(file_okay=False))
@click.argument("current_dir", type=click.Path(file_okay=False))
def housekeep(parent_dir, current_dir):
    """Remove previous job-instance directories under PARENT_DIR, keeping CURRENT_DIR."""
    try:
        removed = files_mod.clean_previous_instances(parent_dir, current_dir)
    except GitopsError as e:
        _fail(e)
    if not removed:
        click.echo("Nothing to clean up.")
        return
    for path in removed:
        click.echo(f"  Removed: {path}")


# ── Server Command ────────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
def serve(host, port):
    """Run the GitLab webhook receiver and lock status API."""
    from gitops_runner.web.app import run_server

    click.echo(f"Listening on http://{host}:{port}")
    run_server(host=host, port=port)


if __name__ == "__main__":
    main()
