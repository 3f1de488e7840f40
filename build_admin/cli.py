"""
Admin CLI for operating the build controller.

Provides commands to submit and inspect jobs, inspect builds, and run a
single reconcile or duplicate sweep by hand.
"""

import asyncio
import json
import os
import sys
from datetime import timedelta
from pathlib import Path

import click

from build_common.errors import BuildControllerError, NotFoundError
from build_common.models import ProwJob, ProwJobState
from build_controller.config import ControllerConfig
from build_controller.duplicates import DuplicateTerminator
from build_controller.reconciler import Reconciler
from build_persistence.sqlite_accessor import SQLiteAccessor


def get_db_path() -> str:
    """Get the database path from environment variable or default."""
    return os.environ.get("BUILD_DB_PATH", "build_controller.db")


def get_namespace() -> str:
    return os.environ.get("BUILD_NAMESPACE", "default")


def get_accessor() -> SQLiteAccessor:
    """Get the accessor instance."""
    return SQLiteAccessor(get_db_path(), namespace=get_namespace())


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


def fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
def cli():
    """Build Admin - Inspect and operate the build controller."""
    pass


@cli.group()
def job():
    """Manage ProwJobs."""
    pass


@cli.group()
def build():
    """Inspect Builds."""
    pass


# ============================================================================
# Job Commands
# ============================================================================


@job.command("create")
@click.option(
    "--file",
    "path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file describing the ProwJob",
)
def job_create(path: Path):
    """Submit a ProwJob."""
    try:
        data = json.loads(path.read_text())
        prow_job = ProwJob.from_dict(data)
    except (ValueError, KeyError) as e:
        fail(f"Invalid ProwJob in {path}: {e}")

    async def create():
        store = get_accessor()
        await store.initialize()
        try:
            return await store.create_job(prow_job)
        finally:
            await store.close()

    try:
        created = run_async(create())
    except BuildControllerError as e:
        fail(str(e))

    click.echo("✓ ProwJob created successfully")
    click.echo(f"  Name:      {created.name}")
    click.echo(f"  Namespace: {created.namespace}")
    click.echo(f"  Job:       {created.spec.job}")


@job.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option(
    "--state",
    type=click.Choice([state.value for state in ProwJobState]),
    default=None,
    help="Only list jobs in this state",
)
def job_list(json_output: bool, state: str | None):
    """List ProwJobs in the namespace."""

    async def list_jobs():
        store = get_accessor()
        await store.initialize()
        try:
            return await store.list_jobs(store.namespace)
        finally:
            await store.close()

    jobs = run_async(list_jobs())
    if state is not None:
        jobs = [j for j in jobs if j.status.state == ProwJobState(state)]

    if json_output:
        click.echo(json.dumps([j.to_dict() for j in jobs], indent=2))
        return

    if not jobs:
        click.echo("No jobs found.")
        return

    click.echo(f"{'NAME':<36} {'JOB':<30} {'STATE':<10} DESCRIPTION")
    click.echo("-" * 90)
    for j in jobs:
        state_value = j.status.state.value if j.status.state else "-"
        click.echo(
            f"{j.name:<36} {j.spec.job:<30} {state_value:<10} {j.status.description}"
        )


@job.command("show")
@click.argument("name")
def job_show(name: str):
    """Show a ProwJob as JSON."""

    async def show():
        store = get_accessor()
        await store.initialize()
        try:
            return await store.get_job(name)
        finally:
            await store.close()

    try:
        prow_job = run_async(show())
    except NotFoundError:
        fail(f"ProwJob {name} not found")
    click.echo(json.dumps(prow_job.to_dict(), indent=2))


# ============================================================================
# Build Commands
# ============================================================================


@build.command("list")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def build_list(json_output: bool):
    """List Builds in every cluster context."""

    async def list_builds():
        store = get_accessor()
        await store.initialize()
        try:
            return await store.list_executions()
        finally:
            await store.close()

    builds = run_async(list_builds())

    if json_output:
        click.echo(
            json.dumps(
                [dict(b.to_dict(), context=context) for context, b in builds],
                indent=2,
            )
        )
        return

    if not builds:
        click.echo("No builds found.")
        return

    click.echo(f"{'CONTEXT':<16} {'NAMESPACE':<16} NAME")
    click.echo("-" * 70)
    for context, b in builds:
        click.echo(f"{context:<16} {b.namespace:<16} {b.name}")


# ============================================================================
# Operations
# ============================================================================


@cli.command("reconcile")
@click.argument("key")
@click.option("--agent", default=None, help="Agent tag owned by the controller")
@click.option(
    "--default-timeout",
    type=float,
    default=3600.0,
    show_default=True,
    help="Build timeout in seconds for jobs that set none",
)
def reconcile(key: str, agent: str | None, default_timeout: float):
    """Reconcile a single context/namespace/name KEY once."""
    config = ControllerConfig()

    async def run():
        store = get_accessor()
        await store.initialize()
        try:
            reconciler = Reconciler(
                store,
                agent=agent or config.agent,
                default_timeout=timedelta(seconds=default_timeout),
            )
            await reconciler.reconcile(key)
        finally:
            await store.close()

    try:
        run_async(run())
    except BuildControllerError as e:
        fail(str(e))
    click.echo(f"✓ Reconciled {key}")


@cli.command("sweep")
@click.option("--context", default="default", show_default=True, help="Cluster context")
@click.option("--namespace", default=None, help="Namespace of jobs and builds")
@click.option("--agent", default=None, help="Agent tag owned by the controller")
@click.option(
    "--allow-cancellations",
    is_flag=True,
    help="Allow cancelling duplicates in this context",
)
def sweep(context: str, namespace: str | None, agent: str | None, allow_cancellations: bool):
    """Abort superseded duplicate presubmit jobs."""
    config = ControllerConfig(
        cancellation_contexts={context} if allow_cancellations else set(),
    )
    if agent:
        config.agent = agent

    async def run():
        store = get_accessor()
        await store.initialize()
        try:
            terminator = DuplicateTerminator(store, config, agent=config.agent)
            await terminator.terminate_duplicates(context, namespace or store.namespace)
        finally:
            await store.close()

    if not allow_cancellations:
        click.echo(f"Cancellations are disabled for {context}, nothing to do.")
        return

    try:
        run_async(run())
    except BuildControllerError as e:
        fail(str(e))
    click.echo(f"✓ Swept duplicate jobs in {context}")


if __name__ == "__main__":
    cli()
