"""Command line interface for the guided import workflow."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from debtflow.client import AnalyticsClient
from debtflow.config import load_config
from debtflow.contracts import UploadReport
from debtflow.errors import (
    ConflictError,
    FileValidationError,
    StepDataError,
    TransmissionError,
    UnknownStepError,
)
from debtflow.importer import ImportSession
from debtflow.notifications import Notification, NotificationBridge
from debtflow.persistence import StateStore, get_store
from debtflow.upload import CandidateFile, UploadStatus, validate_file
from debtflow.workflow import WorkflowOrchestrator

# Used when no state_url is configured; relative to the working directory.
DEFAULT_STATE_URL = "file://.debtflow/state.json"

app = typer.Typer(help="CLI for the technical debt import workflow")

workflow_app = typer.Typer(help="Commands for inspecting and moving through the workflow")
upload_app = typer.Typer(help="Commands for validating and uploading CSV files")

app.add_typer(workflow_app, name="workflow")
app.add_typer(upload_app, name="upload")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """debtflow CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _state_store() -> StateStore:
    return get_store(default_url=DEFAULT_STATE_URL)


def _open_workflow() -> WorkflowOrchestrator:
    config = load_config()
    return asyncio.run(WorkflowOrchestrator.open(_state_store(), state_key=config.state_key))


def _parse_assignments(assignments: List[str]) -> dict:
    data = {}
    for item in assignments:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            typer.secho(f"Expected key=value, got {item!r}", fg=typer.colors.RED)
            raise typer.Exit(code=2)
        data[key.strip()] = yaml.safe_load(raw) if raw else None
    return data


def _echo_status(orchestrator: WorkflowOrchestrator) -> None:
    typer.echo(f"Workflow progress: {orchestrator.get_progress()}%")
    for step in orchestrator.steps:
        mark = "x" if step.is_complete else " "
        flags = []
        if step.is_active:
            flags.append("active")
        if not step.is_accessible:
            flags.append("locked")
        suffix = f" ({', '.join(flags)})" if flags else ""
        typer.echo(f"[{mark}] {step.id.value:<14} {step.title}{suffix}")


@workflow_app.command("status")
def workflow_status() -> None:
    """
    Show every workflow step with its completion and accessibility.

    Example:
        debtflow workflow status
        # Output: Workflow progress: 33%
        #         [x] import         Data Import
        #         [ ] configuration  Configuration (active)
        #         [ ] analytics      Analytics (locked)
    """
    _echo_status(_open_workflow())


@workflow_app.command("goto")
def workflow_goto(step: str) -> None:
    """Move to ``step`` if every earlier step is complete."""
    orchestrator = _open_workflow()
    if not asyncio.run(orchestrator.go_to_step(step)):
        typer.secho(f"Step {step} is not accessible", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Current step: {orchestrator.current_step.title}")


@workflow_app.command("next")
def workflow_next() -> None:
    """Advance to the following step when it is accessible."""
    orchestrator = _open_workflow()
    if not asyncio.run(orchestrator.next_step()):
        typer.secho("Cannot advance from the current step", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(f"Current step: {orchestrator.current_step.title}")


@workflow_app.command("back")
def workflow_back() -> None:
    """Return to the preceding step."""
    orchestrator = _open_workflow()
    if not asyncio.run(orchestrator.previous_step()):
        typer.secho("Already at the first step", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(f"Current step: {orchestrator.current_step.title}")


@workflow_app.command("complete")
def workflow_complete(
    step: str,
    assignments: Optional[List[str]] = typer.Option(
        None, "--set", help="Step data as key=value; values are parsed as YAML scalars"
    ),
) -> None:
    """
    Mark ``step`` complete, optionally recording step data.

    Example:
        debtflow workflow complete configuration --set mappingsConfigured=true \\
            --set thresholdsConfigured=true
    """
    orchestrator = _open_workflow()
    data = _parse_assignments(assignments or [])
    try:
        asyncio.run(orchestrator.mark_step_complete(step, data))
    except UnknownStepError:
        typer.secho(f"Unknown step: {step}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except StepDataError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _echo_status(orchestrator)


@workflow_app.command("update")
def workflow_update(
    step: str,
    assignments: List[str] = typer.Argument(..., help="Step data as key=value"),
) -> None:
    """Merge data into a step's history and the flat step data."""
    orchestrator = _open_workflow()
    data = _parse_assignments(assignments)
    try:
        asyncio.run(orchestrator.update_step_data(step, data))
    except UnknownStepError:
        typer.secho(f"Unknown step: {step}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except StepDataError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _echo_status(orchestrator)


@workflow_app.command("reset")
def workflow_reset() -> None:
    """Discard all workflow progress."""
    orchestrator = _open_workflow()
    asyncio.run(orchestrator.reset_workflow())
    typer.echo("Workflow reset")


@upload_app.command("validate")
def upload_validate(path: Path) -> None:
    """Run the pre-flight checks on a CSV file without uploading it."""
    if not path.exists():
        typer.secho("Specified file does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    error = validate_file(CandidateFile.from_path(path), load_config().upload.max_file_size)
    if error:
        typer.secho(error, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"{path.name} is ready to upload")


def _echo_notification(notification: Notification) -> None:
    colors = {
        "success": typer.colors.GREEN,
        "error": typer.colors.RED,
        "warning": typer.colors.YELLOW,
        "info": typer.colors.BLUE,
    }
    text = notification.title
    if notification.message:
        text += f": {notification.message}"
    typer.secho(text, fg=colors[notification.type])


async def _run_upload(
    upload_type: str, path: Path, organization: Optional[str], force: bool
) -> Optional[UploadReport]:
    config = load_config()
    orchestrator = await WorkflowOrchestrator.open(_state_store(), state_key=config.state_key)
    notifications = NotificationBridge(config.notifications.default_duration)
    notifications.subscribe(_echo_notification)

    async with AnalyticsClient.from_config(config.api) as client:
        session = ImportSession(orchestrator, client, notifications, config.upload)
        pipeline = session.pipeline(upload_type)

        def on_progress(progress: int, status: UploadStatus) -> None:
            if status in (UploadStatus.UPLOADING, UploadStatus.VALIDATING):
                typer.echo(f"{status.value}... {progress}%")

        pipeline.on_progress = on_progress
        pipeline.select_file(CandidateFile.from_path(path))
        return await pipeline.start_upload(organization, force=force)


def _upload(upload_type: str, path: Path, organization: Optional[str], force: bool) -> None:
    if not path.exists():
        typer.secho("Specified file does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        report = asyncio.run(_run_upload(upload_type, path, organization, force))
    except FileValidationError:
        raise typer.Exit(code=1)
    except ConflictError:
        typer.secho("Re-run with --force to overwrite the previous upload", fg=typer.colors.YELLOW)
        raise typer.Exit(code=2)
    except TransmissionError:
        raise typer.Exit(code=1)
    if report is not None:
        result = report.validation
        typer.echo(
            f"Rows: {result.row_count} valid: {result.valid_rows} invalid: {result.invalid_rows}"
        )


@upload_app.command("tickets")
def upload_tickets(
    path: Path,
    organization: Optional[str] = typer.Option(None, help="Organization the tickets belong to"),
) -> None:
    """Upload a support tickets CSV and record it on the import step."""
    _upload("tickets", path, organization, force=False)


@upload_app.command("usage")
def upload_usage(
    path: Path,
    organization: str = typer.Option(..., help="Organization the usage data belongs to"),
    force: bool = typer.Option(False, help="Overwrite usage data uploaded in the last 30 days"),
) -> None:
    """Upload a product usage CSV and record it on the import step."""
    _upload("usage", path, organization, force=force)
