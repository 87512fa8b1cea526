# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from matrixci.config import load_run_config
from matrixci.loader import load_workflow
from matrixci.matrix import expand_workflow
from matrixci.model import ConfigurationError, TriggerEvent
from matrixci.runner import plan_matrix, run_matrix
from matrixci.ui.console import Console, set_console, get_console

DEFAULT_WORKFLOW = "matrixci_workflow.py"
EXIT_FAILED = 1
EXIT_CONFIG = 2

EVENT_CHOICES = [e.value for e in TriggerEvent] + ["workflow_dispatch"]


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    default_workflow = current_dir / DEFAULT_WORKFLOW
    if default_workflow.exists():
        return [default_workflow]

    for path in current_dir.glob("*_workflow.py"):
        workflow_files.append(path)
    for name in (".matrixci.yml", ".matrixci.yaml"):
        if (current_dir / name).exists():
            workflow_files.append(current_dir / name)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Args:
        workflow_arg: Optional workflow argument from CLI

    Returns:
        Path to workflow file

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix == "":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow my_workflow.py",
            )
            sys.exit(EXIT_CONFIG)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
                "  .matrixci.yml",
            ],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  matrixci run --workflow ci.yml",
        )
        sys.exit(EXIT_CONFIG)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  matrixci run --workflow {workflow_files[0]}",
        )
        sys.exit(EXIT_CONFIG)

    return workflow_files[0]


def _load(workflow: str | None, job: str | None):
    console = get_console()
    workflow_path = discover_workflow(workflow)
    try:
        wf = load_workflow(workflow_path, job=job)
    except ConfigurationError as e:
        console.print_error(
            "Invalid workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        sys.exit(EXIT_CONFIG)
    console.print_debug(f"Loaded workflow '{wf.name}' from {workflow_path}")
    return workflow_path, wf


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces, resolved commands and full output)",
)
@click.pass_context
def cli(ctx, debug):
    """matrixci — expand a CI build matrix and run it locally."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


workflow_option = click.option(
    "--workflow",
    default=None,
    help=f"Workflow file (.py or .yml; defaults to {DEFAULT_WORKFLOW} if present)",
)
job_option = click.option("--job", default=None, help="Job to run when a YAML workflow declares several")
event_option = click.option(
    "--event",
    type=click.Choice(EVENT_CHOICES),
    default="push",
    show_default=True,
    help="Trigger event for this run",
)


@cli.command()
@workflow_option
@job_option
@event_option
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Number of jobs run in parallel")
@click.option("--dry-run", is_flag=True, default=False, help="Resolve and print commands without running them")
@click.option("--repo-root", default=".", show_default=True, help="Directory steps run in")
@click.pass_context
def run(ctx, workflow, job, event, workers, dry_run, repo_root):
    """Run every job of the matrix."""
    console = get_console()
    _path, wf = _load(workflow, job)
    trigger = TriggerEvent.parse(event)

    try:
        run_config = load_run_config(wf)
        job_count = len(expand_workflow(wf))

        console.print_run_started(workflow=wf.name, event=trigger.value, job_count=job_count)
        if wf.triggers and trigger not in wf.triggers:
            console.print_info(
                f"Note: '{trigger.value}' is not among the workflow's triggers "
                f"({', '.join(t.value for t in wf.triggers)}); running anyway"
            )

        results = run_matrix(
            wf,
            trigger,
            run_config,
            repo_root=repo_root,
            max_workers=workers,
            dry_run=dry_run,
        )
        console.print_results(results)

        if not all(r.ok for r in results):
            sys.exit(EXIT_FAILED)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_FAILED)


@cli.command()
@workflow_option
@job_option
@event_option
@click.pass_context
def plan(ctx, workflow, job, event):
    """Show, per job, which steps would run and their resolved commands."""
    console = get_console()
    _path, wf = _load(workflow, job)

    try:
        plans = plan_matrix(wf, TriggerEvent.parse(event), load_run_config(wf))
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    console.print_plan(plans)


@cli.command(name="matrix")
@workflow_option
@job_option
@click.pass_context
def matrix_cmd(ctx, workflow, job):
    """List the job configurations the matrix expands to."""
    console = get_console()
    _path, wf = _load(workflow, job)

    try:
        configs = expand_workflow(wf)
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    labels = [f"{c.label}{' [pinned]' if c.pinned else ''}" for c in configs]
    console.print_matrix(labels)


if __name__ == "__main__":
    cli()
