# runner.py
from __future__ import annotations

import os
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from .config import RunConfig
from .gates import describe_gate, is_applicable
from .matrix import expand_workflow
from .model import JobConfig, JobResult, Step, TriggerEvent, Workflow
from .templating import resolve_step
from .ui.console import get_console


# Runs one resolved command and reports how it went.
CommandRunner = Callable[[str, Path, Mapping[str, str]], subprocess.CompletedProcess]

# exit status used when a command could not even be started
NOT_STARTED = 127

TOOL_HINTS = {
    "cargo": "Install Rust (rustup) or fix PATH.",
    "rustup": "Install rustup from https://rustup.rs or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
}


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"

    @property
    def hint(self) -> str | None:
        if self.exit_code != NOT_STARTED:
            return None
        tool = self.cmd.split()[0] if self.cmd.split() else ""
        return TOOL_HINTS.get(tool)


# ----------------------------------------------------------------------
# Plans (what would run, without running it)
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class PlannedStep:
    name: str
    applicable: bool
    command: str
    gate: str


@dataclass(frozen=True)
class JobPlan:
    config: JobConfig
    steps: List[PlannedStep]


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def run_shell(command: str, cwd: Path, env: Mapping[str, str]) -> subprocess.CompletedProcess:
    """Default command runner: a shell command, output captured for failure reports."""
    full_env = os.environ.copy()
    full_env.update(env)
    return subprocess.run(
        command,
        shell=True,
        cwd=str(cwd),
        env=full_env,
        text=True,
        capture_output=True,  # so you can show output on failure
    )


def job_name(workflow: Workflow, config: JobConfig) -> str:
    return f"{workflow.name} {config.label}"


def _run_step(
    name: str,
    step: Step,
    command: str,
    repo_root: Path,
    run_config: RunConfig,
    command_runner: CommandRunner,
) -> None:
    cwd = (repo_root / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise StepFailure(
            job=name,
            step=step.name,
            cmd=run_config.mask(command),
            exit_code=NOT_STARTED,
            stderr=f"working directory not found: {cwd}",
        )

    try:
        proc = command_runner(command, cwd, run_config.env)
    except OSError as e:
        raise StepFailure(
            job=name,
            step=step.name,
            cmd=run_config.mask(command),
            exit_code=NOT_STARTED,
            stderr=str(e),
        ) from e

    if proc.returncode != 0:
        raise StepFailure(
            job=name,
            step=step.name,
            cmd=run_config.mask(command),
            exit_code=proc.returncode,
            stdout=run_config.mask((proc.stdout or "")[-4000:]),
            stderr=run_config.mask((proc.stderr or "")[-4000:]),
        )


def run_job(
    workflow: Workflow,
    config: JobConfig,
    event: TriggerEvent,
    run_config: RunConfig,
    *,
    repo_root: str | Path = ".",
    command_runner: Optional[CommandRunner] = None,
    dry_run: bool = False,
) -> JobResult:
    """
    Run every applicable step of one job, in declaration order.

    Gates are evaluated here, at run time. The first failing step ends the
    job; steps after it are neither evaluated nor run.
    """
    console = get_console()
    runner = command_runner or run_shell
    root = Path(repo_root).resolve()
    name = job_name(workflow, config)

    executed: List[str] = []
    skipped: List[str] = []

    console.print_job_start(name)
    for step in workflow.steps:
        if not is_applicable(step, config, event):
            skipped.append(step.name)
            console.print_step_skipped(name, step.name, describe_gate(step.when))
            continue

        command = resolve_step(workflow, step.run, config, run_config)
        console.print_step(name, step.name, run_config.mask(command))
        if dry_run:
            executed.append(step.name)
            continue

        try:
            _run_step(name, step, command, root, run_config, runner)
        except StepFailure as e:
            console.print_failure(
                name,
                step.name,
                exit_code=e.exit_code,
                output=(e.stderr or e.stdout),
                hint=e.hint,
            )
            return JobResult.failed(config, step.name, e.exit_code, executed=executed, skipped=skipped)
        executed.append(step.name)

    console.print_success(name)
    return JobResult.success(config, executed=executed, skipped=skipped)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def check_commands(
    workflow: Workflow,
    configs: List[JobConfig],
    event: TriggerEvent,
    run_config: RunConfig,
) -> None:
    """
    Resolve every step each job will run so template errors surface before anything runs.

    Steps a job's gate excludes are only checked structurally (by
    Workflow.validate); resolving them could demand values that job never uses.
    """
    for config in configs:
        for step in workflow.steps:
            if is_applicable(step, config, event):
                resolve_step(workflow, step.run, config, run_config)


def plan_matrix(workflow: Workflow, event: TriggerEvent, run_config: RunConfig) -> List[JobPlan]:
    workflow.validate()
    configs = expand_workflow(workflow)
    check_commands(workflow, configs, event, run_config)

    plans: List[JobPlan] = []
    for config in configs:
        steps: List[PlannedStep] = []
        for step in workflow.steps:
            applicable = is_applicable(step, config, event)
            command = resolve_step(workflow, step.run, config, run_config) if applicable else ""
            steps.append(
                PlannedStep(
                    name=step.name,
                    applicable=applicable,
                    command=run_config.mask(command),
                    gate=describe_gate(step.when),
                )
            )
        plans.append(JobPlan(config=config, steps=steps))
    return plans


def run_matrix(
    workflow: Workflow,
    event: TriggerEvent | str,
    run_config: RunConfig,
    *,
    repo_root: str | Path = ".",
    max_workers: int | None = None,
    command_runner: Optional[CommandRunner] = None,
    dry_run: bool = False,
) -> List[JobResult]:
    """
    Expand the matrix and run every job, in parallel.

    Configuration errors are raised before any job starts. Jobs share nothing:
    a failure in one never stops or affects another. Results come back in
    matrix order.
    """
    event = TriggerEvent.parse(event)
    workflow.validate()
    configs = expand_workflow(workflow)
    check_commands(workflow, configs, event, run_config)

    if max_workers is None:
        c = os.cpu_count() or 2
        max_workers = max(1, c - 1)

    results: Dict[int, JobResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(
                run_job,
                workflow,
                config,
                event,
                run_config,
                repo_root=repo_root,
                command_runner=command_runner,
                dry_run=dry_run,
            ): idx
            for idx, config in enumerate(configs)
        }
        for fut in as_completed(futures):
            results[futures[fut]] = fut.result()

    return [results[i] for i in range(len(configs))]
