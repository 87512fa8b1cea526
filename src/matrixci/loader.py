# loader.py
from __future__ import annotations

import re
import runpy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import DEFAULT_TOOLCHAIN
from .gates import when_matrix, when_not_matrix
from .model import Axis, ConfigurationError, Step, TriggerEvent, Workflow
from .ui.console import get_console

_IF_EXPR = re.compile(
    r"^\s*(?:\$\{\{)?\s*matrix\.([A-Za-z0-9_][A-Za-z0-9_-]*)\s*(==|!=)\s*'([^']*)'\s*(?:\}\})?\s*$"
)

# GitHub's inline toolchain conditionals:
#   ${{ matrix.toolchain == 'nightly' && env.RUST_TOOLCHAIN || 'stable' }}  -> ${{ toolchain.label }}
#   ${{ matrix.toolchain == 'nightly' && 'nightly' || '' }}                  -> ${{ toolchain.feature }}
_LABEL_EXPR = re.compile(
    r"\$\{\{\s*matrix\.([A-Za-z0-9_][A-Za-z0-9_-]*)\s*==\s*'([^']*)'\s*&&\s*"
    r"env\.([A-Za-z_][A-Za-z0-9_]*)\s*\|\|\s*'([^']*)'\s*\}\}"
)
_FEATURE_EXPR = re.compile(
    r"\$\{\{\s*matrix\.([A-Za-z0-9_][A-Za-z0-9_-]*)\s*==\s*'([^']*)'\s*&&\s*"
    r"'([^']*)'\s*\|\|\s*''\s*\}\}"
)

# keys of the `x-matrixci` block (everything a GitHub workflow cannot express)
_EXTENSION_KEYS = {
    "toolchain-axis": "toolchain_axis",
    "pinned-value": "pinned_value",
    "toolchain-env": "toolchain_env",
    "token-env": "token_env",
}


# ----------------------------------------------------------------------
# Python workflows
# ----------------------------------------------------------------------

def load_python_workflow(wf_path: Path) -> Workflow:
    """
    The file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    module_name = f"matrixci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    workflow = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        workflow = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        workflow = globals_dict["WORKFLOW"]

    if not isinstance(workflow, Workflow):
        raise ConfigurationError(
            f"{wf_path.name} must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(...)."
        )
    return workflow


# ----------------------------------------------------------------------
# YAML workflows (GitHub Actions shaped subset)
# ----------------------------------------------------------------------

def _parse_triggers(raw: Any) -> List[TriggerEvent]:
    if raw is None:
        return []
    if isinstance(raw, str):
        names = [raw]
    elif isinstance(raw, list):
        names = [str(x) for x in raw]
    elif isinstance(raw, dict):
        names = [str(k) for k in raw]
    else:
        raise ConfigurationError(f"Invalid 'on' section: {raw!r}")
    return [TriggerEvent.parse(n) for n in names]


def _parse_gate(step_name: str, expr: Any):
    if expr is None:
        return None
    m = _IF_EXPR.match(str(expr))
    if not m:
        raise ConfigurationError(
            f"Step '{step_name}': unsupported condition {expr!r} "
            "(only matrix.<axis> == '<value>' and != are supported)"
        )
    axis_name, op, value = m.groups()
    return when_matrix(axis_name, value) if op == "==" else when_not_matrix(axis_name, value)


def _parse_axes(raw: Any) -> List[Axis]:
    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError("Job must declare strategy.matrix with at least one axis")
    axes: List[Axis] = []
    for name, values in raw.items():
        if name in ("include", "exclude"):
            raise ConfigurationError(
                f"matrix.{name} is not supported: the job count must be the product of the axes"
            )
        if not isinstance(values, list):
            raise ConfigurationError(f"Axis '{name}' must be a list, got {type(values).__name__}")
        axes.append(Axis(name=str(name), values=tuple("" if v is None else str(v) for v in values)))
    return axes


def _translate_conditionals(step_name: str, run: str, ext: Dict[str, Any]) -> str:
    """
    Rewrite the inline toolchain conditionals into toolchain placeholders.

    Only the two shapes that pick on the pinned toolchain are understood; the
    axis and value they test must be the workflow's toolchain axis and pinned
    value. An `env.X` in the label form names the env key holding the pinned
    toolchain id, and sets toolchain_env when x-matrixci does not.
    """
    def _check_selector(expr: str, axis_name: str, value: str) -> None:
        if axis_name != ext.get("toolchain_axis") or value != ext.get("pinned_value"):
            raise ConfigurationError(
                f"Step '{step_name}': {expr!r} must test the toolchain axis "
                f"(matrix.{ext.get('toolchain_axis')} == '{ext.get('pinned_value')}')"
            )

    def _label(m: re.Match) -> str:
        axis_name, value, env_key, default = m.groups()
        _check_selector(m.group(0), axis_name, value)
        if default != DEFAULT_TOOLCHAIN:
            raise ConfigurationError(
                f"Step '{step_name}': default toolchain must be '{DEFAULT_TOOLCHAIN}', got '{default}'"
            )
        if ext.get("toolchain_env") is None:
            ext["toolchain_env"] = env_key
        known_env = ext["toolchain_env"]
        if known_env != env_key:
            raise ConfigurationError(
                f"Step '{step_name}': pinned toolchain is read from env.{env_key}, "
                f"but the workflow uses env.{known_env}"
            )
        return "${{ toolchain.label }}"

    def _feature(m: re.Match) -> str:
        axis_name, value, feature = m.groups()
        _check_selector(m.group(0), axis_name, value)
        if feature != value:
            raise ConfigurationError(
                f"Step '{step_name}': {m.group(0)!r} must yield the pinned value '{value}'"
            )
        return "${{ toolchain.feature }}"

    run = _LABEL_EXPR.sub(_label, run)
    return _FEATURE_EXPR.sub(_feature, run)


def _parse_steps(raw: Any, ext: Dict[str, Any]) -> List[Step]:
    if not isinstance(raw, list):
        raise ConfigurationError("Job 'steps' must be a list")

    console = get_console()
    steps: List[Step] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigurationError(f"Step #{idx + 1} must be a mapping")
        name = str(item.get("name") or item.get("uses") or f"step-{idx + 1}")
        if "run" not in item:
            if "uses" in item:
                # platform actions (checkout, toolchain setup, ...) are not ours to run
                console.print_info(f"Note: step '{name}' uses {item['uses']} and is delegated to the platform")
                continue
            raise ConfigurationError(f"Step '{name}' has neither 'run' nor 'uses'")
        steps.append(
            Step(
                name=name,
                run=_translate_conditionals(name, str(item["run"]).strip(), ext),
                when=_parse_gate(name, item.get("if")),
                cwd=item.get("working-directory"),
            )
        )
    return steps


def parse_yaml_workflow(data: Any, *, job: Optional[str] = None) -> Workflow:
    if not isinstance(data, dict):
        raise ConfigurationError("Workflow YAML must be a mapping at the top level")

    jobs = data.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        raise ConfigurationError("Workflow YAML must declare at least one job under 'jobs'")
    if job is None:
        if len(jobs) > 1:
            raise ConfigurationError(f"Workflow declares several jobs {sorted(jobs)}; choose one with --job")
        job = next(iter(jobs))
    if job not in jobs:
        raise ConfigurationError(f"Job '{job}' not found. Known jobs: {sorted(jobs)}")
    job_def = jobs[job] or {}

    axes = _parse_axes((job_def.get("strategy") or {}).get("matrix"))

    ext: Dict[str, Any] = {}
    for key, value in (data.get("x-matrixci") or {}).items():
        if key not in _EXTENSION_KEYS:
            raise ConfigurationError(f"Unknown x-matrixci key '{key}'")
        ext[_EXTENSION_KEYS[key]] = None if value is None else str(value)

    axis_names = [a.name for a in axes]
    if "toolchain_axis" not in ext and "toolchain" in axis_names:
        ext["toolchain_axis"] = "toolchain"
    if "pinned_value" not in ext and ext.get("toolchain_axis"):
        ext["pinned_value"] = "nightly"

    steps = _parse_steps(job_def.get("steps"), ext)

    env = {str(k): "" if v is None else str(v) for k, v in (data.get("env") or {}).items()}

    # YAML 1.1 reads a bare `on:` key as boolean True
    raw_on = data["on"] if "on" in data else data.get(True)

    workflow = Workflow(
        name=str(job),
        axes=tuple(axes),
        steps=tuple(steps),
        env=env,
        triggers=tuple(_parse_triggers(raw_on)),
        **ext,
    )
    workflow.validate()
    return workflow


def load_yaml_workflow(wf_path: Path, *, job: Optional[str] = None) -> Workflow:
    try:
        data = yaml.safe_load(wf_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {wf_path.name}: {e}") from e
    return parse_yaml_workflow(data, job=job)


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path, *, job: Optional[str] = None) -> Workflow:
    """
    Load and validate a workflow from a .py or .yml/.yaml file.

    Raises:
      FileNotFoundError if the file does not exist
      ConfigurationError if it is not a valid workflow
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix == ".py":
        workflow = load_python_workflow(wf_path)
    elif wf_path.suffix in (".yml", ".yaml"):
        workflow = load_yaml_workflow(wf_path, job=job)
    else:
        raise ConfigurationError(f"Workflow must be a .py or .yml file, got: {wf_path.name}")

    workflow.validate()
    return workflow
