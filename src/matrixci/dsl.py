# dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .gates import (
    all_of,
    when_event,
    when_feature,
    when_matrix,
    when_not_matrix,
    when_toolchain,
)
from .matrix import expand_matrix
from .model import Axis, Gate, JobConfig, Step, TriggerEvent, Workflow


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, when: Optional[Gate] = None, cwd: str | None = None) -> Step:
    """Create a shell step. `cmd` may use ${{ matrix.* }}, ${{ env.* }} and ${{ toolchain.* }}."""
    return Step(name=name, run=cmd, when=when, cwd=cwd)


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

def axis(name: str, values: Iterable[object]) -> Axis:
    return Axis(name=name, values=values)


class Matrix:
    """
    Ordered set of axes.

    Example:
        matrix({"crypto-backend": ["rustcrypto", "openssl"], "toolchain": ["stable", "nightly"]})
        matrix().axis("features", ["", "alloc", "os"])
    """
    def __init__(self, axes: Sequence[Axis] = ()):
        self.axes: List[Axis] = list(axes)

    def axis(self, name: str, values: Iterable[object]) -> "Matrix":
        self.axes.append(axis(name, values))
        return self

    def expand(self, *, toolchain_axis: str | None = None, pinned_value: str | None = None) -> List[JobConfig]:
        return expand_matrix(self.axes, toolchain_axis=toolchain_axis, pinned_value=pinned_value)


def _as_matrix(axes: Union[Matrix, Mapping[str, Iterable[object]], Sequence[Axis], None]) -> Matrix:
    if isinstance(axes, Matrix):
        return axes
    if axes is None:
        return Matrix()
    if isinstance(axes, Mapping):
        # dicts keep insertion order, which is the axis order
        return Matrix([axis(k, v) for k, v in axes.items()])
    return Matrix(list(axes))


def matrix(axes: Union[Mapping[str, Iterable[object]], Sequence[Axis], None] = None) -> Matrix:
    return _as_matrix(axes)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(
    name: str,
    *steps: Step,
    matrix: Union[Matrix, Mapping[str, Iterable[object]], Sequence[Axis]],
    toolchain_axis: str | None = None,
    pinned_value: str | None = None,
    toolchain_env: str | None = None,
    token_env: str | None = None,
    env: Optional[Dict[str, str]] = None,
    on: Sequence[Union[str, TriggerEvent]] = (),
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from matrixci import wf, sh, when_feature

        def workflow():
            return wf(
                "build_and_test",
                sh("Build", "cargo build --features ${{ matrix.features }}"),
                sh("Test", "cargo test", when=when_feature("os")),
                matrix={"features": ["", "alloc", "os"]},
            )
    """
    steps_final = list(steps)
    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    axes = _as_matrix(matrix).axes

    w = Workflow(
        name=name,
        axes=tuple(axes),
        steps=tuple(steps_final),
        toolchain_axis=toolchain_axis,
        pinned_value=pinned_value,
        toolchain_env=toolchain_env,
        token_env=token_env,
        env=dict(env or {}),
        triggers=tuple(on),
    )
    w.validate()
    return w


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class WorkflowBuilder:
    def __init__(self, name: str):
        self.name = name
        self._axes: list[Axis] = []
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}
        self._triggers: list[TriggerEvent] = []
        self._toolchain_axis: Optional[str] = None
        self._pinned_value: Optional[str] = None
        self._toolchain_env: Optional[str] = None
        self._token_env: Optional[str] = None

    def axis(self, name: str, *values: object):
        self._axes.append(axis(name, values))
        return self

    def define_step(self, name: str, run: str, when: Optional[Gate] = None, cwd: str | None = None):
        self._steps.append(Step(name=name, run=run, when=when, cwd=cwd))
        return self

    def with_env(self, **env):
        # force values to str for env compatibility
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def on(self, *events: Union[str, TriggerEvent]):
        self._triggers.extend(TriggerEvent.parse(e) for e in events)
        return self

    def pin_toolchain(self, axis_name: str, value: str, *, env_key: str | None = None):
        """Jobs whose `axis_name` equals `value` use the pinned toolchain id from env[env_key]."""
        self._toolchain_axis = axis_name
        self._pinned_value = value
        self._toolchain_env = env_key
        return self

    def report_token(self, env_key: str):
        self._token_env = env_key
        return self

    def build(self) -> Workflow:
        w = Workflow(
            name=self.name,
            axes=tuple(self._axes),
            steps=tuple(self._steps),
            toolchain_axis=self._toolchain_axis,
            pinned_value=self._pinned_value,
            toolchain_env=self._toolchain_env,
            token_env=self._token_env,
            env=dict(self._env),
            triggers=tuple(self._triggers),
        )
        w.validate()
        return w


def build(name: str) -> WorkflowBuilder:
    """Convenience: build('ci').axis(...).define_step(...).build()"""
    return WorkflowBuilder(name)


__all__ = [
    "sh",
    "axis",
    "Matrix",
    "matrix",
    "wf",
    "WorkflowBuilder",
    "build",
    "all_of",
    "when_event",
    "when_feature",
    "when_matrix",
    "when_not_matrix",
    "when_toolchain",
]
