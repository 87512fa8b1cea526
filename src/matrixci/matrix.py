# matrix.py
from __future__ import annotations

from itertools import product
from math import prod
from typing import Iterable, List, Optional, Sequence

from .model import Axis, ConfigurationError, JobConfig, Workflow


def check_axes(axes: Sequence[Axis], toolchain_axis: Optional[str] = None) -> None:
    """
    Reject axis declarations that cannot produce a well-defined matrix.

    An empty axis would make the product empty; that is treated as a
    misconfiguration, not as a run with zero jobs.
    """
    if not axes:
        raise ConfigurationError("Matrix must declare at least one axis")

    names = [a.name for a in axes]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ConfigurationError(f"Duplicate axis names found: {dupes}")

    for a in axes:
        if not a.name:
            raise ConfigurationError("Axis must have a name")
        if len(a.values) == 0:
            raise ConfigurationError(f"Axis '{a.name}' declares no values")
        if len(set(a.values)) != len(a.values):
            dupes = sorted({v for v in a.values if a.values.count(v) > 1})
            raise ConfigurationError(f"Axis '{a.name}' has duplicate values: {dupes}")

    if toolchain_axis is not None and toolchain_axis not in names:
        raise ConfigurationError(
            f"Toolchain axis '{toolchain_axis}' is not declared. Known axes: {names}"
        )


def expand_matrix(
    axes: Sequence[Axis],
    *,
    toolchain_axis: Optional[str] = None,
    pinned_value: Optional[str] = None,
) -> List[JobConfig]:
    """
    Cartesian product of `axes` as JobConfigs.

    Order is axis declaration order, then value order, with the last declared
    axis varying fastest. A config is `pinned` when its toolchain axis value
    equals `pinned_value`.
    """
    axes = list(axes)
    check_axes(axes, toolchain_axis)

    names = [a.name for a in axes]
    configs: List[JobConfig] = []
    for combo in product(*(a.values for a in axes)):
        values = tuple(zip(names, combo))
        pinned = False
        if toolchain_axis is not None and pinned_value is not None:
            pinned = dict(values)[toolchain_axis] == pinned_value
        configs.append(JobConfig(values=values, pinned=pinned))

    return configs


def expand_workflow(workflow: Workflow) -> List[JobConfig]:
    return expand_matrix(
        workflow.axes,
        toolchain_axis=workflow.toolchain_axis,
        pinned_value=workflow.pinned_value,
    )


def matrix_size(axes: Iterable[Axis]) -> int:
    """Number of jobs the axes expand to."""
    return prod(len(a) for a in axes)
