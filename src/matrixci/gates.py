# gates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .model import Gate, JobConfig, Step, TriggerEvent


# ---------------------------------------------------------------------
# Gate types
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class MatrixEquals:
    """Step runs only when `axis` has exactly `value` (or anything else, if negated)."""
    axis: str
    value: str
    negate: bool = False

    def __call__(self, config: JobConfig, event: TriggerEvent) -> bool:
        matched = config.get(self.axis) == self.value
        return not matched if self.negate else matched

    @property
    def axes(self) -> Tuple[str, ...]:
        return (self.axis,)

    @property
    def description(self) -> str:
        op = "!=" if self.negate else "=="
        return f"matrix.{self.axis} {op} {self.value!r}"


@dataclass(frozen=True)
class ToolchainIs:
    """Step runs only when the job's toolchain-selection flag equals `pinned`."""
    pinned: bool = True

    def __call__(self, config: JobConfig, event: TriggerEvent) -> bool:
        return config.pinned == self.pinned

    @property
    def axes(self) -> Tuple[str, ...]:
        return ()

    @property
    def description(self) -> str:
        return "toolchain is pinned" if self.pinned else "toolchain is default"


@dataclass(frozen=True)
class EventIn:
    """Step runs only for the listed trigger events."""
    events: Tuple[TriggerEvent, ...]

    def __call__(self, config: JobConfig, event: TriggerEvent) -> bool:
        return TriggerEvent.parse(event) in self.events

    @property
    def axes(self) -> Tuple[str, ...]:
        return ()

    @property
    def description(self) -> str:
        return "event in [" + ", ".join(e.value for e in self.events) + "]"


@dataclass(frozen=True)
class AllOf:
    gates: Tuple[Gate, ...]

    def __call__(self, config: JobConfig, event: TriggerEvent) -> bool:
        return all(g(config, event) for g in self.gates)

    @property
    def axes(self) -> Tuple[str, ...]:
        out: List[str] = []
        for g in self.gates:
            out.extend(gate_axes(g))
        return tuple(out)

    @property
    def description(self) -> str:
        return " && ".join(describe_gate(g) for g in self.gates)


# ---------------------------------------------------------------------
# Helpers (DSL side)
# ---------------------------------------------------------------------

def when_matrix(axis: str, value: str) -> MatrixEquals:
    return MatrixEquals(axis=axis, value=str(value))


def when_not_matrix(axis: str, value: str) -> MatrixEquals:
    return MatrixEquals(axis=axis, value=str(value), negate=True)


def when_feature(value: str, axis: str = "features") -> MatrixEquals:
    """Feature-conditional step: the feature-set axis must equal `value`."""
    return MatrixEquals(axis=axis, value=str(value))


def when_toolchain(pinned: bool = True) -> ToolchainIs:
    """Toolchain-conditional step: e.g. an install step only for the pinned toolchain."""
    return ToolchainIs(pinned=pinned)


def when_event(*events: str | TriggerEvent) -> EventIn:
    return EventIn(events=tuple(TriggerEvent.parse(e) for e in events))


def all_of(*gates: Gate) -> AllOf:
    return AllOf(gates=tuple(gates))


# ---------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------

def is_applicable(step: Step, config: JobConfig, event: TriggerEvent) -> bool:
    """Decide at job-run time whether `step` applies to `config` for `event`."""
    if step.when is None:
        return True
    return bool(step.when(config, event))


def gate_axes(gate: Optional[Gate]) -> Iterable[str]:
    """Axis names a gate reads; unknown callables report none."""
    if gate is None:
        return ()
    return tuple(getattr(gate, "axes", ()) or ())


def describe_gate(gate: Optional[Gate]) -> str:
    if gate is None:
        return "always"
    text = getattr(gate, "description", None)
    if text:
        return str(text)
    return getattr(gate, "__name__", None) or repr(gate)
