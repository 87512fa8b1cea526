# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union


class ConfigurationError(ValueError):
    """Axis, step or workflow declarations are structurally invalid."""


class TriggerEvent(str, Enum):
    """The event that started a run. Opaque to the runner except where a gate asks for it."""
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    SCHEDULE = "schedule"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: Union[str, "TriggerEvent"]) -> "TriggerEvent":
        if isinstance(value, TriggerEvent):
            return value
        key = str(value).strip().lower()
        # platform spelling for a manual run
        if key == "workflow_dispatch":
            key = "manual"
        try:
            return cls(key)
        except ValueError:
            known = ", ".join(e.value for e in cls)
            raise ConfigurationError(f"Unknown trigger event {value!r} (expected one of: {known})") from None


@dataclass(frozen=True)
class Axis:
    """A named matrix dimension with an ordered list of values."""
    name: str
    values: Tuple[str, ...]

    def __post_init__(self) -> None:
        if isinstance(self.values, str):
            raise ConfigurationError(
                f"Axis '{self.name}' values must be a list, not the string {self.values!r}"
            )
        # accept any iterable, store a tuple so the axis stays immutable
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class JobConfig:
    """
    One concrete point of the matrix: exactly one value per axis.

    `pinned` is the derived toolchain-selection flag: True when the job uses the
    pinned alternate toolchain instead of the default one.
    """
    values: Tuple[Tuple[str, str], ...]
    pinned: bool = False

    def __getitem__(self, axis: str) -> str:
        for name, value in self.values:
            if name == axis:
                return value
        raise KeyError(axis)

    def get(self, axis: str, default: Optional[str] = None) -> Optional[str]:
        try:
            return self[axis]
        except KeyError:
            return default

    def axes(self) -> List[str]:
        return [name for name, _ in self.values]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)

    @property
    def label(self) -> str:
        return "(" + ", ".join(value for _, value in self.values) + ")"


# A gate is anything callable as gate(config, event) -> bool.
Gate = Callable[[JobConfig, TriggerEvent], bool]


@dataclass(frozen=True)
class Step:
    """A single command (step) inside every job of the matrix."""
    name: str
    run: str
    when: Optional[Gate] = None
    cwd: str | None = None


@dataclass(frozen=True)
class JobResult:
    """Terminal outcome of one job: success, or the first failing step."""
    config: JobConfig
    status: str  # "success" | "failed"
    failed_step: str | None = None
    exit_code: int | None = None
    executed: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()

    @classmethod
    def success(cls, config: JobConfig, executed: Iterable[str] = (), skipped: Iterable[str] = ()) -> "JobResult":
        return cls(config=config, status="success", executed=tuple(executed), skipped=tuple(skipped))

    @classmethod
    def failed(
        cls,
        config: JobConfig,
        step: str,
        exit_code: int,
        executed: Iterable[str] = (),
        skipped: Iterable[str] = (),
    ) -> "JobResult":
        return cls(
            config=config,
            status="failed",
            failed_step=step,
            exit_code=exit_code,
            executed=tuple(executed),
            skipped=tuple(skipped),
        )

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class Workflow:
    """
    The static declaration a run is built from.

    toolchain_axis/pinned_value say which axis selects the toolchain and which of
    its values means "use the pinned alternate toolchain". toolchain_env and
    token_env name the `env` keys holding the pinned toolchain id and the access
    token for external reporting.
    """
    name: str
    axes: Tuple[Axis, ...]
    steps: Tuple[Step, ...]
    toolchain_axis: str | None = None
    pinned_value: str | None = None
    toolchain_env: str | None = None
    token_env: str | None = None
    env: Dict[str, str] = field(default_factory=dict)
    triggers: Tuple[TriggerEvent, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "axes", tuple(self.axes))
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "triggers", tuple(TriggerEvent.parse(t) for t in self.triggers))
        object.__setattr__(self, "env", {str(k): str(v) for k, v in (self.env or {}).items()})

    def axis_names(self) -> List[str]:
        return [a.name for a in self.axes]

    def validate(self) -> None:
        """Raise ConfigurationError on structural problems that do not need a JobConfig."""
        # Local imports: gates, matrix and templating import this module.
        from .gates import gate_axes
        from .matrix import check_axes
        from .templating import template_refs

        if not self.name:
            raise ConfigurationError("Workflow must have a name")
        if not self.steps:
            raise ConfigurationError(f"Workflow '{self.name}' has no steps")
        check_axes(self.axes, self.toolchain_axis)

        axis_names = set(self.axis_names())
        seen: set[str] = set()
        for step in self.steps:
            if not step.name:
                raise ConfigurationError(f"Workflow '{self.name}' has a step without a name")
            if not step.run or not step.run.strip():
                raise ConfigurationError(f"Step '{step.name}' has no command")
            if step.name in seen:
                raise ConfigurationError(f"Duplicate step name: {step.name}")
            seen.add(step.name)

            for namespace, key in template_refs(step.run):
                if namespace == "matrix" and key not in axis_names:
                    raise ConfigurationError(
                        f"Step '{step.name}' references unknown axis '{key}'. "
                        f"Known axes: {sorted(axis_names)}"
                    )

            for axis in gate_axes(step.when):
                if axis not in axis_names:
                    raise ConfigurationError(
                        f"Step '{step.name}' is gated on unknown axis '{axis}'. "
                        f"Known axes: {sorted(axis_names)}"
                    )

        if self.pinned_value is not None and self.toolchain_axis is None:
            raise ConfigurationError("pinned_value is set but no toolchain_axis is declared")
