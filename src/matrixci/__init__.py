from .dsl import sh, axis, matrix, wf, WorkflowBuilder, build
from .gates import all_of, when_event, when_feature, when_matrix, when_not_matrix, when_toolchain
from .runner import run_matrix, run_job, plan_matrix
from .model import Axis, ConfigurationError, JobConfig, JobResult, Step, TriggerEvent, Workflow

__all__ = [
    "sh", "axis", "matrix", "wf", "WorkflowBuilder", "build",
    "all_of", "when_event", "when_feature", "when_matrix", "when_not_matrix", "when_toolchain",
    "run_matrix", "run_job", "plan_matrix",
    "Axis", "ConfigurationError", "JobConfig", "JobResult", "Step", "TriggerEvent", "Workflow",
]
