"""
Jobs Package

Durable event queue, workflow runtime and the scheduler that polls them.
"""

from coderevu.jobs.queue import JobQueue, JobEvent, JobStatus, StepRun, StepStatus
from coderevu.jobs.runtime import (
    StepOutcome,
    Workflow,
    WorkflowContext,
    WorkflowRuntime,
)

__all__ = [
    "JobQueue",
    "JobEvent",
    "JobStatus",
    "StepRun",
    "StepStatus",
    "StepOutcome",
    "Workflow",
    "WorkflowContext",
    "WorkflowRuntime",
]
