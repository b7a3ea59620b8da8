"""
Multi-region stack deployment: worker pools, the stack state machine and
result aggregation.
"""

from .context import RegionContext, RunContext, StackJob
from .orchestrator import Orchestrator, init_region
from .pool import JobResult, WorkerPool
from .stack_runner import StackRunner

__all__ = [
    "JobResult",
    "Orchestrator",
    "RegionContext",
    "RunContext",
    "StackJob",
    "StackRunner",
    "WorkerPool",
    "init_region",
]
