"""
Bounded worker pool used for both region and stack fan-out.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

J = TypeVar("J")


@dataclass
class JobResult(Generic[J]):
    """Outcome of one job: a value or an error, never both."""

    job: J
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def clamp_workers(requested: int, jobs: int) -> int:
    return max(1, min(requested, jobs))


class WorkerPool:
    """Run a handler over jobs with at most ``size`` running at once.

    Jobs are dispatched at most one per ``dispatch_interval`` seconds. Every
    job yields exactly one JobResult; results come back in completion order,
    so callers that need a stable order sort them afterwards.
    """

    def __init__(
        self,
        size: int,
        dispatch_interval: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.size = size
        self.dispatch_interval = dispatch_interval
        self.sleep = sleep

    def map(self, handler: Callable[[J], Any], jobs: Sequence[J]) -> List[JobResult]:
        if not jobs:
            return []

        workers = clamp_workers(self.size, len(jobs))
        results: List[JobResult] = []

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {}
            for i, job in enumerate(jobs):
                if i and self.dispatch_interval:
                    self.sleep(self.dispatch_interval)
                future_map[executor.submit(handler, job)] = job

            for future in as_completed(future_map):
                job = future_map[future]
                try:
                    results.append(JobResult(job, value=future.result()))
                except Exception as exc:
                    logger.debug("Job %r failed", job, exc_info=True)
                    results.append(JobResult(job, error=exc))

        return results
