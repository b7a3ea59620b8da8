"""
Region workers: set up a region and fan its stacks out to a stack pool.
"""

import logging
from typing import Callable, List, Optional

from manifest.models import Region

from .aggregator import RegionDiff, collect_region_diff, region_error
from .context import RegionContext, RunContext, StackJob
from .pool import JobResult, WorkerPool
from .stack_runner import StackRunner

logger = logging.getLogger(__name__)
progress = logging.getLogger("cfstack.progress")

ROCKET = "🚀"
CHECK = "✅"
CROSS = "❌"

RegionFactory = Callable[[str, RunContext], RegionContext]


def setup_region(name: str, run: RunContext) -> RegionContext:
    """Create region clients and resolve the templates bucket once."""
    region = RegionContext(name, run)
    region.resolve_templates_bucket()
    return region


def stack_jobs(region: Region, context: RegionContext, run: RunContext) -> List[StackJob]:
    return [StackJob(spec=spec, region=context, run=run) for spec in region.stacks]


def _stack_pool(run: RunContext, workers: Optional[int] = None) -> WorkerPool:
    return WorkerPool(
        workers if workers is not None else run.stack_workers,
        dispatch_interval=run.settings.dispatch_interval,
    )


def deploy_stack_job(job: StackJob) -> bool:
    """Stack worker for deploy."""
    quiet = job.run.parallel
    progress.info("==> %s  Deploying stack %s in region %s", ROCKET, job.name, job.region_name)

    try:
        StackRunner(job, quiet=quiet).deploy()
    except Exception as e:
        if quiet:
            progress.info(
                "==> %s  Deployment completed for stack %s in region %s\n%s",
                CROSS, job.name, job.region_name, e,
            )
        else:
            progress.error("    %s", e)
        raise

    if quiet:
        progress.info("==> %s  Deployment completed for stack %s in region %s", CHECK, job.name, job.region_name)
    return True


def diff_stack_job(job: StackJob):
    """Stack worker for diff."""
    logger.info("Fetching diff for stack %s in region %s", job.name, job.region_name)
    return StackRunner(job, quiet=True).diff()


def deploy_region(region: Region, run: RunContext, setup: RegionFactory = setup_region) -> List[JobResult]:
    """Deploy all stacks of a region.

    Raises:
        RegionError: One or more stacks failed
    """
    context = setup(region.name, run)
    results = _stack_pool(run).map(deploy_stack_job, stack_jobs(region, context, run))

    error = region_error(region.name, results)
    if error is not None:
        raise error
    return results


def diff_region(region: Region, run: RunContext, setup: RegionFactory = setup_region) -> RegionDiff:
    """Diff all stacks of a region; failed stacks are recorded, not raised."""
    context = setup(region.name, run)
    results = _stack_pool(run, workers=run.workers).map(diff_stack_job, stack_jobs(region, context, run))
    return collect_region_diff(region.name, results)
