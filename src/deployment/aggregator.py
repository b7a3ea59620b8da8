"""
Folding of stack and region results into command outcomes.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from cloudformation.changeset import ChangeSetResult, DiffStatus
from cloudformation.errors import DeploymentError, RegionError, RemoteAPIError
from manifest.models import StackSpec

from .pool import JobResult
from .stack_runner import is_stack_busy

logger = logging.getLogger(__name__)


def failed_stacks(results: Iterable[JobResult]) -> List[str]:
    """Names of failed stacks, in deployment order."""
    failed = sorted((r for r in results if not r.ok), key=lambda r: r.job.order)
    return [r.job.name for r in failed]


def region_error(region: str, results: Iterable[JobResult], verb: str = "Deployments") -> Optional[RegionError]:
    names = failed_stacks(results)
    if names:
        return RegionError(region, names, verb)
    return None


def deployment_error(
    region_order: Sequence[str], results: Iterable[JobResult], verb: str = "Deployment"
) -> Optional[DeploymentError]:
    """Fold region results; failed regions are listed in manifest order."""
    failed = {r.job.name for r in results if not r.ok}
    names = [name for name in region_order if name in failed]
    if names:
        return DeploymentError(names, verb)
    return None


def diff_outcome(result: JobResult) -> ChangeSetResult:
    """The diff of one stack, with failures recorded as failed or unknown."""
    if result.ok:
        return result.value

    error = result.error
    if isinstance(error, RemoteAPIError):
        if is_stack_busy(error):
            return ChangeSetResult(status=DiffStatus.UNKNOWN, reason=error.message)
        return ChangeSetResult(status=DiffStatus.FAILED, reason=error.message)
    return ChangeSetResult(status=DiffStatus.FAILED, reason=str(error))


def should_report(changes: ChangeSetResult) -> bool:
    if changes.status in (DiffStatus.FAILED, DiffStatus.UNKNOWN):
        return True
    return changes.has_changes


@dataclass
class RegionDiff:
    """Stacks with something to report in one region, in deployment order."""

    region: str
    stacks: List[Tuple[StackSpec, ChangeSetResult]] = field(default_factory=list)

    @property
    def failed(self) -> List[str]:
        return [spec.name for spec, changes in self.stacks if changes.status is DiffStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        stacks = []
        for spec, changes in self.stacks:
            entry = spec.to_dict()
            entry["Changes"] = changes.to_dict()
            stacks.append(entry)
        return {"Name": self.region, "Stacks": stacks}


def collect_region_diff(region: str, results: Iterable[JobResult]) -> RegionDiff:
    """Keep changed, failed and unknown stacks; drop the rest."""
    kept = []
    for result in results:
        changes = diff_outcome(result)
        if changes.status is DiffStatus.FAILED:
            logger.error("Diff failed for stack %s: %s", result.job.name, changes.reason)
        elif changes.status is DiffStatus.UNKNOWN:
            logger.warning("Diff unknown for stack %s: %s", result.job.name, changes.reason)
        if should_report(changes):
            kept.append((result.job.spec, changes))

    kept.sort(key=lambda item: item[0].deployment_order)
    return RegionDiff(region, kept)


def diff_document(
    region_order: Sequence[str], diffs: Iterable[RegionDiff], parallel: bool
) -> Dict[str, Any]:
    """Diff document mirroring the manifest shape; empty regions are left out."""
    by_name = {diff.region: diff for diff in diffs}
    regions = [
        by_name[name].to_dict()
        for name in region_order
        if name in by_name and by_name[name].stacks
    ]
    return {"Regions": regions, "ParallelDeployment": parallel}


def write_diff(document: Dict[str, Any], path: Union[str, Path]) -> Path:
    output = Path(path)
    with open(output, "w") as f:
        json.dump(document, f, indent=2)
    logger.info("Diff written to %s", output)
    return output
