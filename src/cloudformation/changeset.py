"""
Changeset based diffing of a stack against its desired template.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import NO_CHANGES_REASON, TRANSIENT_RULES, ChangeSetError
from .poller import Poller
from .stack_client import StackClient, is_trivial_policy

logger = logging.getLogger(__name__)

FAILED = "FAILED"
CREATE_COMPLETE = "CREATE_COMPLETE"


class DiffStatus(Enum):
    """Outcome of a diff for one stack."""

    SUCCESS = "success"
    NO_OP = "no-op"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ResourceChange:
    """One resource change listed by a changeset."""

    logical_id: str
    resource_type: str
    action: str
    replacement: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "Name": self.logical_id,
            "Type": self.resource_type,
            "Action": self.action,
            "Replacement": self.replacement,
        }


@dataclass
class ChangeSetResult:
    """Changes a stack update would perform."""

    status: DiffStatus = DiffStatus.NO_OP
    reason: str = ""
    resources: List[ResourceChange] = field(default_factory=list)
    stack_policy_change: bool = False
    force_update: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.resources) or self.force_update or self.stack_policy_change

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Status": self.status.value,
            "StatusReason": self.reason,
            "Resources": [change.to_dict() for change in self.resources],
            "StackPolicyChange": self.stack_policy_change,
            "ForceStackUpdate": self.force_update,
        }


@dataclass(frozen=True)
class ChangeSetRequest:
    """Everything needed to compute a changeset for one stack."""

    stack_name: str
    change_set_name: str
    change_set_type: str
    parameters: List[Dict[str, str]]
    capabilities: List[str]
    template_url: Optional[str] = None
    template_body: Optional[str] = None
    stack_policy: Optional[Dict[str, Any]] = None
    role_arn: Optional[str] = None


def change_set_name(uid: str, stack_name: str) -> str:
    return f"changeset-{uid}-{stack_name}"


def extract_changes(changes: List[Dict[str, Any]]) -> List[ResourceChange]:
    resources = []
    for change in changes:
        resource = change.get("ResourceChange", {})
        resources.append(
            ResourceChange(
                logical_id=resource.get("LogicalResourceId", ""),
                resource_type=resource.get("ResourceType", ""),
                action=resource.get("Action", ""),
                replacement=resource.get("Replacement", ""),
            )
        )
    return resources


class ChangeSetDiffer:
    """Create, track and clean up a changeset to find pending changes."""

    def __init__(
        self,
        client: StackClient,
        poller: Poller,
        call_interval: float,
        track_interval: float,
    ):
        self.client = client
        self.poller = poller
        self.call_interval = call_interval
        self.track_interval = track_interval

    def get_stack_changes(self, request: ChangeSetRequest) -> ChangeSetResult:
        """Compute the changes the desired template and parameters would make.

        The changeset is always deleted afterwards, whatever the outcome.

        Raises:
            ChangeSetError: The changeset failed for a reason other than
                "no changes"
        """
        policy_change = False
        if request.change_set_type == "UPDATE":
            policy_change = self._stack_policy_changed(request)

        subject = f"stack {request.stack_name}"

        def submit() -> bool:
            self.client.create_change_set(
                request.stack_name,
                request.change_set_name,
                request.change_set_type,
                request.parameters,
                request.capabilities,
                template_url=request.template_url,
                template_body=request.template_body,
                role_arn=request.role_arn,
            )
            return True

        self.poller.run(submit, interval=self.call_interval, subject=subject, rules=TRANSIENT_RULES)

        try:
            result = self.poller.run(
                lambda: self._check(request),
                interval=self.track_interval,
                subject=f"changeset {request.change_set_name}",
                rules=TRANSIENT_RULES,
            )
        finally:
            self._delete(request)

        result.stack_policy_change = policy_change
        if result.has_changes:
            result.status = DiffStatus.SUCCESS
        return result

    def _check(self, request: ChangeSetRequest) -> Optional[ChangeSetResult]:
        described = self.client.describe_change_set(request.stack_name, request.change_set_name)
        status = described["status"]

        if status == FAILED:
            reason = described["reason"]
            if reason == NO_CHANGES_REASON:
                return ChangeSetResult(status=DiffStatus.NO_OP, reason=reason)
            raise ChangeSetError(request.stack_name, reason)

        if status == CREATE_COMPLETE:
            resources = extract_changes(described["changes"])
            if not resources:
                # Transform-only changes (e.g. SAM) list nothing but still
                # have to be applied.
                return ChangeSetResult(status=DiffStatus.SUCCESS, force_update=True)
            return ChangeSetResult(status=DiffStatus.SUCCESS, resources=resources)

        return None

    def _stack_policy_changed(self, request: ChangeSetRequest) -> bool:
        if is_trivial_policy(request.stack_policy):
            return False
        current = self.poller.run(
            lambda: self.client.get_stack_policy(request.stack_name) or {},
            interval=self.call_interval,
            subject=f"stack {request.stack_name}",
            rules=TRANSIENT_RULES,
        )
        return current != request.stack_policy

    def _delete(self, request: ChangeSetRequest) -> None:
        try:
            self.client.delete_change_set(request.stack_name, request.change_set_name)
        except Exception as e:
            logger.warning(
                "Could not delete changeset %s for stack %s: %s",
                request.change_set_name,
                request.stack_name,
                e,
            )
