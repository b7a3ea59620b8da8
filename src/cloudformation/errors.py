"""
Error types and the remote error classification table.

Every remote call site classifies failures through the same table so that
throttling, transient request errors and "nothing to do" answers are handled
identically across stack, changeset and status operations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

REQUEST_ERROR_CODE = "RequestError"

NO_CHANGES_REASON = (
    "The submitted information didn't contain changes. "
    "Submit different information to create a change set."
)

_REQUEST_ERRORS = (
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)


class CfstackError(Exception):
    """Base class for all cfstack errors."""


class RemoteAPIError(CfstackError):
    """Unrecoverable error returned by the CloudFormation/S3 API."""

    def __init__(self, code: str, message: str, subject: Optional[str] = None):
        self.code = code
        self.message = message
        self.subject = subject
        prefix = f"unhandled AWS error for stack {subject}\n" if subject else ""
        super().__init__(f"{prefix}{code} : {message}")


class StackOperationError(CfstackError):
    """A stack landed in a failed or rolled back status."""

    def __init__(self, stack_name: str, status: str, reason: Optional[str] = None):
        self.stack_name = stack_name
        self.status = status
        self.reason = reason or ""
        message = f"Stack {stack_name} ended in {status}"
        if self.reason:
            message += f"\nReason: {self.reason}"
        super().__init__(message)


class ChangeSetError(CfstackError):
    """A changeset could not be created for a reason other than 'no changes'."""

    def __init__(self, stack_name: str, reason: str):
        self.stack_name = stack_name
        self.reason = reason
        super().__init__(f"Changeset for stack {stack_name} failed: {reason}")


class PollTimeoutError(CfstackError):
    """Polling exceeded its deadline."""

    def __init__(self, subject: str, deadline: float):
        self.subject = subject
        self.deadline = deadline
        super().__init__(
            f"remote API calls exceeded time budget of {deadline:.0f}s for {subject}. "
            "Try again later"
        )


class ParameterValueNotFound(CfstackError):
    """A {{name}} parameter reference has no value in the values document."""

    def __init__(self, region: str, stack_name: str, value_name: str, parameter: Optional[str] = None):
        self.region = region
        self.stack_name = stack_name
        self.value_name = value_name
        self.parameter = parameter or value_name
        super().__init__(
            f"Value {value_name} for parameter {self.parameter} not found in values "
            f"for stack {stack_name} in region {region}"
        )


class ManifestError(CfstackError):
    """The manifest document is missing fields or names an unknown region."""


class RegionError(CfstackError):
    """One or more stacks failed inside a region."""

    def __init__(self, region: str, stacks: Sequence[str], verb: str = "Deployments"):
        self.region = region
        self.stacks = list(stacks)
        super().__init__(
            f"{verb} failed for stack(s) {', '.join(self.stacks)} in region {region}"
        )


class DeploymentError(CfstackError):
    """One or more regions failed."""

    def __init__(self, regions: Sequence[str], verb: str = "Deployment"):
        self.regions = list(regions)
        super().__init__(f"{verb} failed in region(s): {', '.join(self.regions)}")


class Disposition(Enum):
    """What a poll loop does with a classified error."""

    RETRY = "retry"
    SUCCESS = "success"
    FATAL = "fatal"


@dataclass(frozen=True)
class ErrorRule:
    """Maps an error code (and optional message fragment) to a disposition."""

    code: str
    disposition: Disposition
    message: Optional[str] = None
    reason: str = ""

    def matches(self, code: str, message: str) -> bool:
        if code != self.code:
            return False
        return self.message is None or self.message in message


TRANSIENT_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule("Throttling", Disposition.RETRY, reason="AWS rate limit error"),
    ErrorRule("ThrottlingException", Disposition.RETRY, reason="AWS rate limit error"),
    ErrorRule(REQUEST_ERROR_CODE, Disposition.RETRY, reason="AWS request error"),
    ErrorRule("ChangeSetNotFound", Disposition.RETRY, reason="changeset not found yet"),
    ErrorRule(
        "ValidationError",
        Disposition.RETRY,
        message="S3 error: Access Denied",
        reason="template not readable from S3 yet",
    ),
)

NO_CHANGES_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule("ValidationError", Disposition.SUCCESS, message="didn't contain changes"),
    ErrorRule("ValidationError", Disposition.SUCCESS, message="No updates are to be performed"),
)

STACK_GONE_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule("ValidationError", Disposition.SUCCESS, message="does not exist"),
)

DEFAULT_RULES = TRANSIENT_RULES + NO_CHANGES_RULES
DELETE_TRACKING_RULES = DEFAULT_RULES + STACK_GONE_RULES
EXISTS_RULES = TRANSIENT_RULES + STACK_GONE_RULES


def error_details(exc: BaseException) -> Optional[Tuple[str, str]]:
    """Return (code, message) for a remote error, or None for anything else."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return str(error.get("Code", "")), str(error.get("Message", ""))
    if isinstance(exc, _REQUEST_ERRORS):
        return REQUEST_ERROR_CODE, str(exc)
    return None


def classify(exc: BaseException, rules: Iterable[ErrorRule] = DEFAULT_RULES) -> Tuple[Disposition, Optional[ErrorRule]]:
    """Classify an exception against a rule table.

    Errors that are not remote API errors, and remote errors no rule matches,
    are fatal.
    """
    details = error_details(exc)
    if details is None:
        return Disposition.FATAL, None

    code, message = details
    for rule in rules:
        if rule.matches(code, message):
            return rule.disposition, rule
    return Disposition.FATAL, None


def to_remote_error(exc: BaseException, subject: Optional[str] = None) -> BaseException:
    """Wrap a remote API error into RemoteAPIError, leaving other errors alone."""
    if isinstance(exc, CfstackError):
        return exc
    details = error_details(exc)
    if details is None:
        return exc
    code, message = details
    return RemoteAPIError(code, message, subject)
