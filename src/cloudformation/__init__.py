"""
CloudFormation stack operations, changesets and remote error handling.
"""

from .changeset import ChangeSetDiffer, ChangeSetRequest, ChangeSetResult, DiffStatus, ResourceChange
from .poller import Poller
from .stack_client import StackClient
from .status import StackStatusTracker

__all__ = [
    "ChangeSetDiffer",
    "ChangeSetRequest",
    "ChangeSetResult",
    "DiffStatus",
    "Poller",
    "ResourceChange",
    "StackClient",
    "StackStatusTracker",
]
