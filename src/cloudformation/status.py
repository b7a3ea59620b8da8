"""
Stack status tracking for create, update and delete operations.
"""

import logging
from typing import Optional

from .errors import DEFAULT_RULES, DELETE_TRACKING_RULES, StackOperationError
from .poller import Poller
from .stack_client import StackClient

logger = logging.getLogger(__name__)

CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"

COMPLETE_STATUSES = {
    CREATE: "CREATE_COMPLETE",
    UPDATE: "UPDATE_COMPLETE",
    DELETE: "DELETE_COMPLETE",
}

# Statuses that end the given action unsuccessfully. A delete that follows a
# failed create starts from ROLLBACK_COMPLETE, so only DELETE_FAILED ends it.
FAILED_STATUSES = {
    CREATE: {"CREATE_FAILED", "ROLLBACK_COMPLETE", "ROLLBACK_FAILED"},
    UPDATE: {"UPDATE_ROLLBACK_COMPLETE", "UPDATE_ROLLBACK_FAILED"},
    DELETE: {"DELETE_FAILED"},
}

# Statuses that belong to the same phase share a label so that the
# transition message is logged once per phase.
PHASES = {
    "CREATE_IN_PROGRESS": "creating",
    "ROLLBACK_IN_PROGRESS": "rolling back create",
    "UPDATE_IN_PROGRESS": "updating",
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": "updating",
    "UPDATE_ROLLBACK_IN_PROGRESS": "rolling back update",
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS": "rolling back update",
    "DELETE_IN_PROGRESS": "deleting",
}

ROLLBACK_PHASES = {"rolling back create", "rolling back update"}


class StackStatusTracker:
    """Poll a stack until the submitted operation settles."""

    def __init__(self, client: StackClient, poller: Poller, interval: float):
        self.client = client
        self.poller = poller
        self.interval = interval

    def wait(self, stack_name: str, action: str) -> str:
        """Block until ``action`` completes on ``stack_name``.

        Returns:
            The final status

        Raises:
            StackOperationError: The stack failed or rolled back
        """
        phase: Optional[str] = None

        def check() -> Optional[str]:
            nonlocal phase
            status, reason = self.client.describe_stack_status(stack_name)
            if status is None:
                return None

            if status == COMPLETE_STATUSES[action]:
                logger.info("Completed %s of stack %s", action.lower(), stack_name)
                return status

            if status in FAILED_STATUSES[action]:
                raise StackOperationError(stack_name, status, reason)

            label = PHASES.get(status)
            if label and label != phase:
                phase = label
                if label in ROLLBACK_PHASES:
                    logger.warning("Stack %s is %s, reason: %s", stack_name, label, reason)
                else:
                    logger.info("Stack %s is %s", stack_name, label)
            return None

        rules = DELETE_TRACKING_RULES if action == DELETE else DEFAULT_RULES
        return self.poller.run(
            check,
            interval=self.interval,
            subject=f"stack {stack_name}",
            rules=rules,
            on_expected=COMPLETE_STATUSES[action],
            initial_delay=True,
        )
