"""
Bounded-duration polling loop shared by every remote operation.
"""

import logging
import time
from typing import Any, Callable, Iterable, Optional, TypeVar

from .errors import DEFAULT_RULES, Disposition, ErrorRule, PollTimeoutError, classify, to_remote_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEADLINE = 24 * 60 * 60


class Poller:
    """Invoke an operation at a fixed interval until it settles.

    The operation performs one remote call per invocation. Returning ``None``
    means "not settled yet, ask again on the next tick"; any other value is
    terminal success and is returned to the caller. Exceptions are classified
    against a rule table:

    * RETRY errors are logged and the loop moves on to the next tick.
    * SUCCESS errors ("nothing to do" answers) end the loop and return
      ``on_expected``.
    * FATAL errors are raised, remote ones wrapped in ``RemoteAPIError``.

    With ``initial_delay`` the first invocation also waits one interval, for
    operations whose remote state lags behind the call that started them.

    The loop gives up with ``PollTimeoutError`` once ``deadline`` seconds
    have elapsed since it started. Only the local wait stops; anything the
    remote side already accepted keeps running.
    """

    def __init__(
        self,
        deadline: float = DEFAULT_DEADLINE,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.deadline = deadline
        self.sleep = sleep
        self.clock = clock

    def run(
        self,
        operation: Callable[[], Optional[T]],
        interval: float,
        subject: str,
        rules: Iterable[ErrorRule] = DEFAULT_RULES,
        on_expected: Any = None,
        initial_delay: bool = False,
    ) -> Any:
        rules = tuple(rules)
        started = self.clock()
        first = not initial_delay

        while True:
            if not first:
                self.sleep(interval)
            first = False

            if self.clock() - started >= self.deadline:
                raise PollTimeoutError(subject, self.deadline)

            try:
                result = operation()
            except Exception as exc:
                disposition, rule = classify(exc, rules)
                if disposition is Disposition.RETRY:
                    logger.warning(
                        "%s for %s, retrying in %ss: %s",
                        rule.reason or rule.code,
                        subject,
                        interval,
                        exc,
                    )
                    continue
                if disposition is Disposition.SUCCESS:
                    logger.debug("%s settled with no work to do: %s", subject, exc)
                    return on_expected
                raise to_remote_error(exc, subject) from exc

            if result is not None:
                return result
