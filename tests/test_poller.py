"""
Tests for the polling loop.
"""

from unittest.mock import Mock

import pytest

from cloudformation.errors import (
    DELETE_TRACKING_RULES,
    PollTimeoutError,
    RemoteAPIError,
    TRANSIENT_RULES,
)
from cloudformation.poller import Poller
from conftest import client_error


class TestPoller:
    """Test Poller.run."""

    def test_first_call_is_immediate(self, poller, clock) -> None:
        result = poller.run(lambda: "done", interval=5, subject="stack app")
        assert result == "done"
        assert clock.sleeps == []

    def test_pending_results_wait_one_interval(self, poller, clock) -> None:
        operation = Mock(side_effect=[None, None, "CREATE_COMPLETE"])
        assert poller.run(operation, interval=5, subject="stack app") == "CREATE_COMPLETE"
        assert operation.call_count == 3
        assert clock.sleeps == [5, 5]

    def test_initial_delay(self, poller, clock) -> None:
        poller.run(lambda: True, interval=5, subject="stack app", initial_delay=True)
        assert clock.sleeps == [5]

    def test_transient_errors_are_retried(self, poller, caplog) -> None:
        operation = Mock(side_effect=[client_error("Throttling", "Rate exceeded"), {"ok": True}])
        result = poller.run(operation, interval=15, subject="stack app", rules=TRANSIENT_RULES)

        assert result == {"ok": True}
        assert operation.call_count == 2
        assert "AWS rate limit error for stack app" in caplog.text

    def test_expected_errors_return_on_expected(self, poller) -> None:
        operation = Mock(side_effect=client_error("ValidationError", "Stack with id app does not exist"))
        result = poller.run(
            operation,
            interval=5,
            subject="stack app",
            rules=DELETE_TRACKING_RULES,
            on_expected="DELETE_COMPLETE",
        )
        assert result == "DELETE_COMPLETE"

    def test_fatal_remote_errors_are_wrapped(self, poller) -> None:
        operation = Mock(side_effect=client_error("AccessDenied", "not authorized"))
        with pytest.raises(RemoteAPIError) as exc_info:
            poller.run(operation, interval=5, subject="stack app")

        assert exc_info.value.code == "AccessDenied"
        assert "not authorized" in str(exc_info.value)
        assert operation.call_count == 1

    def test_local_errors_propagate_unchanged(self, poller) -> None:
        with pytest.raises(KeyError):
            poller.run(Mock(side_effect=KeyError("x")), interval=5, subject="stack app")

    def test_deadline(self, clock) -> None:
        poller = Poller(deadline=30, sleep=clock.sleep, clock=clock)
        operation = Mock(return_value=None)

        with pytest.raises(PollTimeoutError) as exc_info:
            poller.run(operation, interval=10, subject="stack app")

        assert "exceeded time budget" in str(exc_info.value)
        assert operation.call_count == 3

    def test_throttled_forever_times_out(self, clock) -> None:
        poller = Poller(deadline=60, sleep=clock.sleep, clock=clock)
        operation = Mock(side_effect=client_error("Throttling", "Rate exceeded"))

        with pytest.raises(PollTimeoutError):
            poller.run(operation, interval=15, subject="stack app")
