"""
Tests for stack status tracking.
"""

import logging

import pytest

from cloudformation.errors import RemoteAPIError, StackOperationError
from cloudformation.status import CREATE, DELETE, UPDATE, StackStatusTracker
from conftest import client_error


class TestStackStatusTracker:
    """Test waiting for stack operations to settle."""

    @pytest.fixture
    def tracker(self, cf_client, poller):
        return StackStatusTracker(cf_client, poller, interval=5)

    def test_create_completes(self, tracker, cf_client, clock) -> None:
        """Test waiting for a create."""
        cf_client.describe_stack_status.side_effect = [
            ("CREATE_IN_PROGRESS", ""),
            ("CREATE_COMPLETE", ""),
        ]

        assert tracker.wait("app", CREATE) == "CREATE_COMPLETE"
        assert clock.sleeps == [5, 5]

    def test_phase_is_logged_once(self, tracker, cf_client, caplog) -> None:
        """Test that a long create logs its phase once, not on every poll."""
        caplog.set_level(logging.INFO, logger="cloudformation.status")
        cf_client.describe_stack_status.side_effect = [("CREATE_IN_PROGRESS", "")] * 5 + [
            ("CREATE_COMPLETE", ""),
        ]

        tracker.wait("app", CREATE)

        messages = [r.getMessage() for r in caplog.records]
        assert messages.count("Stack app is creating") == 1

    def test_update_phases_share_one_log_line(self, tracker, cf_client, caplog) -> None:
        caplog.set_level(logging.INFO, logger="cloudformation.status")
        cf_client.describe_stack_status.side_effect = [
            ("UPDATE_IN_PROGRESS", ""),
            ("UPDATE_IN_PROGRESS", ""),
            ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", ""),
            ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", ""),
            ("UPDATE_COMPLETE", ""),
        ]

        assert tracker.wait("app", UPDATE) == "UPDATE_COMPLETE"

        messages = [r.getMessage() for r in caplog.records]
        assert messages.count("Stack app is updating") == 1

    def test_create_rolled_back(self, tracker, cf_client) -> None:
        """Test that a rolled back create fails with its reason."""
        cf_client.describe_stack_status.side_effect = [
            ("CREATE_IN_PROGRESS", ""),
            ("ROLLBACK_IN_PROGRESS", "Bucket already exists"),
            ("ROLLBACK_COMPLETE", "Bucket already exists"),
        ]

        with pytest.raises(StackOperationError) as exc_info:
            tracker.wait("app", CREATE)

        assert exc_info.value.status == "ROLLBACK_COMPLETE"
        assert "Bucket already exists" in str(exc_info.value)

    def test_update_rolled_back(self, tracker, cf_client) -> None:
        """Test that an update rollback is a failure."""
        cf_client.describe_stack_status.side_effect = [
            ("UPDATE_IN_PROGRESS", ""),
            ("UPDATE_ROLLBACK_COMPLETE", "Invalid instance type"),
        ]

        with pytest.raises(StackOperationError) as exc_info:
            tracker.wait("app", UPDATE)

        assert exc_info.value.status == "UPDATE_ROLLBACK_COMPLETE"

    def test_update_cleanup_is_in_progress(self, tracker, cf_client) -> None:
        """Test that cleanup after an update keeps waiting."""
        cf_client.describe_stack_status.side_effect = [
            ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", ""),
            ("UPDATE_COMPLETE", ""),
        ]

        assert tracker.wait("app", UPDATE) == "UPDATE_COMPLETE"

    def test_delete_of_missing_stack_completes(self, tracker, cf_client) -> None:
        """Test that a stack that is gone counts as deleted."""
        cf_client.describe_stack_status.side_effect = [
            ("DELETE_IN_PROGRESS", ""),
            client_error("ValidationError", "Stack with id app does not exist"),
        ]

        assert tracker.wait("app", DELETE) == "DELETE_COMPLETE"

    def test_delete_after_rollback(self, tracker, cf_client) -> None:
        """Test that the status left by a failed create does not fail a delete."""
        cf_client.describe_stack_status.side_effect = [
            ("ROLLBACK_COMPLETE", ""),
            ("DELETE_IN_PROGRESS", ""),
            ("DELETE_COMPLETE", ""),
        ]

        assert tracker.wait("app", DELETE) == "DELETE_COMPLETE"

    def test_delete_failed(self, tracker, cf_client) -> None:
        """Test a failed delete."""
        cf_client.describe_stack_status.return_value = ("DELETE_FAILED", "Bucket not empty")

        with pytest.raises(StackOperationError):
            tracker.wait("app", DELETE)

    def test_missing_stack_fails_outside_delete(self, tracker, cf_client) -> None:
        """Test that a missing stack is fatal while tracking a create."""
        cf_client.describe_stack_status.side_effect = client_error(
            "ValidationError", "Stack with id app does not exist"
        )

        with pytest.raises(RemoteAPIError) as exc_info:
            tracker.wait("app", CREATE)

        assert "does not exist" in str(exc_info.value)
