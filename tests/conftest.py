"""
Shared fixtures for cfstack tests.
"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from cloudformation.poller import Poller
from config import Settings


def client_error(code: str, message: str = "", operation: str = "DescribeStacks") -> ClientError:
    """Build a botocore ClientError with the given code and message."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeClock:
    """Clock that advances only when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def poller(clock):
    """Poller that never blocks."""
    return Poller(deadline=24 * 60 * 60, sleep=clock.sleep, clock=clock)


@pytest.fixture
def settings():
    return Settings(dispatch_interval=0)


@pytest.fixture
def cf_client():
    """Mocked StackClient."""
    client = Mock()
    client.region = "us-east-1"
    return client
