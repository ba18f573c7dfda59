"""
Shared fixtures for rollbot-core tests.
"""

import pytest


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def key_hex():
    return "0123456789abcdef" * 4


@pytest.fixture
def other_key_hex():
    return "fedcba9876543210" * 4


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def recorded_events():
    """Bus plus the list of events it has seen."""
    from rollbot_core.otp import OtpEventBus

    bus = OtpEventBus()
    seen = []
    bus.subscribe(seen.append)
    return bus, seen
