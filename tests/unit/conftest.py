"""
Unit Test Fixtures
"""

import pytest

from fakes import InMemoryRedis, RecordingSleep
from relay.observability.metrics import RelayCounters


@pytest.fixture
def redis() -> InMemoryRedis:
    """Fresh in-memory Redis for one test"""
    return InMemoryRedis()


@pytest.fixture
def counters(redis: InMemoryRedis) -> RelayCounters:
    return RelayCounters(redis)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
