import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from gatehouse.notifiers import MemoryNotifier
from gatehouse.service import AuthService
from gatehouse.storage import MemoryStorage


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def notifier():
    return MemoryNotifier()


@pytest.fixture
def service(storage, notifier, clock):
    auth = AuthService(storage, notifier, clock=clock)
    auth.restore()
    return auth
