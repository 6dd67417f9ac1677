from datetime import datetime, timedelta, timezone

import pytest

from db.storage import MemoryStore, StorageError


class FixedClock:
    """Callable clock that tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_day(self, key: str):
        y, m, d = (int(p) for p in key.split("-"))
        self.now = datetime(y, m, d, 12, 0, tzinfo=timezone.utc)

    def advance(self, days: int = 1):
        self.now = self.now + timedelta(days=days)


class FailingWriteStore(MemoryStore):
    """Reads work, every write raises StorageError."""

    def set(self, key, value):
        raise StorageError("disk full")


class FlakyReadStore(MemoryStore):
    """The next `fail_reads` reads raise StorageError, then reads work again."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_reads = 0

    def get(self, key):
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise StorageError("connection reset")
        return super().get(key)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def failing_store():
    return FailingWriteStore()


@pytest.fixture
def flaky_store():
    return FlakyReadStore()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))
