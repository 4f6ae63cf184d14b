"""
Shared fixtures for Visit Tracker tests.
"""

import contextlib
import datetime
import os
import tempfile

import pytest


class FakeClock:
    """Deterministic replacement for utc_now()."""

    def __init__(self, start: datetime.datetime):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def temp_db():
    """Create temporary test database with full schema."""
    from visit_tracker.database import VisitStorage

    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    try:
        VisitStorage(path, timeout=5.0).init_db()
        yield path
    finally:
        # WAL mode leaves -wal and -shm companions next to the database file
        for suffix in ("", "-wal", "-shm"):
            with contextlib.suppress(FileNotFoundError):
                os.unlink(path + suffix)


@pytest.fixture
def storage(temp_db):
    from visit_tracker.database import VisitStorage

    return VisitStorage(temp_db, timeout=5.0)


@pytest.fixture
def fixed_clock():
    return FakeClock(datetime.datetime(2024, 1, 15, 12, 0, 0))


@pytest.fixture
def recorder(storage, fixed_clock):
    from visit_tracker.visit_recorder import VisitRecorder

    return VisitRecorder(storage, clock=fixed_clock)


@pytest.fixture
def aggregator(storage):
    from visit_tracker.analytics_engine import AnalyticsAggregator

    return AnalyticsAggregator(storage)


@pytest.fixture
def add_visit(storage):
    """Insert a visit directly, with an explicit timestamp."""
    from visit_tracker.url_parser import parse_url

    def _add(ip_address: str, url: str, created_at: datetime.datetime = datetime.datetime(2024, 1, 15, 12, 0, 0)):
        parsed = parse_url(url).unwrap()
        storage.append_visit(ip_address, parsed.url, parsed.domain, parsed.path, created_at)

    return _add


@pytest.fixture
def sample_visits(add_visit):
    """
    A small mixed dataset:
      example.com/page1   3 visits from 2 IPs (Jan 10, Jan 15, Jan 20)
      example.com/page2   1 visit (Jan 15)
      blog.example.com/   2 visits from 2 IPs (Jan 5, Feb 1)
    """
    add_visit("192.168.1.1", "https://example.com/page1", datetime.datetime(2024, 1, 10, 9, 0, 0))
    add_visit("192.168.1.2", "https://example.com/page1", datetime.datetime(2024, 1, 15, 10, 0, 0))
    add_visit("192.168.1.1", "https://example.com/page1", datetime.datetime(2024, 1, 20, 11, 0, 0))
    add_visit("10.0.0.1", "https://example.com/page2", datetime.datetime(2024, 1, 15, 12, 0, 0))
    add_visit("10.0.0.1", "https://blog.example.com/", datetime.datetime(2024, 1, 5, 8, 0, 0))
    add_visit("10.0.0.2", "https://blog.example.com", datetime.datetime(2024, 2, 1, 8, 0, 0))
