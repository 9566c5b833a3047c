"""Shared fixtures: a fresh database per test and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest

from company_classifier.database import Database
from company_classifier.models import Company


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def db(tmp_path):
    """Create a fresh database for each test."""
    database = Database(str(tmp_path / "test.db"))
    database.init_db()
    return database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def company(db):
    c = Company(name="Acme Corp", website="https://www.acme.com")
    c.id = db.create_company(c)
    return c
