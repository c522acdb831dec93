"""Shared fixtures: temporary stores for both backends and a frozen clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hourglass.csvfile import CsvStorage
from hourglass.sql import SqlStorage

TZ = timezone(timedelta(hours=2))


class FixedClock:
    """Clock frozen at a given instant."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def local(self, value: datetime) -> datetime:
        return value.astimezone(self.instant.tzinfo)

    def since(self, value: datetime) -> timedelta:
        return self.instant - value


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 5, 1, 9, 0, tzinfo=TZ)


@pytest.fixture
def clock() -> FixedClock:
    # Wednesday, noon
    return FixedClock(datetime(2024, 5, 1, 12, 0, tzinfo=TZ))


@pytest.fixture
def csv_store(tmp_path) -> CsvStorage:
    store = CsvStorage(tmp_path / "hourglass.csv")
    store.migrate()
    return store


@pytest.fixture
def sql_store(tmp_path) -> SqlStorage:
    store = SqlStorage(tmp_path / "hourglass.db")
    store.migrate()
    return store


@pytest.fixture(params=["sql", "csv"])
def store(request, tmp_path):
    if request.param == "csv":
        backend = CsvStorage(tmp_path / "hourglass.csv")
    else:
        backend = SqlStorage(tmp_path / "hourglass.db")
    backend.migrate()
    return backend


@pytest.fixture
def clock_at():
    return FixedClock
