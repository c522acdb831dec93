"""Time source used by the command layer."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...

    def local(self, value: datetime) -> datetime: ...

    def since(self, value: datetime) -> timedelta: ...


class SystemClock:
    """Wall clock returning timezone-aware local times."""

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def local(self, value: datetime) -> datetime:
        return value.astimezone()

    def since(self, value: datetime) -> timedelta:
        return self.now() - value

