"""Domain models for tracked activities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .clock import Clock


TAG_SEPARATOR = ", "


@dataclass(slots=True)
class Activity:
    """A named block of time, optionally grouped by project and tagged.

    ``id`` is 0 until the activity has been saved. ``end`` is ``None`` while
    the activity is still running.
    """

    name: str
    start: datetime
    project: str = ""
    tags: list[str] = field(default_factory=list)
    end: Optional[datetime] = None
    id: int = 0

    def is_running(self) -> bool:
        return self.end is None

    def status(self) -> str:
        return "running" if self.is_running() else "stopped"

    def duration(self, clock: Optional["Clock"] = None) -> timedelta:
        if self.end is None:
            if clock is not None:
                return clock.since(self.start)
            return datetime.now(self.start.tzinfo) - self.start
        return self.end - self.start

    def tag_list(self) -> str:
        return TAG_SEPARATOR.join(self.tags)

    def set_tag_list(self, value: str) -> None:
        self.tags = parse_tag_list(value)

    def clone(self) -> "Activity":
        return Activity(
            name=self.name,
            start=self.start,
            project=self.project,
            tags=list(self.tags),
            end=self.end,
            id=self.id,
        )


def parse_tag_list(value: Optional[str]) -> list[str]:
    """Split a serialized tag list; an empty string means no tags."""
    if not value:
        return []
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def format_duration(duration: timedelta) -> str:
    total_minutes = int(duration.total_seconds()) // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}h{minutes:02d}m"
