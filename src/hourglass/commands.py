"""Activity commands built on top of a storage backend.

Each command returns the text to show the user. Bad arguments raise
:class:`CommandSyntaxError`; storage failures propagate unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from itertools import groupby
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .clock import Clock
from .errors import CommandSyntaxError
from .models import Activity
from .reporting import ALL_COLUMNS, STATUS_COLUMNS, ActivityTable
from .storage import Storage

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M"
DATE_WITH_ZONE_FORMAT = "%Y-%m-%d %H:%M %z"

LIST_MODES = ("day", "week", "all")


class ActivityEdit(BaseModel):
    """A change to one or more fields of a stored activity."""

    name: Optional[str] = None
    project: Optional[str] = None
    tags: Optional[list[str]] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("name is required")
        return value

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        if any("," in tag for tag in value):
            raise ValueError("tags cannot contain commas")
        return [tag.strip() for tag in value if tag.strip()]

    def apply(self, activity: Activity) -> None:
        for field in self.model_fields_set:
            setattr(activity, field, getattr(self, field))


def validate_edit(data: dict[str, object]) -> ActivityEdit:
    try:
        return ActivityEdit.model_validate(data)
    except ValidationError as exc:
        error = exc.errors()[0]
        if error["type"] == "extra_forbidden":
            raise CommandSyntaxError("invalid field name") from None
        raise CommandSyntaxError(str(error["msg"]).removeprefix("Value error, ")) from None


def parse_edit_date(text: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM`` as local time, or with an explicit offset."""
    try:
        return datetime.strptime(text, DATE_FORMAT).astimezone()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, DATE_WITH_ZONE_FORMAT)
    except ValueError:
        raise CommandSyntaxError("invalid date") from None


def parse_id(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise CommandSyntaxError("invalid id argument") from None


def start(
    clock: Clock, db: Storage, name: str, project: str = "", tags: Sequence[str] = ()
) -> str:
    if not name.strip():
        raise CommandSyntaxError("missing name argument")
    checked = validate_edit({"tags": list(tags)})
    activity = Activity(name=name, project=project, tags=checked.tags or [], start=clock.now())
    db.save_activity(activity)
    logger.debug("Started activity %d", activity.id)
    return f"started activity {activity.id}"


def stop(clock: Clock, db: Storage) -> str:
    end = clock.now()
    lines = []
    for activity in db.find_running_activities():
        activity.end = end
        db.save_activity(activity)
        lines.append(f"stopped activity {activity.id}")
    return "\n".join(lines) or "there are no running activities"


def restart(clock: Clock, db: Storage, activity_id: int) -> str:
    activity = db.find_activity(activity_id).clone()
    activity.id = 0
    activity.start = clock.now()
    activity.end = None
    db.save_activity(activity)
    return f"restarted activity {activity_id} (new id: {activity.id})"


def edit(clock: Clock, db: Storage, activity_id: int, field: str, values: Sequence[str]) -> str:
    value: object
    if field == "tags":
        value = list(values)
    elif field in ("start", "end"):
        if not values:
            raise CommandSyntaxError("date is required")
        value = parse_edit_date(" ".join(values))
    else:
        value = " ".join(values)

    changes = validate_edit({field: value})

    activity = db.find_activity(activity_id)
    changes.apply(activity)
    db.save_activity(activity)
    return "ok"


def delete(clock: Clock, db: Storage, activity_id: int) -> str:
    db.delete_activity(activity_id)
    return f"deleted activity {activity_id}"


def list_activities(clock: Clock, db: Storage, mode: str = "day") -> str:
    if mode not in LIST_MODES:
        raise CommandSyntaxError(f"invalid list mode {mode!r}")
    now = clock.now()

    if mode == "all":
        activities = sorted(db.find_all_activities(), key=lambda a: a.id)
        if not activities:
            return "there aren't any activities"
        return ActivityTable(activities, clock, ALL_COLUMNS, totals=False).render()

    if mode == "day":
        lower = _midnight(now)
        activities = _sorted_by_start(db.find_activities_between(lower, lower + timedelta(days=1)))
        if not activities:
            return "there have been no activities today"
        return ActivityTable(activities, clock).render()

    lower = _midnight(now) - timedelta(days=(now.weekday() + 1) % 7)
    activities = _sorted_by_start(db.find_activities_between(lower, lower + timedelta(days=7)))
    if not activities:
        return "there have been no activities this week"
    sections = []
    for day, group in groupby(activities, key=lambda a: clock.local(a.start).date()):
        heading = f"=== {day.strftime('%A')} ({day.isoformat()}) ==="
        sections.append(heading + "\n" + ActivityTable(list(group), clock).render())
    return "\n\n".join(sections)


def status(clock: Clock, db: Storage) -> str:
    lower = _midnight(clock.now())
    activities = _sorted_by_start(db.find_activities_between(lower, lower + timedelta(days=1)))
    if not activities:
        return "there have been no activities today"
    return ActivityTable(activities, clock, STATUS_COLUMNS).render()


def _midnight(value: datetime) -> datetime:
    return datetime.combine(value.date(), time(), tzinfo=value.tzinfo)


def _sorted_by_start(activities: Sequence[Activity]) -> list[Activity]:
    return sorted(activities, key=lambda a: (a.start, a.id))
