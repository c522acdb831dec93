"""Table rendering and per-project totals for command output."""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from typing import Iterable, Sequence

from .clock import Clock
from .models import Activity, format_duration

TIME_FMT = "%H:%M"
DATE_FMT = "%Y-%m-%d"

DAY_COLUMNS = ("id", "name", "project", "tags", "state", "start", "end", "duration")
ALL_COLUMNS = ("date",) + DAY_COLUMNS
STATUS_COLUMNS = ("id", "name", "project", "tags", "state", "duration")


class ActivityTable:
    """Render activities as an aligned text table."""

    def __init__(
        self,
        activities: Sequence[Activity],
        clock: Clock,
        columns: Sequence[str] = DAY_COLUMNS,
        totals: bool = True,
    ) -> None:
        self.activities = list(activities)
        self.clock = clock
        self.columns = tuple(columns)
        self.totals = totals

    def cells(self, activity: Activity) -> list[str]:
        start = self.clock.local(activity.start)
        end = self.clock.local(activity.end) if activity.end is not None else None
        values = {
            "date": start.strftime(DATE_FMT),
            "id": str(activity.id),
            "name": activity.name,
            "project": activity.project,
            "tags": activity.tag_list(),
            "state": activity.status(),
            "start": start.strftime(TIME_FMT),
            "end": end.strftime(TIME_FMT) if end else "",
            "duration": format_duration(activity.duration(self.clock)),
        }
        return [values[column] for column in self.columns]

    def render(self) -> str:
        lines = render_rows([list(self.columns)] + [self.cells(a) for a in self.activities])
        if self.totals:
            lines.append(format_totals(aggregate_by_project(self.activities, self.clock)))
        return "\n".join(lines)

    __str__ = render


def render_rows(rows: Sequence[Sequence[str]]) -> list[str]:
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    return [
        "| " + " | ".join(cell.ljust(width) for cell, width in zip(row, widths)) + " |"
        for row in rows
    ]


def aggregate_by_project(
    activities: Iterable[Activity], clock: Clock
) -> list[tuple[str, timedelta]]:
    """Sum durations per project; named projects sorted first, unsorted last."""
    totals: defaultdict[str, timedelta] = defaultdict(timedelta)
    for activity in activities:
        totals[activity.project] += activity.duration(clock)
    return sorted(totals.items(), key=lambda item: (item[0] == "", item[0]))


def format_totals(totals: Iterable[tuple[str, timedelta]]) -> str:
    return ", ".join(
        f"{project or 'unsorted'}: {format_duration(duration)}" for project, duration in totals
    )
