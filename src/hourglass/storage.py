"""Storage capability shared by the SQLite and CSV backends."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from .models import Activity

if TYPE_CHECKING:
    from .config import Settings


class Storage(Protocol):
    """Operations every activity store provides.

    ``save_activity`` inserts when ``activity.id`` is 0 and assigns the new
    id on the passed object; otherwise it overwrites the record with that id.
    ``find_activity`` and ``delete_activity`` raise
    :class:`~hourglass.errors.NotFoundError` for unknown ids.
    """

    def valid(self) -> bool: ...

    def version(self) -> int: ...

    def migrate(self) -> None: ...

    def save_activity(self, activity: Activity) -> None: ...

    def find_activity(self, activity_id: int) -> Activity: ...

    def find_all_activities(self) -> list[Activity]: ...

    def find_running_activities(self) -> list[Activity]: ...

    def find_activities_between(self, lower: datetime, upper: datetime) -> list[Activity]: ...

    def delete_activity(self, activity_id: int) -> None: ...


def open_storage(settings: "Settings") -> Storage:
    """Build the backend selected by ``settings``."""
    if settings.backend == "csv":
        from .csvfile import CsvStorage

        return CsvStorage(settings.path)

    from .sql import SqlStorage

    return SqlStorage(settings.path, log_statements=settings.log_statements)
