"""SQLite storage backend for activities."""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence, Union

from .errors import CorruptRecordError, NotFoundError, StorageErrors
from .migration import migrate
from .models import Activity, parse_tag_list

logger = logging.getLogger(__name__)


DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

_COLUMNS = 'id, name, project, tags, start, "end"'

# Statements run by each schema step; step n upgrades version n to n + 1.
MIGRATIONS: tuple[tuple[str, ...], ...] = (
    (
        "CREATE TABLE IF NOT EXISTS schema_info (version INT)",
        "INSERT INTO schema_info (version) SELECT 0 WHERE NOT EXISTS (SELECT 1 FROM schema_info)",
    ),
    (
        """
        CREATE TABLE IF NOT EXISTS activities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT,
            project TEXT,
            tags TEXT,
            start TIMESTAMP,
            "end" TIMESTAMP
        )
        """,
    ),
)
SQL_VERSION = len(MIGRATIONS)


class SqlStorage:
    """Activity store backed by a SQLite database.

    Each operation opens its own connection and closes it before returning,
    so one instance can be shared between threads.
    """

    def __init__(
        self,
        database: Union[str, Path],
        *,
        connect: Callable[..., sqlite3.Connection] = sqlite3.connect,
        log_statements: bool = False,
    ) -> None:
        self.database = database
        self.log_statements = log_statements
        self._connect = connect

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect(
            self.database,
            isolation_level=None,
            uri=str(self.database).startswith("file:"),
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _execute(
        self, conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()
    ) -> sqlite3.Cursor:
        if self.log_statements:
            logger.debug("exec: %r with args: %r", " ".join(query.split()), tuple(params))
        return conn.execute(query, params)

    def valid(self) -> bool:
        """Check the database can be opened for writing without creating it."""
        database = str(self.database)
        if database.startswith("file:") or database == ":memory:":
            uri, use_uri = database, database.startswith("file:")
        else:
            path = Path(database)
            if not path.exists():
                return path.parent.is_dir() and os.access(path.parent, os.W_OK)
            uri, use_uri = path.resolve().as_uri() + "?mode=rw", True
        try:
            conn = self._connect(uri, isolation_level=None, uri=use_uri)
            try:
                conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.warning("Cannot open SQLite database %s", self.database, exc_info=True)
            return False
        return True

    def version(self) -> int:
        with self._connection() as conn:
            return self._read_version(conn)

    def _read_version(self, conn: sqlite3.Connection) -> int:
        exists = self._execute(
            conn,
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_info'",
        ).fetchone()
        if exists is None:
            return 0
        row = self._execute(conn, "SELECT version FROM schema_info").fetchone()
        return int(row["version"]) if row else 0

    def migrate(self) -> None:
        with self._connection() as conn:

            def run(statements: Sequence[str]) -> None:
                for statement in statements:
                    self._execute(conn, statement)

            def advance(version: int) -> None:
                self._execute(conn, "UPDATE schema_info SET version = ?", (version,))

            migrate(
                f"sqlite:{self.database}",
                self._read_version(conn),
                [partial(run, statements) for statements in MIGRATIONS],
                advance,
            )

    def save_activity(self, activity: Activity) -> None:
        params = (
            activity.name,
            activity.project,
            activity.tag_list(),
            to_db_time(activity.start),
            to_db_time(activity.end),
        )
        with self._connection() as conn:
            if activity.id == 0:
                cur = self._execute(
                    conn,
                    'INSERT INTO activities (name, project, tags, start, "end") '
                    "VALUES (?, ?, ?, ?, ?)",
                    params,
                )
                activity.id = int(cur.lastrowid)
                return

            cur = self._execute(
                conn,
                "UPDATE activities SET name = ?, project = ?, tags = ?, "
                'start = ?, "end" = ? WHERE id = ?',
                (*params, activity.id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(activity.id)

    def _find_activities(self, predicate: str = "", params: Sequence[Any] = ()) -> list[Activity]:
        with self._connection() as conn:
            rows = self._execute(
                conn,
                f"SELECT {_COLUMNS} FROM activities {predicate} ORDER BY id",
                params,
            ).fetchall()

        activities: list[Activity] = []
        errors: list[Exception] = []
        for row in rows:
            try:
                activities.append(_row_to_activity(row))
            except (TypeError, ValueError) as exc:
                errors.append(CorruptRecordError(f"activity {row['id']}: {exc}"))
        if errors:
            raise StorageErrors(errors)
        return activities

    def find_activity(self, activity_id: int) -> Activity:
        activities = self._find_activities("WHERE id = ?", (activity_id,))
        if not activities:
            raise NotFoundError(activity_id)
        return activities[0]

    def find_all_activities(self) -> list[Activity]:
        return self._find_activities()

    def find_running_activities(self) -> list[Activity]:
        return self._find_activities('WHERE "end" IS ?', (to_db_time(None),))

    def find_activities_between(self, lower: datetime, upper: datetime) -> list[Activity]:
        return self._find_activities(
            "WHERE start >= ? AND start < ?",
            (to_db_time(lower), to_db_time(upper)),
        )

    def delete_activity(self, activity_id: int) -> None:
        with self._connection() as conn:
            cur = self._execute(conn, "DELETE FROM activities WHERE id = ?", (activity_id,))
            if cur.rowcount != 1:
                raise NotFoundError(activity_id)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Normalize to UTC text; naive values are taken as local time."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime(DATETIME_FMT)


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.strptime(value, DATETIME_FMT).replace(tzinfo=timezone.utc).astimezone()


def _row_to_activity(row: sqlite3.Row) -> Activity:
    start = from_db_time(row["start"])
    if start is None:
        raise ValueError("missing start time")
    return Activity(
        id=int(row["id"]),
        name=row["name"] or "",
        project=row["project"] or "",
        tags=parse_tag_list(row["tags"]),
        start=start,
        end=from_db_time(row["end"]),
    )
