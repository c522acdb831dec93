"""CSV flat-file storage backend for activities.

The file starts with a fixed-width front matter line holding the schema
version and the last assigned id::

    # version: 001, last-id: 0000000000000000042
    id,name,project,tags,start,end
    1,write report,work,"urgent, q3",2024-05-02T09:00:00.000000+02:00,...

Because the front matter never changes length it is rewritten in place.
Records are found by linear scan. A replacement record of a different
length is written with a relocate-write: the bytes after the old record are
read into memory, the new record is written at the old offset and the saved
tail is written after it. That sequence is not crash-atomic; a crash
between the two writes leaves a damaged tail.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Sequence, Union

from .errors import (
    BadFrontMatterError,
    CorruptRecordError,
    NotFoundError,
    NotMigratedError,
    StorageErrors,
)
from .migration import migrate
from .models import Activity, parse_tag_list

logger = logging.getLogger(__name__)


FRONT_MATTER_SIZE = 45
HEADER = ("id", "name", "project", "tags", "start", "end")
ZERO_TIMESTAMP = "0001-01-01T00:00:00Z"

_FRONT_MATTER_RE = re.compile(rb"# version: (\d{3}), last-id: (\d{19})\n")


class ReadWriteLock:
    """Lock allowing many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


@dataclass(slots=True)
class _Record:
    offset: int
    raw: bytes

    @property
    def end(self) -> int:
        return self.offset + len(self.raw)


class CsvStorage:
    """Activity store backed by a single CSV file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = ReadWriteLock()
        self._version = 0
        self._last_id = 0
        self._load()

    def _load(self) -> None:
        with self._lock.write():
            if not self.path.exists() or self.path.stat().st_size == 0:
                return
            with self.path.open("rb") as f:
                self._version, self._last_id = _read_front_matter(f, self.path)
                ids = (self._record_id(r) for r in _iter_records(f))
                highest = max((i for i in ids if i is not None), default=0)
            if highest > self._last_id:
                logger.warning(
                    "Front matter of %s records last id %d but the file contains id %d",
                    self.path,
                    self._last_id,
                    highest,
                )
                self._last_id = highest

    def valid(self) -> bool:
        if not self.path.exists():
            return self.path.parent.is_dir() and os.access(self.path.parent, os.W_OK)
        try:
            with self.path.open("r+b"):
                pass
        except OSError:
            logger.warning("Cannot open CSV store %s", self.path, exc_info=True)
            return False
        return True

    def version(self) -> int:
        with self._lock.read():
            return self._version

    def migrate(self) -> None:
        with self._lock.write():

            def advance(version: int) -> None:
                self._write_front_matter(version, self._last_id)
                self._version = version

            steps = [partial(step, self) for step in MIGRATIONS]
            migrate(f"csv:{self.path}", self._version, steps, advance)

    def save_activity(self, activity: Activity) -> None:
        with self._lock.write():
            self._require_migrated()
            if activity.id == 0:
                self._append(activity)
                return
            data = encode_activity(activity)
            with self.path.open("r+b") as f:
                record = self._locate(f, activity.id)
                _replace(f, record, data)

    def _append(self, activity: Activity) -> None:
        new_id = self._last_id + 1
        data = encode_activity(activity, new_id)
        with self.path.open("ab") as f:
            f.write(data)
        activity.id = new_id
        self._last_id = new_id
        self._write_front_matter(self._version, new_id)

    def find_activity(self, activity_id: int) -> Activity:
        with self._lock.read(), self.path.open("rb") as f:
            for record in _iter_records(f):
                if self._record_id(record) == activity_id:
                    return self._decode(record)
        raise NotFoundError(activity_id)

    def find_all_activities(self) -> list[Activity]:
        return self._scan(lambda activity: True)

    def find_running_activities(self) -> list[Activity]:
        return self._scan(Activity.is_running)

    def find_activities_between(self, lower: datetime, upper: datetime) -> list[Activity]:
        lower, upper = _aware(lower), _aware(upper)
        return self._scan(lambda activity: lower <= activity.start < upper)

    def delete_activity(self, activity_id: int) -> None:
        with self._lock.write():
            self._require_migrated()
            with self.path.open("r+b") as f:
                record = self._locate(f, activity_id)
                _replace(f, record, b"")

    def _scan(self, predicate: Callable[[Activity], bool]) -> list[Activity]:
        activities: list[Activity] = []
        errors: list[Exception] = []
        with self._lock.read(), self.path.open("rb") as f:
            for record in _iter_records(f):
                try:
                    activity = self._decode(record)
                except CorruptRecordError as exc:
                    errors.append(exc)
                    continue
                if predicate(activity):
                    activities.append(activity)
        if errors:
            raise StorageErrors(errors)
        return activities

    def _locate(self, f: BinaryIO, activity_id: int) -> _Record:
        for record in _iter_records(f):
            if self._record_id(record) == activity_id:
                return record
        raise NotFoundError(activity_id)

    def _record_id(self, record: _Record) -> Optional[int]:
        """Return the id of ``record``, or None when the line is unreadable."""
        try:
            return int(_decode_fields(record.raw)[0])
        except (ValueError, csv.Error) as exc:
            logger.warning("Skipping %s", self._corrupt(record, exc))
            return None

    def _decode(self, record: _Record) -> Activity:
        try:
            return decode_activity(record.raw)
        except (ValueError, csv.Error) as exc:
            raise self._corrupt(record, exc) from exc

    def _corrupt(self, record: _Record, exc: Exception) -> CorruptRecordError:
        return CorruptRecordError(f"{self.path}: bad record at byte {record.offset}: {exc}")

    def _write_front_matter(self, version: int, last_id: int) -> None:
        with self.path.open("r+b") as f:
            f.write(format_front_matter(version, last_id))

    def _require_migrated(self) -> None:
        if self._version < CSV_VERSION:
            raise NotMigratedError(f"{self.path} is at version {self._version}, run migrate first")


def _write_header(store: CsvStorage) -> None:
    with store.path.open("wb") as f:
        f.write(format_front_matter(0, 0))
        f.write(_encode_fields(HEADER))
    store._last_id = 0


MIGRATIONS: tuple[Callable[[CsvStorage], None], ...] = (_write_header,)
CSV_VERSION = len(MIGRATIONS)


def format_front_matter(version: int, last_id: int) -> bytes:
    return f"# version: {version:03d}, last-id: {last_id:019d}\n".encode("ascii")


def _read_front_matter(f: BinaryIO, path: Path) -> tuple[int, int]:
    line = f.read(FRONT_MATTER_SIZE)
    match = _FRONT_MATTER_RE.fullmatch(line)
    if match is None:
        raise BadFrontMatterError(path, line)
    return int(match.group(1)), int(match.group(2))


def _iter_records(f: BinaryIO) -> Iterator[_Record]:
    """Yield every data record after the front matter and header row.

    A record continues onto the next physical line while it has an odd
    number of quote characters, i.e. a quoted field contains a newline.
    """
    f.seek(FRONT_MATTER_SIZE)
    offset = FRONT_MATTER_SIZE
    header = True
    while True:
        raw = f.readline()
        if not raw:
            return
        while raw.count(b'"') % 2:
            more = f.readline()
            if not more:
                break
            raw += more
        if header:
            header = False
        else:
            yield _Record(offset, raw)
        offset += len(raw)


def _replace(f: BinaryIO, record: _Record, data: bytes) -> None:
    """Overwrite ``record`` with ``data``, shifting the tail when sizes differ."""
    if len(data) == len(record.raw):
        f.seek(record.offset)
        f.write(data)
        return

    f.seek(record.end)
    tail = f.read()
    f.seek(record.offset)
    f.write(data)
    f.write(tail)
    f.truncate()


def _encode_fields(fields: Sequence[object]) -> bytes:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(fields)
    return buf.getvalue().encode("utf-8")


def _decode_fields(raw: bytes) -> list[str]:
    rows = list(csv.reader(io.StringIO(raw.decode("utf-8"), newline="")))
    if len(rows) != 1 or len(rows[0]) != len(HEADER):
        raise ValueError(f"expected {len(HEADER)} fields")
    return rows[0]


def encode_activity(activity: Activity, activity_id: Optional[int] = None) -> bytes:
    return _encode_fields(
        (
            activity.id if activity_id is None else activity_id,
            activity.name,
            activity.project,
            activity.tag_list(),
            format_timestamp(activity.start),
            format_timestamp(activity.end),
        )
    )


def decode_activity(raw: bytes) -> Activity:
    activity_id, name, project, tags, start, end = _decode_fields(raw)
    started = parse_timestamp(start)
    if started is None:
        raise ValueError("missing start time")
    return Activity(
        id=int(activity_id),
        name=name,
        project=project,
        tags=parse_tag_list(tags),
        start=started,
        end=parse_timestamp(end),
    )


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ZERO_TIMESTAMP
    return _aware(value).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> Optional[datetime]:
    if value == ZERO_TIMESTAMP:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.astimezone()
