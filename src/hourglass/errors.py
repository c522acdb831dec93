"""Exceptions raised by hourglass storage and commands."""

from __future__ import annotations

from typing import Iterable


class HourglassError(Exception):
    """Base class for all hourglass errors."""


class NotFoundError(HourglassError):
    """No record has the requested id."""

    def __init__(self, activity_id: int) -> None:
        super().__init__(f"record not found: {activity_id}")
        self.activity_id = activity_id


class BadFrontMatterError(HourglassError):
    """The CSV store does not start with a valid front matter line."""

    def __init__(self, path: object, line: bytes) -> None:
        super().__init__(f"invalid front matter in {path}: {line[:60]!r}")
        self.path = path
        self.line = line


class CorruptRecordError(HourglassError):
    """A persisted record could not be decoded."""


class NotMigratedError(HourglassError):
    """A write was attempted before the store was migrated."""


class MigrationError(HourglassError):
    """A migration step failed; the store stays at ``version``."""

    def __init__(self, store: str, version: int, cause: BaseException) -> None:
        super().__init__(f"{store}: migration from version {version} failed: {cause}")
        self.store = store
        self.version = version


class StorageErrors(HourglassError):
    """Several per-record failures collected during one operation."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(error) for error in self.errors))

    def __len__(self) -> int:
        return len(self.errors)


class CommandSyntaxError(HourglassError):
    """A command was invoked with missing or malformed arguments."""

    def __str__(self) -> str:
        return f"syntax error: {self.args[0]}"
