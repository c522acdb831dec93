"""Stepwise schema migration shared by the storage backends."""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from .errors import MigrationError

logger = logging.getLogger(__name__)


def migrate(
    store: str,
    current: int,
    steps: Sequence[Callable[[], None]],
    advance: Callable[[int], None],
) -> int:
    """Upgrade a store from ``current`` to ``len(steps)``, one version at a time.

    ``steps[n]`` performs the structural change from version ``n`` to
    ``n + 1``; ``advance`` then persists the new version number. The loop
    stops at the first failure, leaving the persisted version at the last
    completed step, and raises :class:`MigrationError`.
    """
    target = len(steps)
    if current >= target:
        logger.debug("%s is up to date at version %d", store, current)
        return current

    version = current
    while version < target:
        logger.info("Migrating %s from version %d to %d", store, version, version + 1)
        try:
            steps[version]()
            advance(version + 1)
        except Exception as exc:
            raise MigrationError(store, version, exc) from exc
        version += 1
    return version
