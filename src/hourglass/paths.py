"""Where each storage backend keeps its file by default."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from platformdirs import user_data_path

APP_NAME = "hourglass"

STORE_FILENAMES = {
    "sql": "hourglass.db",
    "csv": "hourglass.csv",
}


def store_path(
    backend: str,
    explicit: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Resolve the store location for ``backend``.

    An explicit path wins, then ``HOURGLASS_PATH``, then the backend's file
    in the per-user data directory, which is created on demand.
    """
    if backend not in STORE_FILENAMES:
        expected = ", ".join(STORE_FILENAMES)
        raise ValueError(f"unknown backend {backend!r}; expected one of {expected}")
    if explicit is not None:
        return Path(explicit)
    env = os.environ if environ is None else environ
    if env.get("HOURGLASS_PATH"):
        return Path(env["HOURGLASS_PATH"]).expanduser()
    data_dir = user_data_path(APP_NAME, appauthor=False, roaming=True, ensure_exists=True)
    return data_dir / STORE_FILENAMES[backend]
