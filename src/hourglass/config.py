"""Configuration models and helpers for hourglass."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .paths import store_path


@dataclass(slots=True)
class Settings:
    """Which store to open and how."""

    backend: str = "sql"
    path: Path = Path("hourglass.db")
    log_statements: bool = False

    @classmethod
    def from_options(
        cls,
        backend: Optional[str] = None,
        path: Optional[Path] = None,
        log_statements: bool = False,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        env = os.environ if environ is None else environ
        backend = backend or env.get("HOURGLASS_BACKEND") or "sql"
        return cls(backend=backend, path=store_path(backend, path, env), log_statements=log_statements)
