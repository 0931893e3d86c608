"""Utilities for locating the runtime data directory."""

from __future__ import annotations

import os
from pathlib import Path

_ENV_VAR = "QUIZ_SHEETS_DATA_DIR"
_DEFAULT_DIRNAME = ".quiz_sheets"


def get_data_dir() -> Path:
    """Return the runtime data directory.

    ``QUIZ_SHEETS_DATA_DIR`` wins when set to a non-empty value (relative
    values resolve against the working directory); otherwise ~/.quiz_sheets.
    """
    override = (os.getenv(_ENV_VAR) or "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return (Path.home() / _DEFAULT_DIRNAME).resolve()


def resolve_data_file(path: str, ensure_parent: bool = False) -> Path:
    """Resolve a configured file path against the data directory.

    Absolute paths are used as-is; relative ones land under the data dir.
    """
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = get_data_dir() / candidate
    if ensure_parent:
        candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate


__all__ = [
    "get_data_dir",
    "resolve_data_file",
]
