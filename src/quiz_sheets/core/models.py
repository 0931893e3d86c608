"""Value types shared by the fetch, cache and data-source layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

Record = Dict[str, str]

IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass(frozen=True)
class RawDocument:
    """Unparsed sheet text together with the URL it came from."""

    text: str
    source: str


@dataclass(frozen=True)
class LoadState:
    """Snapshot of a data source as seen by subscribers.

    ``records`` holds the parsed (and category-filtered) rows. ``error`` keeps
    the raw failure text so callers can classify it with
    :func:`quiz_sheets.core.errors.describe_error`.
    """

    records: List[Record] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    is_from_cache: bool = False
    status: str = IDLE

    @classmethod
    def idle(cls) -> "LoadState":
        return cls(status=IDLE)

    @classmethod
    def loading(cls) -> "LoadState":
        return cls(is_loading=True, status=LOADING)

    @classmethod
    def ready(cls, records: List[Record], *, from_cache: bool = False) -> "LoadState":
        return cls(records=list(records), is_from_cache=from_cache, status=READY)

    @classmethod
    def failed(cls, message: str) -> "LoadState":
        return cls(error=message, status=ERROR)


__all__ = [
    "Record",
    "RawDocument",
    "LoadState",
    "IDLE",
    "LOADING",
    "READY",
    "ERROR",
]
