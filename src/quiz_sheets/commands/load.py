"""
Load a question sheet through the cache and print or return its records.

Rules
-----

- ``source`` is a configured source name (``math``, ``english``) or a URL.
- A fresh cache entry is served first and refreshed in the background; the
  command waits for the refresh so the returned state is the newest one.
- ``game_type`` filters rows by their ``game_type`` column; ``difficulty``
  then keeps rows for that level (rows with no difficulty always stay).
  The configured ``defaults.difficulty`` applies when none is given; the
  value ``"None"`` means no difficulty filter.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..core.command_context import CommandContext
from ..core.http_client import FetchError
from ..core.models import ERROR, LoadState
from ..processors.question_filter import filter_by_difficulty
from ..processors.sheet_source import SheetDataSource

logger = logging.getLogger(__name__)


def run(
    config_path: Optional[str],
    source: str,
    *,
    game_type: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> LoadState:
    """Load *source* and return the final state.

    Raises:
        ValueError: If the configuration is invalid or the source is unknown
        FetchError: If the sheet could not be downloaded and nothing was cached
    """
    with CommandContext(config_path) as ctx:
        url = ctx.config_manager.resolve_source(source)
        if difficulty is None:
            difficulty = ctx.get_default('difficulty')
        if difficulty == 'None':
            difficulty = None

        with SheetDataSource(ctx.fetcher, ctx.cache) as data_source:
            data_source.reload(url, game_type)
            state = data_source.wait()

    if state.status == ERROR:
        raise FetchError(url, ctx.fetcher.max_attempts, RuntimeError(state.error))

    records = filter_by_difficulty(state.records, difficulty)
    logger.info(
        "Loaded %d record(s) from '%s' (game_type=%s, difficulty=%s, cached=%s)",
        len(records), source, game_type, difficulty, state.is_from_cache,
    )
    return replace(state, records=records)
