from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from .commands import cache as cache_cmd
from .commands import load as load_cmd
from .core.cache import MemoryKeyValueStore, SheetCache, SQLiteKeyValueStore, cache_key
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.csv_parser import parse_csv
from .core.errors import ErrorDetails, describe_error
from .core.http_client import FetchError, ResilientFetcher
from .core.models import LoadState, RawDocument, Record
from .processors.question_filter import QuestionPicker, filter_by_difficulty
from .processors.sheet_source import SheetDataSource

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'load',
    'load_state',
    'clear_cache',
    'cache_status',
    'status',
    'parse_csv',
    'cache_key',
    'describe_error',
    'filter_by_difficulty',
    'ErrorDetails',
    'FetchError',
    'LoadState',
    'MemoryKeyValueStore',
    'QuestionPicker',
    'RawDocument',
    'Record',
    'ResilientFetcher',
    'SQLiteKeyValueStore',
    'SheetCache',
    'SheetDataSource',
]


def load_state(
    source: str,
    *,
    game_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    config_path: Optional[str] = None,
) -> LoadState:
    """Load a sheet through the cache and return the final state.

    Args:
        source: Configured source name (e.g. ``"math"``) or a sheet URL.
        game_type: Optional ``game_type`` column filter.
        difficulty: Optional difficulty level; rows without a difficulty are kept.
        config_path: Path to main YAML config; defaults to the data-dir config.
    """
    cfg_path = config_path or _DEFAULT_CONFIG
    return load_cmd.run(cfg_path, source, game_type=game_type, difficulty=difficulty)


def load(
    source: str,
    *,
    game_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    config_path: Optional[str] = None,
) -> List[Record]:
    """Return the records of a sheet; see :func:`load_state`."""
    return load_state(
        source,
        game_type=game_type,
        difficulty=difficulty,
        config_path=config_path,
    ).records


def clear_cache(config_path: Optional[str] = None) -> int:
    """Delete every cached sheet and return the number of removed entries."""
    cfg_path = config_path or _DEFAULT_CONFIG
    return cache_cmd.clear(cfg_path)


def cache_status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Describe the cache file and its entries."""
    cfg_path = config_path or _DEFAULT_CONFIG
    return cache_cmd.status(cfg_path)


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration and environment status for programmatic use."""
    cfg_path = config_path or _DEFAULT_CONFIG
    info: Dict[str, Any] = {'config_path': cfg_path}
    if not os.path.exists(cfg_path):
        info.update({'valid': False, 'error': f'Config file not found: {cfg_path}'})
        return info
    try:
        cm = ConfigManager(cfg_path)
        valid = cm.validate_config()
        info.update({
            'valid': bool(valid),
            'sources': cm.get_available_sources(),
            'enabled_sources_count': len(cm.get_enabled_sources()) if valid else 0,
            'cache': cm.get_cache_settings(),
            'fetch': cm.get_fetch_settings(),
        })
        return info
    except Exception as e:
        info.update({'valid': False, 'error': str(e)})
        return info
