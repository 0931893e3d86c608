"""Inspect or clear the local sheet cache."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.command_context import CommandContext


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return the cache location, TTL and one row per stored entry."""
    with CommandContext(config_path) as ctx:
        entries: List[Dict[str, Any]] = []
        for key, age_ms, size in ctx.cache.entries():
            entries.append({
                'key': key,
                'age_seconds': None if age_ms is None else age_ms / 1000.0,
                'expired': age_ms is None or age_ms >= ctx.cache.ttl_ms,
                'size': size,
            })
        return {
            'path': ctx.cache_path,
            'ttl_seconds': ctx.cache.ttl_ms / 1000.0,
            'entries': entries,
        }


def clear(config_path: Optional[str] = None) -> int:
    """Delete every cached sheet and return how many entries were removed."""
    with CommandContext(config_path) as ctx:
        return ctx.cache.clear()
