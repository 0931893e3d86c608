"""
Command context for shared initialization across CLI commands.

Builds the config manager, the sheet cache and the resilient fetcher from the
configuration file so command modules only deal with their own logic.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .cache import SheetCache, SQLiteKeyValueStore
from .config import ConfigManager
from .http_client import ResilientFetcher
from .paths import resolve_data_file


logger = logging.getLogger(__name__)


class CommandContext:
    """Encapsulates shared initialization logic for CLI commands.

    Example:
        ```python
        with CommandContext(config_path) as ctx:
            url = ctx.config_manager.resolve_source("math")
            text = ctx.fetcher.fetch(url)
            ctx.cache.write(url, text)
        ```
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize command context with config, cache and fetcher.

        Args:
            config_path: Path to main config file (None = use default)

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ValueError("Invalid configuration. Run 'quiz-sheets status' for details.")

        self.config = self.config_manager.load_config()

        cache_cfg = self.config_manager.get_cache_settings()
        self.cache_path = str(resolve_data_file(cache_cfg['path'], ensure_parent=True))
        self.cache = SheetCache(
            SQLiteKeyValueStore(self.cache_path),
            ttl_ms=int(cache_cfg['ttl_seconds'] * 1000),
        )

        fetch_cfg = self.config_manager.get_fetch_settings()
        self.fetcher = ResilientFetcher(
            max_attempts=fetch_cfg['max_attempts'],
            base_delay=fetch_cfg['base_delay'],
            timeout=fetch_cfg['timeout'],
        )

        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    def get_default(self, key: str, default: Any = None) -> Any:
        """Get value from defaults section of config."""
        return self.config_manager.get_default(key, default)

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - closes the HTTP session."""
        self.close()
