"""Configuration management for the YAML config file."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .paths import get_data_dir

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

# Published-to-web CSV export of a Google Sheet
SHEET_URL_PATTERN = re.compile(
    r"^https://docs\.google\.com/spreadsheets/d/(e/)?[\w-]+/pub\?output=csv"
)

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for quiz-sheets
sources:
  math:
    name: "Math questions"
    url: "https://docs.google.com/spreadsheets/d/e/2PACX-1vQr3nlml1JTPMR4ROfCKarFSayMFxYyOwZO-v_A0INlG1oMloM5wm0wltURipcy0A/pub?output=csv"
    enabled: true
  english:
    name: "English questions"
    url: "https://docs.google.com/spreadsheets/d/e/2PACX-1vRses_Y74IwZ6nFvmwMygKruq0HgQZZmOEYSdf3sE0pInXXByyU0uSf8KPY8Z6Giw/pub?output=csv"
    enabled: true

cache:
  path: "sheet_cache.db"
  ttl_seconds: 3600

fetch:
  max_attempts: 3
  base_delay: 1.0
  timeout: 15

defaults:
  difficulty: "None"
"""


class _ConfigLoader(yaml.SafeLoader):
    """Safe loader that keeps scalar mapping keys as written.

    Source names such as ``off`` or ``1`` stay strings instead of
    becoming booleans or integers.
    """

    def construct_mapping(self, node, deep=False):
        self.flatten_mapping(node)
        mapping = {}
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                key = key_node.value
            else:
                key = self.construct_object(key_node, deep=deep)
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


def is_published_sheet_url(url: str) -> bool:
    """Return True when *url* looks like a published Google Sheets CSV link."""
    return bool(url) and SHEET_URL_PATTERN.match(url.strip()) is not None


class ConfigManager:
    """Manages loading and validation of the YAML configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure a baseline config file exists."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self._ensure_default_config()

    def load_config(self) -> Dict[str, Any]:
        """Load the main configuration file."""
        if self._config is None:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.load(f, Loader=_ConfigLoader) or {}
                logger.info(f"Loaded configuration from {self.config_path}")
            except Exception as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                raise

        return self._config

    def _ensure_default_config(self) -> None:
        """Create the default configuration file if it is missing."""
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)
        if not config_file.exists():
            _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
            logger.info("Created default config.yaml at %s", config_file)

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level mapping section, or an empty dict."""
        section = self.load_config().get(name)
        return section if isinstance(section, dict) else {}

    def get_available_sources(self) -> List[str]:
        """Get the names of all configured sources."""
        return list(self.get_section('sources').keys())

    def get_enabled_sources(self) -> Dict[str, Dict[str, Any]]:
        """Get all enabled sources from the main configuration."""
        enabled = {}
        for name, source_config in self.get_section('sources').items():
            if (source_config or {}).get('enabled', True):
                enabled[name] = source_config
        return enabled

    def resolve_source(self, name_or_url: str) -> str:
        """Return the URL for a configured source name, or pass a URL through.

        Raises:
            ValueError: If *name_or_url* is neither a URL nor a known source.
        """
        if name_or_url.startswith(("http://", "https://")):
            return name_or_url
        sources = self.get_section('sources')
        if name_or_url not in sources:
            raise ValueError(
                f"Unknown source '{name_or_url}'. Available: {', '.join(str(name) for name in sources) or 'none'}"
            )
        url = (sources[name_or_url] or {}).get('url')
        if not url:
            raise ValueError(f"Source '{name_or_url}' has no url configured")
        return url

    def get_fetch_settings(self) -> Dict[str, Any]:
        """Return fetch settings merged over defaults."""
        fetch = self.get_section('fetch')
        return {
            'max_attempts': int(fetch.get('max_attempts', 3)),
            'base_delay': float(fetch.get('base_delay', 1.0)),
            'timeout': float(fetch.get('timeout', 15)),
        }

    def get_cache_settings(self) -> Dict[str, Any]:
        """Return cache settings merged over defaults."""
        cache = self.get_section('cache')
        return {
            'path': cache.get('path', 'sheet_cache.db'),
            'ttl_seconds': float(cache.get('ttl_seconds', 3600)),
        }

    def get_default(self, key: str, default: Any = None) -> Any:
        """Get value from the defaults section of config."""
        return self.get_section('defaults').get(key, default)

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()

            if 'sources' not in config:
                logger.error("Missing required section 'sources' in main config")
                return False
            if not isinstance(config['sources'], dict):
                logger.error("'sources' must be a mapping of source names to settings")
                return False

            for name, source_config in config['sources'].items():
                url = (source_config or {}).get('url')
                if not isinstance(url, str) or not url.strip():
                    logger.error(f"Source '{name}' url must be a non-empty string")
                    return False
                if not url.startswith(("http://", "https://")):
                    logger.error(f"Source '{name}' url must be an http(s) URL")
                    return False
                if not is_published_sheet_url(url):
                    logger.warning(
                        "Source '%s' is not a published Google Sheets CSV link "
                        "(File -> Share -> Publish to web -> CSV)",
                        name,
                    )

            fetch = config.get('fetch') or {}
            attempts = fetch.get('max_attempts', 3)
            if not isinstance(attempts, int) or attempts < 1:
                logger.error("'fetch.max_attempts' must be a positive integer")
                return False
            for key in ('base_delay', 'timeout'):
                value = fetch.get(key)
                if value is not None and (not isinstance(value, (int, float)) or value < 0):
                    logger.error(f"'fetch.{key}' must be a non-negative number")
                    return False

            ttl = (config.get('cache') or {}).get('ttl_seconds')
            if ttl is not None and (not isinstance(ttl, (int, float)) or ttl <= 0):
                logger.error("'cache.ttl_seconds' must be a positive number")
                return False

            logger.info("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_DIR",
    "is_published_sheet_url",
]
