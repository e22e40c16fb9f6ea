"""Configuration loading for the news crawler."""

import logging
import os
import re
from typing import Any, Optional
from urllib.parse import urlparse

import soupsieve
import yaml

from newscrawler.errors import ConfigError
from newscrawler.models import (
    AppConfig,
    CrawlerConfig,
    CrawlFilters,
    DatabaseConfig,
    Selectors,
    SiteConfig,
)
from newscrawler.storage.database import SUPPORTED_DRIVERS

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = "config/config.yaml"

_REQUIRED_SELECTORS = ("title", "content", "date")
_OPTIONAL_SELECTORS = ("description", "author", "thumbnail")


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config YAML. Falls back to CONFIG_PATH env var,
                     then to config/config.yaml.

    Returns:
        Validated configuration.

    Raises:
        ConfigError: If the file can't be read or parsed, or if it describes
            an invalid site or database.
    """
    path = config_path or os.environ.get("CONFIG_PATH", _DEFAULT_CONFIG_PATH)
    logger.info("Loading config from %s", path)

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Couldn't read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Couldn't parse config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    # Environment variable overrides
    if os.environ.get("DATABASE_DRIVER"):
        raw.setdefault("database", {})["driver"] = os.environ["DATABASE_DRIVER"]
    if os.environ.get("DATABASE_CONNECTION_DATA"):
        raw.setdefault("database", {})["connection_data"] = os.environ["DATABASE_CONNECTION_DATA"]

    config = AppConfig(
        crawler=_parse_crawler(raw.get("crawler") or {}),
        database=_parse_database(raw.get("database") or {}),
        websites=[_parse_website(entry) for entry in raw.get("websites") or []],
    )

    identifiers = [site.identifier for site in config.websites]
    duplicates = sorted({i for i in identifiers if identifiers.count(i) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate website identifiers: {', '.join(duplicates)}")

    logger.info("Loaded %d websites", len(config.websites))
    return config


def _parse_crawler(raw: dict[str, Any]) -> CrawlerConfig:
    defaults = CrawlerConfig()
    return CrawlerConfig(
        user_agent=raw.get("user_agent") or defaults.user_agent,
        robot_agent=raw.get("robot_agent") or defaults.robot_agent,
        crawl_delay=_seconds(raw.get("crawl_delay", defaults.crawl_delay), "crawler.crawl_delay"),
        request_timeout=_seconds(raw.get("request_timeout", defaults.request_timeout), "crawler.request_timeout"),
    )


def _parse_database(raw: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    config = DatabaseConfig(
        driver=raw.get("driver", defaults.driver),
        connection_data=raw.get("connection_data", defaults.connection_data),
    )
    if config.driver not in SUPPORTED_DRIVERS:
        raise ConfigError(f"Unsupported database driver {config.driver!r}")
    return config


def _parse_website(raw: dict[str, Any]) -> SiteConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"Website entries must be mappings, got {raw!r}")
    identifier = raw.get("identifier")
    if not identifier:
        raise ConfigError(f"Website entry without an identifier: {raw}")

    start_url = raw.get("start_point") or ""
    parsed = urlparse(start_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Start point for {identifier} isn't a valid http(s) URL: {start_url!r}")

    raw_selectors = raw.get("selectors") or {}
    missing = [name for name in _REQUIRED_SELECTORS if not raw_selectors.get(name)]
    if missing:
        raise ConfigError(f"Missing selectors for {identifier}: {', '.join(missing)}")
    selectors = Selectors(
        **{name: raw_selectors[name] for name in _REQUIRED_SELECTORS},
        **{name: raw_selectors.get(name) or None for name in _OPTIONAL_SELECTORS},
    )
    for name in _REQUIRED_SELECTORS + _OPTIONAL_SELECTORS:
        selector = getattr(selectors, name)
        if selector is None:
            continue
        try:
            soupsieve.compile(selector)
        except soupsieve.SelectorSyntaxError as e:
            raise ConfigError(f"Invalid {name} selector for {identifier}: {e}") from e

    date_format = raw.get("date_format")
    if not date_format:
        raise ConfigError(f"Missing date_format for {identifier}")

    max_visits = raw.get("max_visits") or 0
    if not isinstance(max_visits, int) or max_visits < 0:
        raise ConfigError(f"max_visits for {identifier} must be a positive integer")

    crawl_delay = raw.get("crawl_delay")
    raw_filters = raw.get("filters") or {}

    return SiteConfig(
        identifier=identifier,
        start_url=start_url,
        selectors=selectors,
        date_format=date_format,
        max_visits=max_visits,
        ignore_query=bool(raw.get("ignore_query", False)),
        filters=CrawlFilters(
            restrict=_compile_filter(raw_filters.get("restrict"), identifier, "restrict"),
            exclude=_compile_filter(raw_filters.get("exclude"), identifier, "exclude"),
        ),
        crawl_delay=None if crawl_delay is None else _seconds(crawl_delay, f"{identifier}.crawl_delay"),
    )


def _compile_filter(pattern: Optional[str], identifier: str, name: str) -> Optional[re.Pattern]:
    # Filters are optional, an empty pattern means no filter.
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"Invalid {name} filter for {identifier}: {e}") from e


def _seconds(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"{name} must be a positive number of seconds, got {value!r}")
    return float(value)
