"""CLI entry point for the news crawler.

Usage:
    python -m newscrawler.main [--config path/to/config.yaml] [--site ID ...] [-v]
"""

import argparse
import asyncio
import logging
import sys

from newscrawler.config import load_config
from newscrawler.errors import ConfigError, StorageError
from newscrawler.orchestrator import run_crawlers, select_sites
from newscrawler.storage.database import ArticleStore


def main() -> None:
    """Parse arguments and crawl the configured websites."""
    parser = argparse.ArgumentParser(
        description="News crawler: extract articles from websites into a database",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration YAML (default: $CONFIG_PATH or config/config.yaml)",
    )
    parser.add_argument(
        "--site",
        action="append",
        dest="sites",
        metavar="ID",
        help="Only crawl the website with this identifier (repeatable)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("News crawler starting")

    try:
        config = load_config(args.config)
        select_sites(config, args.sites)
        store = ArticleStore.from_config(config.database)
    except (ConfigError, StorageError) as e:
        logger.error("Couldn't start: %s", e)
        sys.exit(1)

    try:
        asyncio.run(run_crawlers(config, store, site_ids=args.sites))
    except KeyboardInterrupt:
        logger.info("Crawl interrupted by user")
        sys.exit(130)
    finally:
        store.close()


if __name__ == "__main__":
    main()
