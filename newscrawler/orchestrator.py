"""Crawl orchestrator for the news crawler.

Runs one Frontier per configured website, all at the same time, and waits
for every one of them to stop:
1. Build a Frontier per site
2. Run them concurrently, draining their error events into the log
3. Log how each crawl ended
"""

import asyncio
import logging
from typing import Iterable, Optional

from newscrawler.crawler.fetcher import Fetcher, HttpFetcher
from newscrawler.crawler.frontier import ArticleSink, Frontier
from newscrawler.errors import ConfigError
from newscrawler.models import AppConfig, CrawlEvent, CrawlOutcome, SiteConfig

logger = logging.getLogger(__name__)


def select_sites(config: AppConfig, site_ids: Optional[Iterable[str]] = None) -> list[SiteConfig]:
    """Sites to crawl, optionally restricted to some identifiers.

    Raises:
        ConfigError: If an identifier doesn't match any configured site.
    """
    if not site_ids:
        return list(config.websites)
    by_id = {site.identifier: site for site in config.websites}
    unknown = [site_id for site_id in site_ids if site_id not in by_id]
    if unknown:
        raise ConfigError(f"Unknown websites: {', '.join(unknown)}")
    return [by_id[site_id] for site_id in site_ids]


async def _log_events(events: asyncio.Queue) -> int:
    """Log non-fatal crawl errors until a None sentinel is received."""
    count = 0
    while True:
        event: Optional[CrawlEvent] = await events.get()
        if event is None:
            return count
        count += 1
        logger.error("Site %s: %s", event.site, event.message)


async def _run_frontier(frontier: Frontier) -> CrawlOutcome:
    site_id = frontier.site.identifier
    try:
        outcome = await frontier.run()
    except Exception as e:
        logger.error("Crawler for %s failed: %s", site_id, e, exc_info=True)
        outcome = CrawlOutcome(
            site=site_id,
            stop_reason=f"Crawling failed: {e}",
            visits=frontier.visit_count,
            articles_saved=frontier.articles_saved,
        )

    if outcome.aborted:
        logger.warning(
            "Site %s: crawler stopped: %s (%d pages visited, %d articles saved)",
            site_id, outcome.stop_reason, outcome.visits, outcome.articles_saved,
        )
    else:
        logger.info(
            "Site %s: crawler stopped (%d pages visited, %d articles saved)",
            site_id, outcome.visits, outcome.articles_saved,
        )
    return outcome


async def run_crawlers(
    config: AppConfig,
    store: ArticleSink,
    fetcher: Optional[Fetcher] = None,
    site_ids: Optional[Iterable[str]] = None,
) -> list[CrawlOutcome]:
    """Crawl every configured site concurrently.

    Args:
        config: Application configuration.
        store: Article store shared by all the sites.
        fetcher: Page fetcher. An HttpFetcher is created (and closed) if
                 none is given.
        site_ids: Only crawl these sites.

    Returns:
        One outcome per crawled site, in configuration order.
    """
    sites = select_sites(config, site_ids)
    if not sites:
        logger.warning("No websites to crawl")
        return []

    own_fetcher = fetcher is None
    if own_fetcher:
        fetcher = HttpFetcher(timeout=config.crawler.request_timeout)

    events: asyncio.Queue = asyncio.Queue()
    frontiers = [Frontier(site, config.crawler, store, fetcher, events) for site in sites]
    logger.info("=== Crawling %d websites ===", len(frontiers))

    consumer = asyncio.create_task(_log_events(events))
    try:
        outcomes = await asyncio.gather(*(_run_frontier(f) for f in frontiers))
    finally:
        await events.put(None)
        errors = await consumer
        if own_fetcher:
            await fetcher.close()

    aborted = sum(1 for outcome in outcomes if outcome.aborted)
    logger.info(
        "=== Crawl complete: %d websites, %d aborted, %d articles saved, %d page errors ===",
        len(outcomes), aborted, sum(o.articles_saved for o in outcomes), errors,
    )
    return list(outcomes)
