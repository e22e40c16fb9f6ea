"""Per-site crawl frontier.

Each configured site gets its own Frontier, which owns everything about the
site's crawl: the FIFO queue of URLs to visit, the set of URLs already
visited (seeded from the articles already stored, so re-runs don't fetch them
again), the link filters and the visit budget.

One page is fetched at a time, with the configured crawl delay between two
fetches. For each page:
- fetch it
- extract an article if it is one, and store it
- queue the same-site links that pass the filters

Problems with a single page are reported as CrawlEvents and the crawl goes
on. A page that can't be fetched at all aborts the crawl. A redirected page
counts as visited under both of its URLs.
"""

import asyncio
import dataclasses
import logging
from collections import deque
from typing import Optional, Protocol
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from newscrawler.crawler.extractor import extract_article
from newscrawler.crawler.fetcher import Fetcher
from newscrawler.dates import compile_layout
from newscrawler.errors import ExtractionError, FetchError, StorageError
from newscrawler.models import (
    ArticleRecord,
    CrawlEvent,
    CrawlerConfig,
    CrawlOutcome,
    FetchedPage,
    SiteConfig,
)

logger = logging.getLogger(__name__)

# Suffixes of links that point to files rather than pages
_FILE_SUFFIXES = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".mp3", ".mp4", ".webm", ".avi", ".mov", ".zip", ".gz", ".rar",
    ".css", ".js", ".woff", ".woff2", ".ttf",
    ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".epub",
)

READY = "ready"
RUNNING = "running"
COMPLETED = "completed"
ABORTED = "aborted"


class ArticleSink(Protocol):
    """Storage the frontier reads known URLs from and saves articles to."""

    def list_article_urls(self, site: str) -> set[str]:
        ...

    def save_article(self, article: ArticleRecord) -> None:
        ...


def normalize_url(url: str, ignore_query: bool = False) -> str:
    """Normalize a URL for deduplication.

    Lowercases scheme/host and removes the fragment. The query is removed
    too when ignore_query is set, so that ?page=1 and ?page=2 are the same.
    """
    parsed = urlparse(url.strip())
    normalized = urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or "/",
        parsed.params,
        "" if ignore_query else parsed.query,
        "",  # Remove fragment
    ))
    return normalized


def _site_host(netloc: str) -> str:
    host = netloc.lower()
    return host[4:] if host.startswith("www.") else host


def extract_links(soup: BeautifulSoup, page_url: str, site_domain: str) -> list[str]:
    """Absolute links from a page that stay on the site and point to pages.

    Anchors, javascript: links, other schemes, other hosts (www. aside) and
    links to files are left out. Links are returned in document order.
    """
    site_host = _site_host(site_domain)
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "javascript:")):
            continue
        try:
            link = urljoin(page_url, href)
            parsed = urlparse(link)
        except ValueError:
            logger.debug("Ignoring malformed link %r on %s", href, page_url)
            continue
        if parsed.scheme not in ("http", "https") or _site_host(parsed.netloc) != site_host:
            continue
        if parsed.path.lower().endswith(_FILE_SUFFIXES):
            continue
        links.append(link)
    return links


class Frontier:
    """Crawls a single site, from its start URL until there's nothing left to
    visit or its visit budget is spent."""

    def __init__(
        self,
        site: SiteConfig,
        crawler_config: CrawlerConfig,
        store: ArticleSink,
        fetcher: Fetcher,
        events: Optional[asyncio.Queue] = None,
    ):
        """Initialize the frontier.

        Args:
            site: Site to crawl.
            crawler_config: Settings shared by all sites.
            store: Where known URLs come from and articles go to.
            fetcher: Retrieves pages.
            events: Queue receiving a CrawlEvent for each non-fatal error.
        """
        self.site = site
        self.user_agent = crawler_config.user_agent
        self.robot_agent = crawler_config.robot_agent
        self.delay = site.crawl_delay if site.crawl_delay is not None else crawler_config.crawl_delay
        self.max_visits = site.max_visits
        self.store = store
        self.fetcher = fetcher
        self.events = events
        self.date_format = compile_layout(site.date_format)

        self.state = READY
        self.visited: set[str] = set()
        self.pending: deque[str] = deque()
        self._queued: set[str] = set()
        self.visit_count = 0
        self.articles_saved = 0

    # ── Queue management ───────────────────────────────────────────

    def normalize(self, url: str) -> str:
        return normalize_url(url, ignore_query=self.site.ignore_query)

    def accepts(self, url: str) -> bool:
        """Check a normalized URL against the visited set, queue and filters."""
        if url in self.visited or url in self._queued:
            return False
        filters = self.site.filters
        if filters.restrict is not None and not filters.restrict.search(url):
            return False
        if filters.exclude is not None and filters.exclude.search(url):
            return False
        return True

    def enqueue(self, url: str) -> bool:
        """Queue a discovered URL if it passes the filters.

        Returns:
            True if the URL was queued.
        """
        url = self.normalize(url)
        if not self.accepts(url):
            return False
        self.pending.append(url)
        self._queued.add(url)
        return True

    def seed(self) -> None:
        """Mark stored articles as visited and queue the start URL."""
        known = self.store.list_article_urls(self.site.identifier)
        self.visited.update(self.normalize(url) for url in known)
        logger.info(
            "Site %s: %d articles already stored", self.site.identifier, len(known),
        )

        start_url = self.normalize(self.site.start_url)
        if start_url not in self.visited and start_url not in self._queued:
            self.pending.append(start_url)
            self._queued.add(start_url)

    @property
    def budget_spent(self) -> bool:
        return self.max_visits > 0 and self.visit_count >= self.max_visits

    # ── Crawling ───────────────────────────────────────────────────

    async def report(self, message: str, url: Optional[str] = None) -> None:
        """Send a non-fatal error to whoever supervises the crawl."""
        event = CrawlEvent(site=self.site.identifier, message=message, url=url)
        if self.events is not None:
            await self.events.put(event)
        else:
            logger.error("Site %s: %s", self.site.identifier, message)

    async def step(self) -> bool:
        """Visit the next queued URL.

        Returns:
            False when there was nothing left to visit.

        Raises:
            FetchError: If the page couldn't be fetched.
        """
        while self.pending:
            url = self.pending.popleft()
            self._queued.discard(url)
            if url in self.visited:
                continue
            self.visited.add(url)
            await self._visit(url)
            return True
        return False

    async def _visit(self, url: str) -> None:
        # The delay separates two fetches, the first one isn't delayed.
        if self.visit_count > 0 and self.delay > 0:
            await asyncio.sleep(self.delay)

        page = await self.fetcher.fetch(url, self.user_agent)
        self.visit_count += 1
        logger.debug(
            "Site %s: visited [%d/%s] status=%d: %s",
            self.site.identifier, self.visit_count, self.max_visits or "-",
            page.status_code, url,
        )

        # A redirect target is deduplicated like any other URL, and its
        # articles are stored under it.
        final_url = self.normalize(page.url)
        if final_url != url:
            if final_url in self.visited:
                logger.debug(
                    "Site %s: %s redirects to already visited %s", self.site.identifier, url, final_url,
                )
                return
            self.visited.add(final_url)
            self._queued.discard(final_url)
            url = final_url

        if page.status_code >= 400:
            await self.report(f"HTTP {page.status_code} on {url}", url)
            return
        if not page.is_html:
            logger.debug("Site %s: skipping non-HTML page %s (%s)", self.site.identifier, url, page.content_type)
            return

        soup = BeautifulSoup(page.body, "lxml")
        # Links are read before extraction, which modifies the tree.
        links = extract_links(soup, page.url, self.site.domain)

        await self._process_article(soup, url, page)

        queued = sum(1 for link in links if self.enqueue(link))
        logger.debug(
            "Site %s: %d links found, %d queued on %s", self.site.identifier, len(links), queued, url,
        )

    async def _process_article(self, soup: BeautifulSoup, url: str, page: FetchedPage) -> None:
        problems: list[str] = []
        try:
            article = extract_article(
                soup, page.url, self.site.identifier, self.site.selectors,
                self.date_format, report=problems.append,
            )
        except ExtractionError as e:
            article = None
            problems.append(str(e))

        for problem in problems:
            await self.report(problem, url)

        if article is None:
            return
        if article.url != url:
            # Stored under its normalized URL, so that the next run's seeding
            # recognizes it.
            article = dataclasses.replace(article, url=url)

        logger.info("Site %s: saving article %r (%s)", self.site.identifier, article.title, article.date)
        try:
            # The store blocks, so it runs outside the event loop.
            await asyncio.to_thread(self.store.save_article, article)
        except StorageError as e:
            await self.report(f"Couldn't save article {url}: {e}", url)
            return
        self.articles_saved += 1

    async def run(self) -> CrawlOutcome:
        """Crawl the site until the queue is empty, the budget is spent or a
        page can't be fetched.

        Returns:
            The crawl's outcome, with an empty stop reason if it completed.
        """
        self.state = RUNNING
        logger.info(
            "Site %s: starting crawl at %s (max_visits=%s, delay=%.1fs, agent=%s)",
            self.site.identifier, self.site.start_url, self.max_visits or "unlimited",
            self.delay, self.robot_agent,
        )
        self.seed()

        stop_reason = ""
        try:
            while not self.budget_spent:
                if not await self.step():
                    break
        except FetchError as e:
            stop_reason = str(e)

        self.state = ABORTED if stop_reason else COMPLETED
        return CrawlOutcome(
            site=self.site.identifier,
            stop_reason=stop_reason,
            visits=self.visit_count,
            articles_saved=self.articles_saved,
        )
