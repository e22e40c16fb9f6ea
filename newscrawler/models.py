"""Shared data models for the news crawler."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse


@dataclass
class Selectors:
    """CSS selectors locating the parts of an article in a page."""

    title: str
    content: str
    date: str
    description: Optional[str] = None
    author: Optional[str] = None
    thumbnail: Optional[str] = None


@dataclass
class CrawlFilters:
    """Patterns deciding which discovered links get queued."""

    restrict: Optional[re.Pattern] = None
    exclude: Optional[re.Pattern] = None


@dataclass
class SiteConfig:
    """A website to crawl and the rules to extract its articles."""

    identifier: str
    start_url: str
    selectors: Selectors
    date_format: str
    max_visits: int = 0
    ignore_query: bool = False
    filters: CrawlFilters = field(default_factory=CrawlFilters)
    crawl_delay: Optional[float] = None

    @property
    def domain(self) -> str:
        """Host of the start URL, lowercased, without www."""
        domain = urlparse(self.start_url).netloc.lower()
        if domain.startswith("www."):
            domain = domain[4:]
        return domain


@dataclass
class CrawlerConfig:
    """Settings shared by every site's crawler."""

    user_agent: str = "Mozilla/5.0 (compatible; newscrawler/1.0)"
    robot_agent: str = "newscrawler"
    crawl_delay: float = 0.0
    request_timeout: float = 30.0


@dataclass
class DatabaseConfig:
    """Where articles are stored."""

    driver: str = "sqlite3"
    connection_data: str = "articles.db"


@dataclass
class AppConfig:
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    websites: list[SiteConfig] = field(default_factory=list)


@dataclass
class ArticleRecord:
    """An article extracted from a page, ready to be persisted."""

    site: str
    url: str
    title: str
    content: str
    date: datetime
    description: Optional[str] = None
    author: Optional[str] = None


@dataclass
class FetchedPage:
    """Result from fetching a single page."""

    url: str
    status_code: int
    content_type: str
    body: bytes

    @property
    def is_html(self) -> bool:
        return not self.content_type or "html" in self.content_type.lower()


@dataclass
class CrawlEvent:
    """A non-fatal error reported by a site's crawler while it keeps running."""

    site: str
    message: str
    url: Optional[str] = None


@dataclass
class CrawlOutcome:
    """Terminal state of a site's crawl.

    An empty stop_reason means the crawl completed cleanly (queue exhausted
    or visit budget reached); anything else is the reason it was aborted.
    """

    site: str
    stop_reason: str = ""
    visits: int = 0
    articles_saved: int = 0

    @property
    def aborted(self) -> bool:
        return bool(self.stop_reason)
