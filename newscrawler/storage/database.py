"""SQL article store for the news crawler.

Articles are keyed by URL. The crawler reads the URLs already stored for a
site before crawling it, and writes each article it extracts. Both SQLite
and PostgreSQL are supported through SQLAlchemy.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from sqlalchemy import DateTime, String, Text, bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from newscrawler.errors import ConfigError, StorageError
from newscrawler.models import ArticleRecord, DatabaseConfig
from newscrawler.storage.schema import (
    INSERT_ARTICLE,
    SELECT_ARTICLE_URLS_FOR_WEBSITE,
    SELECT_LATEST_ARTICLES_FOR_WEBSITE,
    TABLE_SCHEMAS,
)

logger = logging.getLogger(__name__)

# Configured driver name -> SQLAlchemy URL prefix
_DRIVERS = {
    "sqlite3": "sqlite:///",
    "postgres": "postgresql+pg8000://",
}

SUPPORTED_DRIVERS = frozenset(_DRIVERS)

_INSERT_ARTICLE = text(INSERT_ARTICLE).bindparams(bindparam("date", type_=DateTime()))
_SELECT_LATEST_ARTICLES = text(SELECT_LATEST_ARTICLES_FOR_WEBSITE).columns(
    url=String,
    title=Text,
    description=Text,
    content=Text,
    author=Text,
    date=DateTime,
)


def _naive_utc(date: datetime) -> datetime:
    """Dates with an offset are stored as naive UTC."""
    if date.tzinfo is None:
        return date
    return date.astimezone(timezone.utc).replace(tzinfo=None)


def database_url(config: DatabaseConfig) -> str:
    """Build the SQLAlchemy URL for a database configuration."""
    try:
        prefix = _DRIVERS[config.driver]
    except KeyError:
        raise ConfigError(f"Unsupported database driver {config.driver!r}") from None
    return prefix + config.connection_data


class ArticleStore:
    """Reads and writes articles in an SQL database."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "ArticleStore":
        """Open the configured database and create the tables if needed."""
        store = cls(create_engine(database_url(config)))
        store.ensure_tables_exist()
        logger.info("Opened %s database", config.driver)
        return store

    def ensure_tables_exist(self) -> None:
        """Create the articles table and its index if they don't exist."""
        try:
            with self.engine.begin() as conn:
                for statement in TABLE_SCHEMAS:
                    conn.execute(text(statement))
        except SQLAlchemyError as e:
            raise StorageError(f"Couldn't create tables: {e}") from e

    def save_article(self, article: ArticleRecord) -> None:
        """Insert an article.

        Raises:
            StorageError: If the URL isn't http(s), if an article with the
                same URL is already stored, or if the insertion failed.
        """
        scheme = urlparse(article.url).scheme
        if scheme not in ("http", "https"):
            raise StorageError(f"Unsupported protocol scheme for provided URL: {scheme!r}")

        params = {
            "website": article.site,
            "url": article.url,
            "title": article.title,
            "description": article.description,
            "content": article.content,
            "author": article.author,
            "date": _naive_utc(article.date),
        }
        try:
            with self.engine.begin() as conn:
                conn.execute(_INSERT_ARTICLE, params)
        except IntegrityError as e:
            raise StorageError(f"Article {article.url} is already stored") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Couldn't save article {article.url}: {e}") from e
        logger.debug("Saved article %s for %s", article.url, article.site)

    def list_article_urls(self, site: str) -> set[str]:
        """URLs of all the articles stored for a site."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(SELECT_ARTICLE_URLS_FOR_WEBSITE), {"website": site})
                return {row.url for row in rows}
        except SQLAlchemyError as e:
            raise StorageError(f"Couldn't list articles for {site}: {e}") from e

    def latest_articles(self, site: str, limit: int) -> list[ArticleRecord]:
        """The most recent articles of a site, newest first."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _SELECT_LATEST_ARTICLES, {"website": site, "limit": limit},
                ).fetchall()
        except SQLAlchemyError as e:
            raise StorageError(f"Couldn't read articles for {site}: {e}") from e
        return [_row_to_article(site, row._mapping) for row in rows]

    def close(self) -> None:
        self.engine.dispose()


def _row_to_article(site: str, row: Any) -> ArticleRecord:
    return ArticleRecord(
        site=site,
        url=row["url"],
        title=row["title"],
        content=row["content"],
        date=row["date"],
        description=row["description"],
        author=row["author"],
    )
