"""Exceptions raised by the news crawler."""


class CrawlerError(Exception):
    """Base class for all crawler errors."""


class ConfigError(CrawlerError):
    """The configuration file is missing, unreadable or invalid."""


class ExtractionError(CrawlerError):
    """A page looked like an article but one of its fields couldn't be read."""


class FetchError(CrawlerError):
    """A page couldn't be retrieved at all. Stops the site's crawl."""


class StorageError(CrawlerError):
    """An article couldn't be written to or read from the database."""
