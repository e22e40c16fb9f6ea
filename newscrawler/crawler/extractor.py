"""Article detection and extraction from parsed pages.

A page is an article when the configured title and content selectors each
match exactly one element and the date selector matches at least one. Other
pages are skipped without error: this is how most crawled URLs get rejected.

The extracted content is sanitized before being stored:
- <aside> and <script> elements are removed
- relative link and image URLs are made absolute
"""

import logging
from typing import Callable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

from newscrawler.dates import parse_date
from newscrawler.errors import ExtractionError
from newscrawler.models import ArticleRecord, Selectors

logger = logging.getLogger(__name__)

# Characters trimmed around scraped text
_TRIM_CHARS = " \t\n"

# Elements removed from the content
_STRIPPED_TAGS = ["aside", "script"]

# Attributes holding URLs to make absolute, per tag
_URL_ATTRIBUTES = {"a": "href", "img": "src"}

ErrorReporter = Callable[[str], None]


def _own_text(element: Tag) -> str:
    """Text directly inside an element, excluding its children's text."""
    parts = [
        str(child) for child in element.children
        if isinstance(child, NavigableString) and not isinstance(child, Comment)
    ]
    return "".join(parts).strip(_TRIM_CHARS)


def _first_child(element: Tag):
    """First child that isn't whitespace-only text."""
    for child in element.children:
        if isinstance(child, NavigableString) and not child.strip():
            continue
        return child
    return None


def _author_text(element: Tag) -> str:
    """Author name, reading through a link wrapping it if there is one."""
    child = _first_child(element)
    if isinstance(child, Tag) and child.name == "a":
        return _own_text(child)
    return _own_text(element)


def _optional_text(soup: BeautifulSoup, selector: Optional[str], reader=_own_text) -> Optional[str]:
    """Text of the first match of an optional selector, None if unset or unmatched."""
    if not selector:
        return None
    matches = soup.select(selector)
    if not matches:
        return None
    return reader(matches[0]) or None


def make_urls_absolute(content: Tag, page_url: str, report: Optional[ErrorReporter] = None) -> int:
    """Rewrite link and image URLs inside an element against the page URL.

    A URL that can't be resolved is reported and left as is; the other URLs
    are still rewritten.

    Returns:
        Number of URLs that couldn't be rewritten.
    """
    failures = 0
    for tag_name, attribute in _URL_ATTRIBUTES.items():
        for tag in content.find_all(tag_name):
            target = tag.get(attribute)
            if target is None:
                continue
            try:
                tag[attribute] = urljoin(page_url, target.strip())
            except ValueError as e:
                failures += 1
                message = f"Couldn't make {attribute}={target!r} absolute on {page_url}: {e}"
                logger.debug(message)
                if report:
                    report(message)
    return failures


def sanitize_content(content: Tag, page_url: str, report: Optional[ErrorReporter] = None) -> None:
    """Remove unwanted elements from the content and make its URLs absolute."""
    for tag in content.find_all(_STRIPPED_TAGS):
        if not tag.decomposed:
            tag.decompose()
    make_urls_absolute(content, page_url, report)


def extract_article(
    soup: BeautifulSoup,
    page_url: str,
    site: str,
    selectors: Selectors,
    date_format: str,
    report: Optional[ErrorReporter] = None,
) -> Optional[ArticleRecord]:
    """Extract an article from a parsed page.

    The tree is modified in place (thumbnail moved, content sanitized).

    Args:
        soup: Parsed page.
        page_url: Absolute URL of the page, used to resolve relative URLs.
        site: Identifier of the site the page belongs to.
        selectors: CSS selectors for the site.
        date_format: Compiled strptime format for the site's dates.
        report: Called with a message for each non-fatal problem.

    Returns:
        The article, or None if the page isn't an article.

    Raises:
        ExtractionError: If the page is an article but a required field is
            empty or the date can't be parsed.
    """
    title_nodes = soup.select(selectors.title)
    content_nodes = soup.select(selectors.content)
    date_nodes = soup.select(selectors.date)

    # Some sites repeat the date element, only the first one is used.
    if len(title_nodes) != 1 or len(content_nodes) != 1 or not date_nodes:
        logger.debug(
            "Site %s: not an article (title=%d, content=%d, date=%d): %s",
            site, len(title_nodes), len(content_nodes), len(date_nodes), page_url,
        )
        return None

    content_node = content_nodes[0]

    description = _optional_text(soup, selectors.description)
    author = _optional_text(soup, selectors.author, reader=_author_text)

    if selectors.thumbnail:
        thumbnails = soup.select(selectors.thumbnail)
        if thumbnails and thumbnails[0].name == "img":
            content_node.insert(0, thumbnails[0].extract())

    sanitize_content(content_node, page_url, report)

    title = _own_text(title_nodes[0])
    if not title:
        raise ExtractionError(f"Empty title on {page_url}")

    content = content_node.decode_contents().strip(_TRIM_CHARS)
    if not content:
        raise ExtractionError(f"Empty content on {page_url}")

    date_text = _own_text(date_nodes[0])
    try:
        date = parse_date(date_text, date_format)
    except ValueError as e:
        raise ExtractionError(f"Couldn't parse date {date_text!r} on {page_url}: {e}") from e

    return ArticleRecord(
        site=site,
        url=page_url,
        title=title,
        content=content,
        date=date,
        description=description,
        author=author,
    )
