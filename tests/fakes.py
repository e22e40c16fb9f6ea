"""In-memory stand-ins for the network and the database."""

from typing import Callable, Optional

from newscrawler.errors import FetchError, StorageError
from newscrawler.models import ArticleRecord, FetchedPage, Selectors

SELECTORS = Selectors(title="h1.title", content="div.content", date="time.date")
DATE_LAYOUT = "{DAY_NUM} {MONTH_LONG} {YEAR_LONG}"


def article_html(title: str = "A title", date: str = "2 January 2006", links: tuple = ()) -> str:
    anchors = "".join(f'<a href="{link}">link</a>' for link in links)
    return (
        "<html><body>"
        f'<h1 class="title">{title}</h1>'
        f'<time class="date">{date}</time>'
        f'<div class="content"><p>Body of {title}</p></div>'
        f"<nav>{anchors}</nav>"
        "</body></html>"
    )


def listing_html(links: tuple = ()) -> str:
    anchors = "".join(f'<a href="{link}">link</a>' for link in links)
    return f"<html><body><ul>{anchors}</ul></body></html>"


class FakeFetcher:
    """Serves pages from a dict, or from a function of the URL.

    URLs in redirects are followed to their target, which is returned as the
    page's final URL.
    """

    def __init__(
        self,
        pages: Optional[dict[str, str]] = None,
        generate: Optional[Callable[[str], str]] = None,
        failing: tuple = (),
        redirects: Optional[dict[str, str]] = None,
    ):
        self.pages = pages or {}
        self.generate = generate
        self.failing = set(failing)
        self.redirects = redirects or {}
        self.requests: list[str] = []
        self.user_agents: list[str] = []

    async def fetch(self, url: str, user_agent: str) -> FetchedPage:
        self.requests.append(url)
        self.user_agents.append(user_agent)
        url = self.redirects.get(url, url)
        if url in self.failing:
            raise FetchError(f"Fetching {url} failed: connection refused")
        if url in self.pages:
            html = self.pages[url]
        elif self.generate is not None:
            html = self.generate(url)
        else:
            return FetchedPage(url=url, status_code=404, content_type="text/html", body=b"")
        return FetchedPage(
            url=url, status_code=200, content_type="text/html; charset=utf-8", body=html.encode(),
        )

    async def close(self) -> None:
        pass


class MemoryStore:
    """Article store keeping everything in a dict keyed by URL."""

    def __init__(self, known: Optional[dict[str, set[str]]] = None):
        self.known = known or {}
        self.saved: list[ArticleRecord] = []

    def list_article_urls(self, site: str) -> set[str]:
        return set(self.known.get(site, set()))

    def save_article(self, article: ArticleRecord) -> None:
        urls = self.known.setdefault(article.site, set())
        if article.url in urls:
            raise StorageError(f"Article {article.url} is already stored")
        urls.add(article.url)
        self.saved.append(article)
