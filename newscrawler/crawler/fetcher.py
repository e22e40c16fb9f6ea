"""HTTP page fetching with httpx.

Redirects are followed and the final URL is returned with the page, so that
relative links are resolved against where the page actually lives. There are
no retries: a transport failure is reported as a FetchError and ends the
site's crawl for this run.
"""

import logging
from typing import Optional, Protocol

import httpx

from newscrawler.errors import FetchError
from newscrawler.models import FetchedPage

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Anything able to retrieve a page for a site's crawler."""

    async def fetch(self, url: str, user_agent: str) -> FetchedPage:
        ...


class HttpFetcher:
    """Fetches pages over HTTP with a shared async client."""

    def __init__(
        self,
        timeout: float = 30.0,
        max_redirects: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 30.0)),
                follow_redirects=True,
                max_redirects=self.max_redirects,
                transport=self.transport,
            )
        return self._client

    async def fetch(self, url: str, user_agent: str) -> FetchedPage:
        """Fetch a page.

        Args:
            url: Absolute URL to fetch.
            user_agent: Value of the User-Agent header.

        Returns:
            The page, whatever its HTTP status.

        Raises:
            FetchError: If no response could be obtained.
        """
        try:
            response = await self.client.get(url, headers={"User-Agent": user_agent})
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise FetchError(f"Fetching {url} failed: {e!r}") from e

        logger.debug("GET %s -> %d (%s)", url, response.status_code, response.url)
        return FetchedPage(
            url=str(response.url),
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            body=response.content,
        )

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
