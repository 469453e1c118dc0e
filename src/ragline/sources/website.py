"""Document source crawling websites listed in ``Website.json``."""

from __future__ import annotations

import asyncio
import io
import logging
import socket
from collections import deque
from collections.abc import AsyncIterator
from urllib.parse import urldefrag, urljoin

import httpx
from bs4 import BeautifulSoup

from ragline.config import settings
from ragline.documents.types import Html
from ragline.resilience import is_cancelled
from ragline.sources.base import DocumentInfo, DocumentSource
from ragline.sources.specs import PathProvider, WebSpec

logger = logging.getLogger(__name__)


def extract_links(html_document: str, page_url: str, base_url: str) -> list[str]:
    """Return absolute, fragment-free links on the page that start with *base_url*."""
    soup = BeautifulSoup(html_document, "html.parser")
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href, _ = urldefrag(urljoin(page_url, anchor["href"]))
        if href.startswith(base_url) and href not in links:
            links.append(href)
    return links


class WebsiteSource(DocumentSource):
    """Breadth-first crawler bounded to each configured seed URL.

    Parameters
    ----------
    path_provider:
        Supplies the :class:`~ragline.sources.specs.WebSpec` entries.
    client:
        HTTP client; one is created (and closed) per crawl when omitted.
    max_pages:
        Upper bound on pages fetched per seed URL.
    """

    description = "Web Site"
    config_file = "Website.json"

    def __init__(
        self,
        path_provider: PathProvider,
        *,
        client: httpx.AsyncClient | None = None,
        max_pages: int = settings.crawl_max_pages,
        timeout: float = settings.http_timeout_seconds,
        prefix: str | None = None,
    ) -> None:
        self._path_provider = path_provider
        self._client = client
        self._max_pages = max_pages
        self._timeout = timeout
        self._prefix = prefix or f"{socket.gethostname()}:Website"
        self._html = Html()

    @property
    def prefix(self) -> str:
        return self._prefix

    async def get_documents(self, cancel: asyncio.Event | None = None) -> AsyncIterator[DocumentInfo]:
        specs = self._path_provider.get_web_specs(self.config_file)
        if self._client is not None:
            async for page in self._crawl_all(self._client, specs, cancel):
                yield page
            return

        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            async for page in self._crawl_all(client, specs, cancel):
                yield page

    async def _crawl_all(
        self,
        client: httpx.AsyncClient,
        specs: list[WebSpec],
        cancel: asyncio.Event | None,
    ) -> AsyncIterator[DocumentInfo]:
        for spec in specs:
            if not spec.url:
                continue
            async for page in self._get_pages(client, spec.url, spec.description, cancel):
                yield page
            if is_cancelled(cancel):
                break

    async def _get_pages(
        self,
        client: httpx.AsyncClient,
        url: str,
        spec_description: str,
        cancel: asyncio.Event | None,
    ) -> AsyncIterator[DocumentInfo]:
        already_visited: set[str] = set()
        queue: deque[str] = deque([url])

        while queue and not is_cancelled(cancel) and len(already_visited) < self._max_pages:
            current_url = queue.popleft()
            if current_url in already_visited:
                continue
            already_visited.add(current_url)

            try:
                response = await client.get(current_url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("Unable to process URL: %s (%s)", current_url, exc)
                continue

            html_document = response.text
            if not html_document:
                continue

            yield DocumentInfo(
                source_prefix=self.prefix,
                content=io.BytesIO(html_document.encode("utf-8")),
                document_type=self._html,
                path=current_url,
                source_description=spec_description,
            )

            for link in extract_links(html_document, current_url, url):
                if link not in already_visited:
                    queue.append(link)
