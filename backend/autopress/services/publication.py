"""Fire-and-forget search engine pings after an article is published."""

import asyncio
import logging
from urllib.parse import quote

import httpx

from autopress.models import ArticleBase

logger = logging.getLogger(__name__)


class PublicationNotifier:
    """
    Pings each configured URL template with the new article's canonical URL.

    Templates use `{url}` as the placeholder, e.g.
    `https://www.bing.com/indexnow?url={url}&key=...`. Failures are logged
    and never reach the caller.
    """

    def __init__(
        self,
        ping_urls: list[str],
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.ping_urls = ping_urls
        self.http = http or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._tasks: set[asyncio.Task] = set()

    def notify(self, article: ArticleBase) -> None:
        if not self.ping_urls:
            return
        task = asyncio.create_task(self._ping_all(article.canonical_url))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _ping_all(self, canonical_url: str) -> None:
        for template in self.ping_urls:
            target = template.replace("{url}", quote(canonical_url, safe=""))
            try:
                response = await self.http.get(target)
                if response.status_code >= 400:
                    logger.warning("Ping %s returned %s", target, response.status_code)
            except httpx.HTTPError as e:
                logger.warning("Ping %s failed: %s", target, e)

    async def drain(self) -> None:
        """Wait for pending pings, used on shutdown."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.http.aclose()
