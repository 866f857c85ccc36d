from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config import CrawlConfig, WikiConfig
from .errors import BuggedPageError
from .models import Page, RawLink
from .parse import extract_wiki_links

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
TransientDetector = Callable[[str], bool]


def marker_detector(marker: str) -> TransientDetector:
    """Treat empty bodies and bodies carrying *marker* as transient upstream failures."""
    def is_transient(body: str) -> bool:
        return not body or marker in body
    return is_transient


class PageExplorer:
    """Fetches one page by id and extracts its outbound article links."""

    def __init__(self, client, wiki: WikiConfig, crawl: CrawlConfig,
                 sleep: Sleep = asyncio.sleep, is_transient: Optional[TransientDetector] = None):
        self.client = client
        self.wiki = wiki
        self.crawl = crawl
        self.sleep = sleep
        self.is_transient = is_transient or marker_detector(wiki.transient_marker)

    def page_url(self, page_id: int) -> str:
        return f"{self.wiki.base_url}/?curid={page_id}"

    async def fetch_document(self, page: Page) -> str:
        """Fetch the page, retrying transient upstream errors until they clear.

        The cooldown grows linearly with each retry of this call.
        """
        url = self.page_url(page.id)
        retries = 0
        while True:
            body = await self.client.get_text(url)
            if not self.is_transient(body):
                return body
            cooldown = self.crawl.retry_cooldown + retries * self.crawl.retry_increment
            logger.warning("exploring %s throwed wikimedia error, retrying in %.1fs", page, cooldown)
            retries += 1
            await self.sleep(cooldown)

    async def explore(self, page: Page) -> List[RawLink]:
        """Return the page's (link, display) pairs; raise BuggedPageError when there are none."""
        body = await self.fetch_document(page)
        links = extract_wiki_links(body, self.wiki.namespaces)
        if not links:
            logger.warning('No links found in Page { id: %s, title: "%s" }', page.id, page.title)
            raise BuggedPageError(page)
        return links
