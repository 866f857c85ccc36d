"""
Identity resolution of raw link tokens.

A token is first looked up through the MediaWiki search API. When the API has
no answer (or the token is too long for it) the site's search page is fetched
and the canonical page is read from the page configuration embedded in it.
"""
from __future__ import annotations
import asyncio
import json
import logging
from typing import Optional
from urllib.parse import quote

from .config import CrawlConfig, WikiConfig
from .errors import FatalResolutionError
from .fetch import Sleep, TransientDetector, marker_detector
from .models import Page
from .parse import extract_page_metadata

logger = logging.getLogger(__name__)

# Longest search string the API accepts for our query
API_MAX_SEARCH_LENGTH = 98


def api_search_term(token: str) -> str:
    # '*' is a wildcard for CirrusSearch
    return token.replace("*", "\\*")


def api_search_length(token: str) -> int:
    """Length of the search term once escaped for the API query string."""
    return len(api_search_term(token).replace("&", "%26"))


class IdentityResolver:
    def __init__(self, client, wiki: WikiConfig, crawl: CrawlConfig,
                 sleep: Sleep = asyncio.sleep, is_transient: Optional[TransientDetector] = None):
        self.client = client
        self.wiki = wiki
        self.crawl = crawl
        self.sleep = sleep
        self.is_transient = is_transient or marker_detector(wiki.transient_marker)

    def api_url(self, token: str) -> str:
        return (
            f"{self.wiki.api_url}?action=query&format=json&list=search&utf8=1&formatversion=2"
            f"&srnamespace=0&srlimit=1&srsearch={quote(api_search_term(token), safe='')}"
        )

    def search_page_url(self, token: str) -> str:
        return f"{self.wiki.base_url}/wiki/{quote(self.wiki.search_page)}/{quote(token, safe='')}"

    async def resolve(self, token: str) -> Page:
        """Map a raw link token to its canonical page."""
        if api_search_length(token) > API_MAX_SEARCH_LENGTH:
            return await self.resolve_web(token)
        return await self.resolve_api(token)

    async def resolve_api(self, token: str) -> Page:
        url = self.api_url(token)
        max_retries = self.crawl.api_max_retries

        for attempt in range(max_retries + 1):
            body = await self.client.get_text(url)
            try:
                data = json.loads(body)
            except ValueError:
                data = None

            if not isinstance(data, dict):
                logger.warning("link info api of link %s throwed wikimedia error", token)
                if attempt == max_retries:
                    break
                await self.sleep(self.crawl.retry_cooldown)
                continue

            search = (data.get("query") or {}).get("search")
            if data.get("batchcomplete") is not True or not search:
                logger.warning("API can't find %r, trying the search page", token)
                return await self.resolve_web(token)

            first = search[0] if isinstance(search, list) else None
            if not isinstance(first, dict) or "title" not in first or "pageid" not in first:
                raise FatalResolutionError(token, "api", body)
            return Page(id=int(first["pageid"]), title=first["title"])

        logger.warning("API kept failing for %r after %d retries, trying the search page", token, max_retries)
        return await self.resolve_web(token)

    async def resolve_web(self, token: str) -> Page:
        url = self.search_page_url(token)
        while True:
            body = await self.client.get_text(url)
            if self.is_transient(body):
                logger.warning("search page of link %s throwed wikimedia error", token)
                await self.sleep(self.crawl.retry_cooldown)
                continue

            page = extract_page_metadata(body)
            if page is None:
                raise FatalResolutionError(token, "search page", body)
            return page
