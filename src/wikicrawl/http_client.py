"""
HTTP clients for talking to the wiki, with HTTP/2 and Brotli support.

Both clients expose ``get_text(url)``. Transport failures are reported as an
empty body so callers treat them like any other transient upstream response.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Dict, Optional

import aiohttp
import httpx

from .config import HttpConfig

logger = logging.getLogger(__name__)


def _get_compression_headers() -> Dict[str, str]:
    """Get headers for compression support."""
    return {
        "Accept-Encoding": "gzip, deflate, br",  # br = Brotli, decoded by the client when brotli is installed
        "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
    }


def _build_headers(cfg: HttpConfig) -> Dict[str, str]:
    return {
        "User-Agent": cfg.user_agent,
        **_get_compression_headers(),
    }


class HttpxClient:
    """Shared ``httpx.AsyncClient`` for every request of a crawl."""

    def __init__(self, cfg: HttpConfig):
        self.cfg = cfg
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            http2=self.cfg.enable_http2,
            timeout=httpx.Timeout(self.cfg.timeout),
            headers=_build_headers(self.cfg),
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_text(self, url: str) -> str:
        if self._client is None:
            raise RuntimeError("Client not started")
        try:
            response = await self._client.get(url)
            return response.text
        except httpx.HTTPError as e:
            logger.warning("Error fetching %s: %s", url, e)
            return ""

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class AiohttpClient:
    """HTTP/1.1 fallback client on ``aiohttp``."""

    def __init__(self, cfg: HttpConfig):
        self.cfg = cfg
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._session = aiohttp.ClientSession(
            headers=_build_headers(self.cfg),
            timeout=aiohttp.ClientTimeout(total=self.cfg.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get_text(self, url: str) -> str:
        if self._session is None:
            raise RuntimeError("Client not started")
        try:
            async with self._session.get(url, allow_redirects=True) as resp:
                return await resp.text(errors="ignore")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Error fetching %s: %s", url, e)
            return ""

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None


def create_client(cfg: HttpConfig):
    """Return the client selected by ``cfg.http_backend``; use it as an async context manager."""
    if cfg.http_backend == "aiohttp":
        return AiohttpClient(cfg)
    if cfg.http_backend == "httpx":
        return HttpxClient(cfg)
    raise ValueError(f"Unsupported HTTP backend: {cfg.http_backend}")
