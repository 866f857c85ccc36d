import pytest
import os
import sys
from typing import Dict, List, Union

# Add src to python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.wikicrawl.config import CrawlConfig, WikiConfig
from src.wikicrawl.context import CrawlContext
from src.wikicrawl.database import DatabaseConfig


class FakeClient:
    """Stands in for the HTTP clients: serves canned bodies by URL.

    A list of bodies is served in order, the last one repeating.
    """

    def __init__(self, responses: Dict[str, Union[str, List[str]]] = None):
        self.responses = responses or {}
        self.requests: List[str] = []

    async def get_text(self, url: str) -> str:
        self.requests.append(url)
        body = self.responses.get(url, "")
        if isinstance(body, list):
            served = self.requests.count(url)
            return body[min(served, len(body)) - 1]
        return body


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


def article_html(page_id: int, title: str, links=()) -> str:
    """A minimal mobile article: the page configuration script plus anchors."""
    anchors = "".join(f'<a href="/wiki/{href}">{text}</a>' for href, text in links)
    return (
        "<html><head><script>"
        f'RLCONF={{"wgPageName":"{title.replace(" ", "_")}","wgTitle":"{title}",'
        f'"wgArticleId":{page_id},"wgNamespaceNumber":0}};'
        "</script></head>"
        f"<body><div id=\"content\">{anchors}</div></body></html>"
    )


@pytest.fixture
def wiki_config():
    return WikiConfig(host="fr.m.wikipedia.org")


@pytest.fixture
def crawl_config(tmp_path):
    return CrawlConfig(
        batch_size=10,
        resolver_concurrency=4,
        retry_cooldown=3.0,
        retry_increment=1.0,
        api_max_retries=2,
        crash_retry_delay=10.0,
        circuit_breaker_threshold=2,
        path_chunk_size=2,
        log_dir=str(tmp_path / "logs"),
        show_progress=False,
    )


@pytest.fixture
def ctx():
    return CrawlContext(show_progress=False)


@pytest.fixture
def db_config(tmp_path):
    return DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "wikicrawl.db"))


@pytest.fixture
def sleep():
    return SleepRecorder()


class FakeResolver:
    """Resolves link tokens from a dict; a mapped exception is raised instead."""

    def __init__(self, pages: Dict[str, object]):
        self.pages = pages
        self.calls: List[str] = []

    async def resolve(self, token: str):
        self.calls.append(token)
        outcome = self.pages[token]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeExplorer:
    """Explores pages from a dict of page id -> links; a mapped exception is raised instead."""

    def __init__(self, links: Dict[int, object]):
        self.links = links
        self.explored: List[int] = []

    async def explore(self, page):
        self.explored.append(page.id)
        outcome = self.links[page.id]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
