"""
Shortest path search over the stored link graph.

The search is a breadth-first walk one layer at a time: every layer is a single
batch of edge queries, and the first edge reaching a page in a layer is the one
kept for it.
"""
from __future__ import annotations
import time
from typing import Dict, List, Optional, Tuple

from .config import CrawlConfig, WikiConfig
from .database import DatabaseConnection
from .db_operations import MAX_IN_PARAMS, chunked, find_pages_by_name, links_from, page_titles
from .errors import NoPathError, PageNotFoundError
from .log import println_and_log
from .models import Page
from .parse import page_name_from_input

# (page, display text of the link followed to reach it; None for the start page)
PathStep = Tuple[Page, Optional[str]]


async def shortest_path(conn: DatabaseConnection, start: Page, end: Page,
                        chunk_size: int = MAX_IN_PARAMS) -> List[PathStep]:
    if start.id == end.id:
        return [(start, None)]

    first_predecessor: Dict[int, Tuple[int, Optional[str]]] = {}
    frontier: List[int] = [start.id]
    depth = 0
    found = False

    while not found:
        depth += 1
        now = time.monotonic()
        next_frontier: List[int] = []
        for chunk in chunked(frontier, chunk_size):
            for linker, linked, display in await links_from(conn, chunk):
                if linked == start.id or linked in first_predecessor:
                    continue
                first_predecessor[linked] = (linker, display)
                next_frontier.append(linked)
            if end.id in first_predecessor:
                found = True
                break
        println_and_log(f"depth {depth}: {len(next_frontier)} new pages ({int((time.monotonic() - now) * 1000)}ms)")

        if not found and not next_frontier:
            raise NoPathError(start, end)
        frontier = next_frontier

    hops: List[Tuple[int, Optional[str]]] = []
    current = end.id
    while current != start.id:
        predecessor, display = first_predecessor[current]
        hops.append((current, display))
        current = predecessor
    hops.reverse()

    titles = await page_titles(conn, [page_id for page_id, _ in hops])
    path: List[PathStep] = [(start, None)]
    for page_id, display in hops:
        path.append((Page(id=page_id, title=titles.get(page_id, "")), display))
    return path


async def find_page(conn: DatabaseConnection, text: str, resolver=None,
                    wiki: Optional[WikiConfig] = None) -> Page:
    """Find the stored page for a title, a link token or a page URL.

    When storage knows no such page, *resolver* (if given) asks the wiki.
    """
    wiki = wiki or WikiConfig()
    name = page_name_from_input(text, wiki.search_page)
    if not name:
        raise PageNotFoundError(text)

    pages = await find_pages_by_name(conn, name)
    if pages:
        return pages[0]
    if resolver is None:
        raise PageNotFoundError(name)

    page = await resolver.resolve(name.replace(" ", "_"))
    if page.id == 0:
        raise PageNotFoundError(name)
    return page


def format_path(path: List[PathStep]) -> str:
    lines = []
    for page, display in path:
        lines.append(f'->  "{display or ""}" Page: {page}')
    return "\n".join(lines)


async def wikipath(conn: DatabaseConnection, start_text: str, end_text: str, resolver=None,
                   wiki: Optional[WikiConfig] = None, cfg: Optional[CrawlConfig] = None) -> List[PathStep]:
    """Look up both pages, search the path and print it."""
    cfg = cfg or CrawlConfig()
    start = await find_page(conn, start_text, resolver, wiki)
    end = await find_page(conn, end_text, resolver, wiki)
    println_and_log(f"Searching path from {start} to {end}")

    now = time.monotonic()
    path = await shortest_path(conn, start, end, cfg.path_chunk_size)
    println_and_log(f"Path found in {int((time.monotonic() - now) * 1000)}ms, {len(path) - 1} clicks")
    print(format_path(path))
    return path
