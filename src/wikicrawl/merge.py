"""
Graph merge of one explored batch.

Resolved links are reconciled against the alias table, the pages they point to
are split into rediscovered and genuinely new ones, and pages, aliases and
edges are written before the batch is marked explored. Every insert ignores
conflicts, so merging the same batch again after a crash yields the same graph.
"""
from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .config import CrawlConfig
from .context import CrawlContext
from .database import DatabaseConnection
from .db_operations import (
    existing_page_ids,
    insert_aliases,
    insert_links,
    insert_pages,
    mark_explored,
    pages_by_alias,
)
from .log import println_and_log
from .models import ExploreResult, Page
from .pools import resolve_links


@dataclass
class MergeStats:
    explored: int = 0
    new_pages: int = 0
    new_aliases: int = 0
    new_links: int = 0


def build_edges(results: List[ExploreResult], pages: Dict[str, Page]) -> Dict[Tuple[int, int], Optional[str]]:
    """Join each explored page's links against resolved pages.

    Edges are keyed on (linker, linked); when several links of one page reach
    the same page, the display text of the first one is kept.
    """
    edges: Dict[Tuple[int, int], Optional[str]] = {}
    for result in results:
        for link, display in result.links:
            linked = pages.get(link)
            if linked is None:
                continue
            edges.setdefault((result.page.id, linked.id), display)
    return edges


async def merge_batch(conn: DatabaseConnection, results: List[ExploreResult], resolver,
                      cfg: CrawlConfig, ctx: CrawlContext) -> MergeStats:
    stats = MergeStats(explored=len(results))

    found_links = {link for result in results for link, _ in result.links}
    println_and_log(f"found {len(found_links)} links")

    if found_links:
        now = time.monotonic()
        known = await pages_by_alias(conn, found_links)
        println_and_log(f"found {len(known)} old pages ({int((time.monotonic() - now) * 1000)}ms)")

        now = time.monotonic()
        unresolved = sorted(link for link in found_links if link not in known)
        found_pages = await resolve_links(unresolved, resolver, cfg.resolver_concurrency, ctx)
        # id 0: the search did not land on an article
        found_pages = {link: page for link, page in found_pages.items() if page.id != 0}
        println_and_log(f"found {len(found_pages)} pages ({int((time.monotonic() - now) * 1000)}ms)")

        existing = await existing_page_ids(conn, (page.id for page in found_pages.values()))
        found_again = {link: page for link, page in found_pages.items() if page.id in existing}
        new_pages = {link: page for link, page in found_pages.items() if page.id not in existing}
        known.update(found_again)

        unique_new_pages: Dict[int, Page] = {}
        for page in new_pages.values():
            unique_new_pages.setdefault(page.id, page)
        println_and_log(f"found {len(unique_new_pages)} new pages")
        println_and_log(f"found again {len(found_again)} old pages")

        if unique_new_pages:
            await insert_pages(conn, unique_new_pages.values())
            println_and_log(f"inserted {len(unique_new_pages)} new pages")

        aliases = [(link, page.id) for link, page in found_pages.items()]
        if aliases:
            await insert_aliases(conn, aliases)
            println_and_log(f"inserted {len(aliases)} aliases")

        known.update(new_pages)
        edges = build_edges(results, known)
        println_and_log(f"generated {len(edges)} relations")
        if edges:
            await insert_links(conn, [(linker, linked, display) for (linker, linked), display in edges.items()])
            println_and_log(f"inserted {len(edges)} relations")

        stats.new_pages = len(unique_new_pages)
        stats.new_aliases = len(aliases)
        stats.new_links = len(edges)

    if results:
        await mark_explored(conn, [result.page.id for result in results])
        println_and_log(f"explored {len(results)} pages")

    return stats
