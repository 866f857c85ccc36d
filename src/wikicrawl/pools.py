"""
Concurrent worker pools of a crawl cycle.

The explorer pool runs one task per page of the batch. The resolver pool runs a
fixed number of workers that pull link tokens from a shared queue until it is
empty, so slow lookups never hold back a static share of the work.
"""
from __future__ import annotations
import asyncio
import logging
import time
from typing import Dict, Iterable, List, Tuple

from .context import CrawlContext
from .errors import BuggedPageError
from .models import ExploreResult, Page

logger = logging.getLogger(__name__)


async def explore_pages(pages: List[Page], explorer, ctx: CrawlContext) -> Tuple[List[ExploreResult], List[Page]]:
    """Explore every page concurrently. Returns (results, bugged pages).

    A failure while exploring one page marks that page bugged and never
    aborts the batch.
    """
    total = len(pages)
    done = 0

    async def _task(page: Page):
        nonlocal done
        try:
            links = await explorer.explore(page)
            outcome = ExploreResult(page=page, links=links)
        except BuggedPageError:
            outcome = page
        except Exception as e:
            logger.warning("exploring %s failed: %s: %s", page, type(e).__name__, e)
            outcome = page
        done += 1
        ctx.progress(f"explored {done}/{total} pages ({100 * done // max(total, 1)}%)")
        return outcome

    outcomes = await asyncio.gather(*(_task(page) for page in pages))

    results: List[ExploreResult] = []
    bugged: List[Page] = []
    for outcome in outcomes:
        if isinstance(outcome, ExploreResult):
            results.append(outcome)
        else:
            bugged.append(outcome)
    return results, bugged


async def resolve_links(links: Iterable[str], resolver, concurrency: int, ctx: CrawlContext) -> Dict[str, Page]:
    """Resolve every link token with at most *concurrency* lookups in flight.

    If one lookup raises, the remaining workers are cancelled and the error
    propagates to the caller.
    """
    queue: asyncio.Queue = asyncio.Queue()
    for link in links:
        queue.put_nowait(link)

    total = queue.qsize()
    resolved: Dict[str, Page] = {}
    started = time.monotonic()

    async def _worker():
        while True:
            try:
                link = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            resolved[link] = await resolver.resolve(link)
            left = total - len(resolved)
            ctx.progress(f"{left} pages left to find ({int((time.monotonic() - started) * 1000)}ms)")

    workers = [asyncio.create_task(_worker()) for _ in range(max(1, min(concurrency, total)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise
    return resolved
