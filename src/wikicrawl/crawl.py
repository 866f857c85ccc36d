"""
The crawl loop and its supervisor.

One cycle selects a batch of unexplored pages, explores them, resolves every
link found and merges the result into storage. The supervisor repeats cycles
until the frontier is empty or a stop is requested, restarts after crashes and
halts once the same kind of error keeps coming back.
"""
from __future__ import annotations
import asyncio
import os
import signal
import time
from enum import Enum
from typing import Callable, Optional

from .circuit_breaker import CircuitBreakerRegistry
from .config import CrawlConfig, HttpConfig, WikiConfig, get_database_config
from .context import CrawlContext
from .database import DatabaseConfig, DatabaseConnection, create_connection
from .db_operations import crawl_counts, delete_links_from, frontier_next_batch, init_db, mark_bugged, seed_page
from .errors import StorageError, error_code
from .fetch import PageExplorer, Sleep
from .http_client import create_client
from .log import error_and_log, println_and_log, setup_logs, warn_and_log
from .merge import merge_batch
from .models import CycleReport, Page
from .pools import explore_pages
from .resolver import IdentityResolver


class CrawlState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CRASHED = "crashed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    HALTED = "halted"


def _ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def run_cycle(conn: DatabaseConnection, explorer, resolver, cfg: CrawlConfig,
                    ctx: CrawlContext) -> Optional[CycleReport]:
    """Run one crawl cycle. Returns None when no unexplored page is left."""
    started = time.monotonic()
    ctx.in_flight = []

    batch = await frontier_next_batch(conn, cfg.batch_size)
    if not batch:
        return None
    ctx.in_flight = batch
    println_and_log(f"Exploring pages: [{', '.join(str(page) for page in batch)}]")

    # links of a page explored by a crashed cycle are written again
    await delete_links_from(conn, [page.id for page in batch])

    now = time.monotonic()
    results, bugged = await explore_pages(batch, explorer, ctx)
    println_and_log(f"explored {len(results)} pages ({_ms(now)}ms)")

    if bugged:
        await mark_bugged(conn, [page.id for page in bugged])
        warn_and_log(f"bugged pages: [{', '.join(str(page) for page in bugged)}]")

    stats = await merge_batch(conn, results, resolver, cfg, ctx)

    report = CycleReport(
        batch=batch,
        explored=stats.explored,
        bugged=len(bugged),
        new_pages=stats.new_pages,
        new_aliases=stats.new_aliases,
        new_links=stats.new_links,
        elapsed=time.monotonic() - started,
    )
    ctx.counters.add(explored=report.explored, bugged=report.bugged,
                     pages=report.new_pages, links=report.new_links)
    ctx.in_flight = []

    println_and_log(f"cycle done ({int(report.elapsed * 1000)}ms)")
    println_and_log(ctx.counters.summary())
    return report


class CrawlSupervisor:
    """Keeps the crawl running across crashes.

    ``connect`` opens a new storage connection; it is called at every
    (re)start and once more to mark the pages of a crashed cycle bugged.
    """

    def __init__(self, connect: Callable[[], DatabaseConnection], explorer, resolver,
                 cfg: Optional[CrawlConfig] = None, ctx: Optional[CrawlContext] = None,
                 sleep: Sleep = asyncio.sleep):
        self.connect = connect
        self.explorer = explorer
        self.resolver = resolver
        self.cfg = cfg or CrawlConfig()
        self.ctx = ctx or CrawlContext(show_progress=self.cfg.show_progress)
        self.sleep = sleep
        self.breakers = CircuitBreakerRegistry(failure_threshold=self.cfg.circuit_breaker_threshold)
        self.state = CrawlState.IDLE
        self.last_error: Optional[BaseException] = None
        self.cycles = 0

    async def run(self) -> CrawlState:
        while True:
            if self.ctx.stop_requested:
                self.state = CrawlState.CANCELLED
                break

            self.state = CrawlState.RUNNING
            try:
                finished = await self._run_cycles()
            except Exception as e:
                self.state = CrawlState.CRASHED
                self.last_error = e
                if await self._handle_crash(e):
                    self.state = CrawlState.HALTED
                    break
                if self.ctx.stop_requested:
                    self.state = CrawlState.CANCELLED
                    break
                println_and_log(f"program restarting in {self.cfg.crash_retry_delay:g} seconds")
                await self.sleep(self.cfg.crash_retry_delay)
                continue

            self.state = CrawlState.COMPLETED if finished else CrawlState.CANCELLED
            break

        if self.state == CrawlState.COMPLETED:
            println_and_log("No unexplored page left, crawl completed")
        elif self.state == CrawlState.CANCELLED:
            println_and_log("Shutdown requested, crawl stopped")
        return self.state

    async def _run_cycles(self) -> bool:
        """Run cycles on a fresh connection. True when the frontier ran dry."""
        async with self.connect() as conn:
            self.ctx.counters = await crawl_counts(conn)
            println_and_log(self.ctx.counters.summary())

            while not self.ctx.stop_requested:
                report = await run_cycle(conn, self.explorer, self.resolver, self.cfg, self.ctx)
                if report is None:
                    return True
                self.cycles += 1
        return False

    async def _handle_crash(self, e: Exception) -> bool:
        """Log the crash and quarantine the pages in flight. True when the crawl must halt."""
        error_and_log(f"WIKICRAWL CRASHED: {type(e).__name__}: {e}")
        if isinstance(e, StorageError):
            error_and_log(f"last query: {e.query}")

        in_flight, self.ctx.in_flight = self.ctx.in_flight, []
        if in_flight:
            try:
                async with self.connect() as conn:
                    await mark_bugged(conn, [page.id for page in in_flight])
                warn_and_log(f"marked bugged: [{', '.join(str(page) for page in in_flight)}]")
            except Exception as mark_error:
                error_and_log(f"could not mark crashed batch bugged: {type(mark_error).__name__}: {mark_error}")

        code = error_code(e)
        breaker = self.breakers.get_breaker(code)
        breaker.record_failure()
        if not breaker.allow_request():
            error_and_log(f"error {code} happened {breaker.failures} times, crawl halted")
            return True
        return False


def install_signal_handlers(ctx: CrawlContext):
    """First SIGINT/SIGTERM asks the crawl to stop after the current cycle, the second one quits."""
    def signal_handler(signum, frame):
        if ctx.stop_requested:
            # Second Ctrl+C - force quit immediately
            print("\nForce quitting immediately...")
            os._exit(1)
        else:
            print(f"\nReceived signal {signum}. Stopping after the current cycle...")
            print("Press Ctrl+C again to force quit.")
            ctx.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def crawl(db_config: Optional[DatabaseConfig] = None, http_config: Optional[HttpConfig] = None,
                wiki: Optional[WikiConfig] = None, cfg: Optional[CrawlConfig] = None) -> CrawlState:
    """Crawl the wiki until the frontier is empty, a stop is requested or the crawl halts."""
    db_config = db_config or get_database_config()
    http_config = http_config or HttpConfig()
    wiki = wiki or WikiConfig()
    cfg = cfg or CrawlConfig()

    log_path = setup_logs(cfg.log_dir)
    println_and_log(f"Starting wikicrawl, logging to {log_path}")
    println_and_log(f"Using {db_config.describe()}")

    ctx = CrawlContext(show_progress=cfg.show_progress)
    install_signal_handlers(ctx)

    async with create_connection(db_config) as conn:
        await init_db(conn)
        counts = await crawl_counts(conn)
        if counts.pages == 0:
            seed = Page(id=cfg.seed_id, title=cfg.seed_title)
            await seed_page(conn, seed)
            println_and_log(f"Empty database, seeded frontier with {seed}")

    async with create_client(http_config) as client:
        supervisor = CrawlSupervisor(
            connect=lambda: create_connection(db_config),
            explorer=PageExplorer(client, wiki, cfg),
            resolver=IdentityResolver(client, wiki, cfg),
            cfg=cfg,
            ctx=ctx,
        )
        state = await supervisor.run()

    println_and_log(f"crawl finished: {state.value}")
    return state
