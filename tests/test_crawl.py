import pytest
from src.wikicrawl.crawl import CrawlState, CrawlSupervisor, run_cycle
from src.wikicrawl.database import create_connection
from src.wikicrawl.db_operations import crawl_counts, init_db, insert_pages, links_from, page_status
from src.wikicrawl.errors import BuggedPageError, FatalResolutionError, StorageError
from src.wikicrawl.models import Page
from conftest import FakeExplorer, FakeResolver

async def _setup(db_config, pages):
    async with create_connection(db_config) as conn:
        await init_db(conn)
        await insert_pages(conn, pages)

async def _status(db_config, page_id):
    async with create_connection(db_config) as conn:
        return await page_status(conn, page_id)

@pytest.mark.asyncio
async def test_cycle_with_a_bugged_page(db_config, crawl_config, ctx):
    await _setup(db_config, [Page(1, "A"), Page(2, "B"), Page(3, "C")])
    explorer = FakeExplorer({
        1: [("b", "B")],
        2: [("c", "C"), ("d", "D")],
        3: BuggedPageError(Page(3, "C")),
    })
    resolver = FakeResolver({"b": Page(2, "B"), "c": Page(3, "C"), "d": Page(4, "D")})

    async with create_connection(db_config) as conn:
        report = await run_cycle(conn, explorer, resolver, crawl_config, ctx)

        assert report.explored == 2
        assert report.bugged == 1
        assert report.new_pages == 1
        assert await page_status(conn, 1) == "explored"
        assert await page_status(conn, 2) == "explored"
        assert await page_status(conn, 3) == "bugged"
        assert await page_status(conn, 4) == "unexplored"
        assert sorted(await links_from(conn, [1, 2])) == [(1, 2, "B"), (2, 3, "C"), (2, 4, "D")]
    assert ctx.in_flight == []
    assert (ctx.counters.explored, ctx.counters.bugged) == (2, 1)

@pytest.mark.asyncio
async def test_unexpected_explorer_error_marks_page_bugged(db_config, crawl_config, ctx):
    await _setup(db_config, [Page(1, "A")])
    explorer = FakeExplorer({1: ValueError("boom")})

    async with create_connection(db_config) as conn:
        report = await run_cycle(conn, explorer, FakeResolver({}), crawl_config, ctx)
    assert report.bugged == 1
    assert await _status(db_config, 1) == "bugged"

@pytest.mark.asyncio
async def test_empty_frontier(db_config, crawl_config, ctx):
    await _setup(db_config, [])
    async with create_connection(db_config) as conn:
        assert await run_cycle(conn, FakeExplorer({}), FakeResolver({}), crawl_config, ctx) is None

@pytest.mark.asyncio
async def test_supervisor_crawls_until_frontier_is_empty(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(1, "A")])
    explorer = FakeExplorer({
        1: [("b", "B"), ("c", "C")],
        2: [("a", "A")],
        3: [("b", "B")],
    })
    resolver = FakeResolver({"a": Page(1, "A"), "b": Page(2, "B"), "c": Page(3, "C")})
    crawl_config.batch_size = 1

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.COMPLETED
    assert explorer.explored == [1, 2, 3]
    assert supervisor.cycles == 3

    async with create_connection(db_config) as conn:
        counts = await crawl_counts(conn)
    assert (counts.explored, counts.bugged, counts.pages, counts.links) == (3, 0, 3, 4)
    assert sleep.calls == []

@pytest.mark.asyncio
async def test_crash_marks_batch_bugged_and_restarts(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(1, "A"), Page(2, "B")])
    explorer = FakeExplorer({1: [("bad", "Bad")], 2: [("a", "A")]})
    resolver = FakeResolver({"bad": FatalResolutionError("bad", "api", "{}"), "a": Page(1, "A")})
    crawl_config.batch_size = 1

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.COMPLETED
    assert sleep.calls == [10.0]
    assert isinstance(supervisor.last_error, FatalResolutionError)
    assert await _status(db_config, 1) == "bugged"
    assert await _status(db_config, 2) == "explored"

@pytest.mark.asyncio
async def test_repeated_error_halts(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(1, "A"), Page(2, "B"), Page(3, "C"), Page(4, "D")])
    explorer = FakeExplorer({i: [("bad", "Bad")] for i in range(1, 5)})
    resolver = FakeResolver({"bad": FatalResolutionError("bad", "api", "{}")})
    crawl_config.batch_size = 1

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)
    # threshold 2: the third failure halts
    assert await supervisor.run() == CrawlState.HALTED
    assert sleep.calls == [10.0, 10.0]
    assert explorer.explored == [1, 2, 3]
    assert supervisor.breakers.failure_counts() == {"resolution_format": 3}
    assert await _status(db_config, 3) == "bugged"
    assert await _status(db_config, 4) == "unexplored"

@pytest.mark.asyncio
async def test_stop_before_start(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(1, "A")])
    explorer = FakeExplorer({1: [("b", "B")]})
    ctx.request_stop()

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, FakeResolver({}),
                                 crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.CANCELLED
    assert explorer.explored == []

@pytest.mark.asyncio
async def test_stop_finishes_the_running_cycle(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(1, "A"), Page(2, "B")])
    crawl_config.batch_size = 1

    class StoppingExplorer(FakeExplorer):
        async def explore(self, page):
            ctx.request_stop()
            return await super().explore(page)

    explorer = StoppingExplorer({1: [("b", "B")], 2: [("a", "A")]})
    resolver = FakeResolver({"b": Page(2, "B")})
    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)

    assert await supervisor.run() == CrawlState.CANCELLED
    assert explorer.explored == [1]
    assert await _status(db_config, 1) == "explored"
    assert await _status(db_config, 2) == "unexplored"

@pytest.mark.asyncio
async def test_same_error_between_good_cycles_still_halts(db_config, crawl_config, ctx, sleep):
    await _setup(db_config, [Page(i, str(i)) for i in range(1, 9)])
    # odd pages hit a broken lookup, even pages merge fine
    explorer = FakeExplorer({i: [("bad", "Bad")] if i % 2 else [("one", "One")] for i in range(1, 9)})
    resolver = FakeResolver({"bad": FatalResolutionError("bad", "api", "{}"), "one": Page(1, "1")})
    crawl_config.batch_size = 1

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.HALTED
    assert explorer.explored == [1, 2, 3, 4, 5]
    assert sleep.calls == [10.0, 10.0]
    assert supervisor.breakers.failure_counts() == {"resolution_format": 3}
    assert await _status(db_config, 4) == "explored"
    assert await _status(db_config, 6) == "unexplored"

@pytest.mark.asyncio
async def test_failed_quarantine_is_logged_not_raised(db_config, crawl_config, ctx, sleep, capsys):
    await _setup(db_config, [Page(1, "A")])
    explorer = FakeExplorer({1: [("bad", "Bad")]})
    resolver = FakeResolver({"bad": FatalResolutionError("bad", "api", "{}")})
    crawl_config.circuit_breaker_threshold = 0
    connections = []

    def connect():
        connections.append(len(connections) + 1)
        if len(connections) > 1:
            raise OSError("database is locked")
        return create_connection(db_config)

    supervisor = CrawlSupervisor(connect, explorer, resolver, crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.HALTED
    assert connections == [1, 2]
    assert "could not mark crashed batch bugged: OSError: database is locked" in capsys.readouterr().out
    assert await _status(db_config, 1) == "unexplored"

@pytest.mark.asyncio
async def test_storage_crash_logs_the_failing_query(db_config, crawl_config, ctx, sleep, capsys):
    await _setup(db_config, [Page(1, "A")])
    explorer = FakeExplorer({1: [("b", "B")]})
    query = "INSERT INTO alias (alias, id) VALUES (?, ?) ON CONFLICT (alias) DO NOTHING"
    resolver = FakeResolver({"b": StorageError(query, RuntimeError("disk I/O error"))})

    supervisor = CrawlSupervisor(lambda: create_connection(db_config), explorer, resolver,
                                 crawl_config, ctx, sleep=sleep)
    assert await supervisor.run() == CrawlState.COMPLETED
    assert f"last query: {query}" in capsys.readouterr().out
    assert supervisor.breakers.failure_counts() == {"storage": 1}
    assert sleep.calls == [10.0]
    assert await _status(db_config, 1) == "bugged"
