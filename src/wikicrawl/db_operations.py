"""
Database operations using the abstraction layer.

This module provides the page graph store operations that work with both SQLite
and PostgreSQL through the database abstraction layer. Every query goes through
the ``_execute``/``_fetch*`` helpers so that driver errors surface as
``StorageError`` carrying the failing query.
"""

from __future__ import annotations
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .database import DatabaseConnection
from .db_schema import get_schema_statements
from .errors import StorageError
from .models import CrawlCounters, Page

# Upper bound of bound parameters in one IN (...) list
MAX_IN_PARAMS = 8192
# SQLite builds before 3.32 accept at most 999 bound parameters per statement
SQLITE_MAX_IN_PARAMS = 999

_PLACEHOLDER = re.compile(r"\?")


def _sql(conn: DatabaseConnection, query: str) -> str:
    """Rewrite ``?`` placeholders as ``$1, $2, ...`` for PostgreSQL."""
    if conn.backend != "postgresql":
        return query
    counter = iter(range(1, 1 << 20))
    return _PLACEHOLDER.sub(lambda _: f"${next(counter)}", query)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def chunked(values: Sequence, size: int = MAX_IN_PARAMS) -> Iterable[Sequence]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _in_params(conn: DatabaseConnection) -> int:
    return SQLITE_MAX_IN_PARAMS if conn.backend == "sqlite" else MAX_IN_PARAMS


async def _execute(conn: DatabaseConnection, query: str, *args, commit: bool = True):
    query = _sql(conn, query)
    try:
        result = await conn.execute(query, *args)
        if commit:
            await conn.commit()
        return result
    except Exception as e:
        raise StorageError(query, e) from e


async def _executemany(conn: DatabaseConnection, query: str, args_list: List[Tuple]):
    if not args_list:
        return None
    query = _sql(conn, query)
    try:
        result = await conn.executemany(query, args_list)
        await conn.commit()
        return result
    except Exception as e:
        raise StorageError(query, e) from e


async def _fetchall(conn: DatabaseConnection, query: str, *args) -> List[Tuple]:
    query = _sql(conn, query)
    try:
        return list(await conn.fetchall(query, *args))
    except Exception as e:
        raise StorageError(query, e) from e


async def _fetchone(conn: DatabaseConnection, query: str, *args) -> Optional[Tuple]:
    query = _sql(conn, query)
    try:
        return await conn.fetchone(query, *args)
    except Exception as e:
        raise StorageError(query, e) from e


# ------------------ schema ------------------

async def init_db(conn: DatabaseConnection):
    """Create tables and indexes. Existing tables and data are preserved."""
    for statement in get_schema_statements(conn.backend):
        await _execute(conn, statement, commit=False)
    await conn.commit()


async def seed_page(conn: DatabaseConnection, page: Page) -> bool:
    """Insert a starting page into the frontier. Returns False if it already exists."""
    row = await _fetchone(conn, "SELECT id FROM pages WHERE id = ?", page.id)
    if row:
        return False
    await _execute(conn, "INSERT INTO pages (id, title) VALUES (?, ?)", page.id, page.title)
    return True


# ------------------ frontier ------------------

async def frontier_next_batch(conn: DatabaseConnection, limit: int) -> List[Page]:
    """Get up to *limit* unexplored pages, lowest id first."""
    rows = await _fetchall(
        conn,
        "SELECT id, title FROM pages WHERE explored = FALSE AND bugged = FALSE ORDER BY id ASC LIMIT ?",
        limit,
    )
    return [Page(id=row[0], title=row[1]) for row in rows]


async def delete_links_from(conn: DatabaseConnection, page_ids: Sequence[int]):
    """Delete edges left behind by an interrupted run for these linker pages."""
    for chunk in chunked(list(page_ids), _in_params(conn)):
        await _execute(conn, f"DELETE FROM links WHERE linker IN ({_placeholders(len(chunk))})", *chunk)


async def mark_bugged(conn: DatabaseConnection, page_ids: Sequence[int]):
    for chunk in chunked(list(page_ids), _in_params(conn)):
        await _execute(
            conn,
            f"UPDATE pages SET bugged = TRUE WHERE explored = FALSE AND id IN ({_placeholders(len(chunk))})",
            *chunk,
        )


async def mark_explored(conn: DatabaseConnection, page_ids: Sequence[int]):
    for chunk in chunked(list(page_ids), _in_params(conn)):
        await _execute(
            conn,
            f"UPDATE pages SET explored = TRUE WHERE bugged = FALSE AND id IN ({_placeholders(len(chunk))})",
            *chunk,
        )


# ------------------ graph merge ------------------

async def pages_by_alias(conn: DatabaseConnection, aliases: Iterable[str]) -> Dict[str, Page]:
    """Look up already known pages for a set of link tokens."""
    aliases = list(aliases)
    known: Dict[str, Page] = {}
    for chunk in chunked(aliases, _in_params(conn)):
        rows = await _fetchall(
            conn,
            f"SELECT alias.alias, pages.id, pages.title FROM pages JOIN alias ON pages.id = alias.id "
            f"WHERE alias.alias IN ({_placeholders(len(chunk))})",
            *chunk,
        )
        for alias, page_id, title in rows:
            known[alias] = Page(id=page_id, title=title)
    return known


async def existing_page_ids(conn: DatabaseConnection, page_ids: Iterable[int]) -> Set[int]:
    page_ids = sorted(set(page_ids))
    found: Set[int] = set()
    for chunk in chunked(page_ids, _in_params(conn)):
        rows = await _fetchall(conn, f"SELECT id FROM pages WHERE id IN ({_placeholders(len(chunk))})", *chunk)
        found.update(row[0] for row in rows)
    return found


async def insert_pages(conn: DatabaseConnection, pages: Iterable[Page]):
    await _executemany(
        conn,
        "INSERT INTO pages (id, title) VALUES (?, ?) ON CONFLICT (id) DO NOTHING",
        [(page.id, page.title) for page in pages],
    )


async def insert_aliases(conn: DatabaseConnection, aliases: Iterable[Tuple[str, int]]):
    await _executemany(
        conn,
        "INSERT INTO alias (alias, id) VALUES (?, ?) ON CONFLICT (alias) DO NOTHING",
        list(aliases),
    )


async def insert_links(conn: DatabaseConnection, links: Iterable[Tuple[int, int, Optional[str]]]):
    await _executemany(
        conn,
        "INSERT INTO links (linker, linked, display) VALUES (?, ?, ?) ON CONFLICT (linker, linked) DO NOTHING",
        list(links),
    )


# ------------------ statistics ------------------

async def crawl_counts(conn: DatabaseConnection) -> CrawlCounters:
    """Read the authoritative totals from storage."""
    explored = await _fetchone(conn, "SELECT COUNT(*) FROM pages WHERE explored = TRUE")
    bugged = await _fetchone(conn, "SELECT COUNT(*) FROM pages WHERE bugged = TRUE")
    pages = await _fetchone(conn, "SELECT COUNT(*) FROM pages")
    links = await _fetchone(conn, "SELECT COUNT(*) FROM links")
    return CrawlCounters(
        explored=explored[0] if explored else 0,
        bugged=bugged[0] if bugged else 0,
        pages=pages[0] if pages else 0,
        links=links[0] if links else 0,
    )


async def page_status(conn: DatabaseConnection, page_id: int) -> Optional[str]:
    """Return 'explored', 'bugged', 'unexplored', or None for an unknown page."""
    row = await _fetchone(conn, "SELECT explored, bugged FROM pages WHERE id = ?", page_id)
    if row is None:
        return None
    if row[0]:
        return "explored"
    if row[1]:
        return "bugged"
    return "unexplored"


# ------------------ path finding ------------------

async def links_from(conn: DatabaseConnection, page_ids: Sequence[int]) -> List[Tuple[int, int, Optional[str]]]:
    """All edges whose linker is one of *page_ids*, in storage order."""
    edges: List[Tuple[int, int, Optional[str]]] = []
    for chunk in chunked(list(page_ids), _in_params(conn)):
        rows = await _fetchall(
            conn,
            f"SELECT linker, linked, display FROM links WHERE linker IN ({_placeholders(len(chunk))})",
            *chunk,
        )
        edges.extend((row[0], row[1], row[2]) for row in rows)
    return edges


async def page_titles(conn: DatabaseConnection, page_ids: Iterable[int]) -> Dict[int, str]:
    page_ids = sorted(set(page_ids))
    titles: Dict[int, str] = {}
    for chunk in chunked(page_ids, _in_params(conn)):
        rows = await _fetchall(conn, f"SELECT id, title FROM pages WHERE id IN ({_placeholders(len(chunk))})", *chunk)
        titles.update((row[0], row[1]) for row in rows)
    return titles


async def find_pages_by_name(conn: DatabaseConnection, name: str) -> List[Page]:
    """Pages whose title matches *name* case-insensitively or that have *name* as alias.

    Titles use spaces where link tokens use underscores, so both spellings are tried.
    """
    name = name.strip().lower()
    rows = await _fetchall(
        conn,
        "SELECT id, title FROM pages WHERE lower(title) = ? "
        "UNION "
        "SELECT pages.id, pages.title FROM pages JOIN alias ON alias.id = pages.id WHERE alias.alias = ?",
        name.replace("_", " "),
        name.replace(" ", "_"),
    )
    return sorted((Page(id=row[0], title=row[1]) for row in rows), key=lambda page: page.id)
