"""
Schema definitions for the page graph database.

Both backends store the same three tables: pages, alias and links.
"""

import re
from typing import List


SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
  id INTEGER PRIMARY KEY,
  title TEXT NOT NULL,
  explored BOOLEAN NOT NULL DEFAULT FALSE,
  bugged BOOLEAN NOT NULL DEFAULT FALSE
);
CREATE INDEX IF NOT EXISTS idx_pages_title ON pages(lower(title));
CREATE INDEX IF NOT EXISTS idx_pages_frontier ON pages(explored, bugged, id);

CREATE TABLE IF NOT EXISTS alias (
  alias TEXT PRIMARY KEY,
  id INTEGER NOT NULL,
  FOREIGN KEY (id) REFERENCES pages (id)
);
CREATE INDEX IF NOT EXISTS idx_alias_id ON alias(id);

CREATE TABLE IF NOT EXISTS links (
  linker INTEGER NOT NULL,
  linked INTEGER NOT NULL,
  display TEXT,
  PRIMARY KEY (linker, linked),
  FOREIGN KEY (linker) REFERENCES pages (id),
  FOREIGN KEY (linked) REFERENCES pages (id)
);
CREATE INDEX IF NOT EXISTS idx_links_linked ON links(linked);
"""


POSTGRES_SCHEMA = """
-- Pages table - one row per article, status kept as two flags
CREATE TABLE IF NOT EXISTS pages (
    id BIGINT PRIMARY KEY,
    title TEXT NOT NULL,
    explored BOOLEAN NOT NULL DEFAULT FALSE,
    bugged BOOLEAN NOT NULL DEFAULT FALSE
);

CREATE INDEX IF NOT EXISTS idx_pages_title ON pages(lower(title));
CREATE INDEX IF NOT EXISTS idx_pages_frontier ON pages(id) WHERE explored = FALSE AND bugged = FALSE;

-- Alias table - normalized link token -> page id
CREATE TABLE IF NOT EXISTS alias (
    alias TEXT PRIMARY KEY,
    id BIGINT NOT NULL REFERENCES pages (id)
);

CREATE INDEX IF NOT EXISTS idx_alias_id ON alias(id);

-- Links table - directed edges between pages
CREATE TABLE IF NOT EXISTS links (
    linker BIGINT NOT NULL REFERENCES pages (id),
    linked BIGINT NOT NULL REFERENCES pages (id),
    display TEXT,
    PRIMARY KEY (linker, linked)
);

CREATE INDEX IF NOT EXISTS idx_links_linked ON links(linked);
"""


def _split_statements(schema: str) -> List[str]:
    # Remove single-line comments
    schema_clean = re.sub(r'--.*$', '', schema, flags=re.MULTILINE)

    statements = []
    for statement in schema_clean.split(';'):
        statement = statement.strip()
        if statement:
            statements.append(statement)
    return statements


def get_sqlite_schema_statements() -> List[str]:
    """Get SQLite schema statements as a list."""
    return _split_statements(SQLITE_SCHEMA)


def get_postgres_schema_statements() -> List[str]:
    """Get PostgreSQL schema statements as a list."""
    return _split_statements(POSTGRES_SCHEMA)


def get_schema_statements(backend: str) -> List[str]:
    if backend == "postgresql":
        return get_postgres_schema_statements()
    return get_sqlite_schema_statements()
