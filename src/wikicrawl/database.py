"""
Database abstraction layer for supporting both SQLite and PostgreSQL backends.

This module provides a unified interface for the page graph store that can work
with both SQLite (via aiosqlite) and PostgreSQL (via asyncpg).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional, Tuple, List, Any
from dataclasses import dataclass

# Import database-specific modules
try:
    import aiosqlite
    SQLITE_AVAILABLE = True
except ImportError:
    SQLITE_AVAILABLE = False

try:
    import asyncpg
    POSTGRES_AVAILABLE = True
except ImportError:
    POSTGRES_AVAILABLE = False


@dataclass
class DatabaseConfig:
    """Configuration for database connections."""
    backend: str = "sqlite"  # "sqlite" or "postgresql"

    # SQLite configuration
    sqlite_path: str = ""

    # PostgreSQL configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "wikicrawl"
    postgres_user: str = "wikicrawl"
    postgres_password: str = ""

    def describe(self) -> str:
        if self.backend == "postgresql":
            return f"postgresql://{self.postgres_user}@{self.postgres_host}:{self.postgres_port}/{self.postgres_database}"
        return f"sqlite:///{self.sqlite_path}"


class DatabaseConnection(ABC):
    """Abstract base class for database connections."""

    backend: str = ""

    @abstractmethod
    async def execute(self, query: str, *args) -> Any:
        """Execute a query and return the result."""
        pass

    @abstractmethod
    async def executemany(self, query: str, args_list: List[Tuple]) -> Any:
        """Execute a query multiple times with different parameters."""
        pass

    @abstractmethod
    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        """Fetch one row from a query."""
        pass

    @abstractmethod
    async def fetchall(self, query: str, *args) -> List[Tuple]:
        """Fetch all rows from a query."""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """Commit the current transaction."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the database connection."""
        pass

    @abstractmethod
    async def __aenter__(self):
        """Async context manager entry."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        pass


class SQLiteConnection(DatabaseConnection):
    """SQLite database connection wrapper."""

    backend = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn: Optional[aiosqlite.Connection] = None

    async def __aenter__(self):
        if not SQLITE_AVAILABLE:
            raise ImportError("aiosqlite is not available")
        self.conn = await aiosqlite.connect(self.db_path)
        await self._optimize_connection()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _optimize_connection(self):
        """Apply SQLite performance optimizations."""
        if self.conn:
            await self.conn.execute("PRAGMA journal_mode=WAL")
            await self.conn.execute("PRAGMA synchronous=NORMAL")
            await self.conn.execute("PRAGMA cache_size=10000")
            await self.conn.execute("PRAGMA temp_store=MEMORY")
            await self.conn.execute("PRAGMA foreign_keys=ON")

    async def execute(self, query: str, *args) -> aiosqlite.Cursor:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.execute(query, args)

    async def executemany(self, query: str, args_list: List[Tuple]) -> aiosqlite.Cursor:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.executemany(query, args_list)

    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        if not self.conn:
            raise RuntimeError("Connection not established")
        cursor = await self.conn.execute(query, args)
        return await cursor.fetchone()

    async def fetchall(self, query: str, *args) -> List[Tuple]:
        if not self.conn:
            raise RuntimeError("Connection not established")
        cursor = await self.conn.execute(query, args)
        return await cursor.fetchall()

    async def commit(self) -> None:
        if self.conn:
            await self.conn.commit()

    async def close(self) -> None:
        if self.conn:
            await self.conn.close()
            self.conn = None


class PostgreSQLConnection(DatabaseConnection):
    """PostgreSQL database connection wrapper."""

    backend = "postgresql"

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.conn: Optional[asyncpg.Connection] = None

    async def __aenter__(self):
        if not POSTGRES_AVAILABLE:
            raise ImportError("asyncpg is not available")

        self.conn = await asyncpg.connect(
            host=self.config.postgres_host,
            port=self.config.postgres_port,
            database=self.config.postgres_database,
            user=self.config.postgres_user,
            password=self.config.postgres_password
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def execute(self, query: str, *args) -> str:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.execute(query, *args)

    async def executemany(self, query: str, args_list: List[Tuple]) -> str:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.executemany(query, args_list)

    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.fetchrow(query, *args)

    async def fetchall(self, query: str, *args) -> List[Tuple]:
        if not self.conn:
            raise RuntimeError("Connection not established")
        return await self.conn.fetch(query, *args)

    async def commit(self) -> None:
        # PostgreSQL auto-commits by default in asyncpg
        pass

    async def close(self) -> None:
        if self.conn:
            await self.conn.close()
            self.conn = None


class DatabaseFactory:
    """Factory for creating database connections."""

    @staticmethod
    def create_connection(config: DatabaseConfig) -> DatabaseConnection:
        """Create a database connection based on configuration."""
        if config.backend == "sqlite":
            if not SQLITE_AVAILABLE:
                raise ImportError("aiosqlite is not available")
            return SQLiteConnection(config.sqlite_path)
        elif config.backend == "postgresql":
            if not POSTGRES_AVAILABLE:
                raise ImportError("asyncpg is not available")
            return PostgreSQLConnection(config)
        else:
            raise ValueError(f"Unsupported database backend: {config.backend}")


def create_connection(config: DatabaseConfig) -> DatabaseConnection:
    """Create a connection for *config*; use it as an async context manager."""
    return DatabaseFactory.create_connection(config)
