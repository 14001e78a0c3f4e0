# owns the connection to the shop db, provides the transaction scope used by all components
import asyncio
import os.path
import sqlite3
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from sqlite3 import Row
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/shop.sqlite"
MEMORY = ":memory:"

_HERE = os.path.dirname(os.path.abspath(__file__))
SCHEMA_SCRIPT = os.path.join(_HERE, "schema.sql")
SEED_SCRIPT = os.path.join(_HERE, "seed.sql")


class PersistenceError(Exception):
    """Raised when the database cannot complete a read or a save."""


class Store:
    """Persistence handle passed to every component.

    One aiosqlite connection per store; reads and transactions are serialised
    behind a single lock, so there is only ever one active writer.
    Use ``":memory:"`` as path for throwaway stores (tests).
    """

    def __init__(self, path: str = DB_PATH) -> None:
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> "Store":
        if self._conn is not None:
            return self
        if self.path != MEMORY:
            folder = os.path.dirname(self.path)
            if folder:
                os.makedirs(folder, exist_ok=True)
        try:
            conn = await aiosqlite.connect(self.path)
            conn.row_factory = Row
            await conn.execute("PRAGMA foreign_keys = ON;")
            if not await _table_exists(conn, "products"):
                _logger.info(f"Initializing database at {self.path}...")
                await run_script(conn, SCHEMA_SCRIPT)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open database {self.path}: {e}") from e
        self._conn = conn
        return self

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    async def __aenter__(self) -> "Store":
        return await self.open()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise PersistenceError("Store is not open.")
        return self._conn

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        async with self._lock:
            try:
                cur = await self._connection().execute(sql, tuple(params))
                rows = await cur.fetchall()
                await cur.close()
            except sqlite3.Error as e:
                raise PersistenceError(str(e)) from e
        return list(rows)

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def _commit(self, conn: aiosqlite.Connection) -> None:
        await conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Scoped write access.

        Commits when the block exits normally (early returns included) and
        rolls back on any exception. sqlite errors surface as PersistenceError.
        """
        async with self._lock:
            conn = self._connection()
            try:
                yield conn
                await self._commit(conn)
            except sqlite3.Error as e:
                await conn.rollback()
                _logger.warning(f"Transaction rolled back: {e}")
                raise PersistenceError(str(e)) from e
            except BaseException:
                await conn.rollback()
                raise


async def run_script(conn: aiosqlite.Connection, script: str) -> None:
    if not os.path.exists(script) or os.path.getsize(script) == 0:
        return
    _logger.debug(f"Running script {script}...")
    with open(script, "r", encoding="utf-8") as f:
        await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


# ---------------------------
# Row helpers shared by the db package
# ---------------------------


def new_id() -> str:
    return uuid.uuid4().hex


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def now_iso() -> str:
    return to_iso(datetime.now())
