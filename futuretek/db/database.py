"""Database access for the LMS: SQLite (aiosqlite) or PostgreSQL (asyncpg).

A postgresql:// DATABASE_URL selects the asyncpg pool; otherwise each request
opens the SQLite file at DATABASE_PATH.

Every query in the codebase is written once with ? placeholders. Ids are UUID
strings generated in Python and timestamps are ISO strings, so the PostgreSQL
wrapper only has to rewrite placeholders and expose rows by column name.
"""

import re
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config

from futuretek.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


# ── SQLite ────────────────────────────────────────────────────────────

async def _connect_sqlite():
    import aiosqlite
    db = await aiosqlite.connect(settings.database_path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    return db


# ── PostgreSQL wrapper ────────────────────────────────────────────────

_pg_pool = None


async def _get_pg_pool():
    global _pg_pool
    if _pg_pool is None:
        import asyncpg
        _pg_pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.pg_pool_min_size,
            max_size=settings.pg_pool_max_size,
        )
    return _pg_pool


# Matches a quoted literal (left alone) or a bare ? placeholder
_PARAM_RE = re.compile(r"'[^']*'|(\?)")


def convert_placeholders(sql: str) -> str:
    """Number bare ? markers as $1..$n; quoted literals pass through untouched."""
    counter = 0

    def _replace(match):
        nonlocal counter
        if match.group(1) is None:
            return match.group(0)
        counter += 1
        return f"${counter}"

    return _PARAM_RE.sub(_replace, sql)


class PgCursor:
    """Result of PgConnection.execute(), read like an aiosqlite cursor."""

    def __init__(self, records=None, rowcount: int = 0):
        self._records = list(records or [])
        self.rowcount = rowcount

    async def fetchone(self):
        if not self._records:
            return None
        return dict(self._records.pop(0))

    async def fetchall(self):
        rows = [dict(r) for r in self._records]
        self._records = []
        return rows


class PgConnection:
    """Presents an asyncpg connection through the subset of the aiosqlite API we use."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=None):
        pg_sql = convert_placeholders(sql)
        args = tuple(params) if params else ()
        if pg_sql.lstrip().upper().startswith("SELECT"):
            return PgCursor(records=await self._conn.fetch(pg_sql, *args))
        status = await self._conn.execute(pg_sql, *args)
        # asyncpg status strings look like "UPDATE 3" / "INSERT 0 1"
        tail = status.rsplit(" ", 1)[-1] if status else "0"
        return PgCursor(rowcount=int(tail) if tail.isdigit() else 0)

    async def commit(self):
        # Statements autocommit on a pooled asyncpg connection
        pass

    async def close(self):
        # Pool release is handled by get_db()
        pass


# ── Public API ────────────────────────────────────────────────────────

@asynccontextmanager
async def connect():
    """One connection for the duration of the block, from the pool or a fresh SQLite file handle."""
    if settings.use_postgres:
        pool = await _get_pg_pool()
        conn = await pool.acquire()
        try:
            yield PgConnection(conn)
        finally:
            await pool.release(conn)
        return

    db = await _connect_sqlite()
    try:
        yield db
    finally:
        await db.close()


async def get_db() -> AsyncGenerator:
    async with connect() as db:
        yield db


def run_migrations(revision: str = "head"):
    """Upgrade the configured database to ``revision``. Synchronous; Alembic opens its own engine."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.sqlalchemy_url)
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, revision)


async def init_db():
    if settings.use_postgres:
        logger.info("Using PostgreSQL backend: %s", settings.database_url.split("@")[-1])
    else:
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Using SQLite backend: %s", settings.database_path)

    run_migrations()


async def close_db():
    global _pg_pool
    if _pg_pool is not None:
        await _pg_pool.close()
        _pg_pool = None
