"""
Database connection and operations
"""
import asyncio
import asyncpg
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any, AsyncIterator
import logging

from .config import settings
from .exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


# Failures of the transport rather than of the statement. Constraint
# violations are not listed here and reach the repository untouched.
STORE_UNAVAILABLE_ERRORS = (
    asyncio.TimeoutError,
    OSError,
    asyncpg.InterfaceError,
    asyncpg.PostgresConnectionError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    asyncpg.QueryCanceledError,
)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS portfolios (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        category TEXT,
        tags TEXT[] NOT NULL DEFAULT '{}',
        thumbnail TEXT,
        images TEXT[] NOT NULL DEFAULT '{}',
        demo_url TEXT,
        repository_url TEXT,
        is_public BOOLEAN NOT NULL DEFAULT TRUE,
        status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published')),
        views INTEGER NOT NULL DEFAULT 0 CHECK (views >= 0),
        likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS portfolio_likes (
        portfolio_id UUID NOT NULL REFERENCES portfolios(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (portfolio_id, user_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_portfolios_user_id ON portfolios (user_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_portfolios_discovery ON portfolios (status, is_public, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_portfolio_likes_user_id ON portfolio_likes (user_id)",
]


class Database:
    """PostgreSQL database connection manager using asyncpg"""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None
        self.timeout = settings.DB_COMMAND_TIMEOUT_SECONDS

    async def connect(self):
        """Create database connection pool"""
        try:
            self.pool = await asyncpg.create_pool(
                settings.DATABASE_URL,
                min_size=settings.DB_POOL_MIN_SIZE,
                max_size=settings.DB_POOL_SIZE,
                command_timeout=self.timeout,
            )
            logger.info("Database connection pool created successfully")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    async def disconnect(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    async def init_schema(self):
        """Create tables and indexes if they do not exist"""
        async with self.transaction() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement, timeout=self.timeout)
        logger.info("Database schema ready")

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        """Translate transport failures and timeouts into StoreUnavailableError"""
        if not self.pool:
            raise StoreUnavailableError(retry_after=settings.STORE_RETRY_AFTER_SECONDS)
        try:
            yield
        except STORE_UNAVAILABLE_ERRORS as e:
            logger.error(f"Portfolio store unavailable: {e!r}")
            raise StoreUnavailableError(retry_after=settings.STORE_RETRY_AFTER_SECONDS) from e

    async def fetch_one(self, query: str, *args) -> Optional[Dict[str, Any]]:
        """Fetch a single row"""
        async with self._guard():
            async with self.pool.acquire(timeout=self.timeout) as conn:
                row = await conn.fetchrow(query, *args, timeout=self.timeout)
                return dict(row) if row else None

    async def fetch_all(self, query: str, *args) -> List[Dict[str, Any]]:
        """Fetch all rows"""
        async with self._guard():
            async with self.pool.acquire(timeout=self.timeout) as conn:
                rows = await conn.fetch(query, *args, timeout=self.timeout)
                return [dict(row) for row in rows]

    async def fetch_val(self, query: str, *args) -> Any:
        """Fetch a single value"""
        async with self._guard():
            async with self.pool.acquire(timeout=self.timeout) as conn:
                return await conn.fetchval(query, *args, timeout=self.timeout)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block inside one transaction"""
        async with self._guard():
            async with self.pool.acquire(timeout=self.timeout) as conn:
                async with conn.transaction():
                    yield conn

    async def ping(self) -> bool:
        """Check that the database answers"""
        try:
            return await self.fetch_val("SELECT 1") == 1
        except StoreUnavailableError:
            return False


# Global database instance
db = Database()


async def get_db() -> Database:
    """Dependency for getting database instance"""
    return db
