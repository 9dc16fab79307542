# storefront/database/database.py
import asyncio
import asyncpg
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from ..config import Config
from ..exceptions import StorageUnavailable

# Errors meaning the database itself is unreachable, not that a query is wrong
CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


class Database:
    """Postgres connection pool"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or Config.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        """Open the pool and apply pending migrations"""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10
            )

            await self._run_migrations()

            self.logger.info("Database connection established")
        except CONNECTION_ERRORS as e:
            self.logger.error(f"Database connection failed: {e}")
            raise StorageUnavailable(str(e)) from e

    async def close(self):
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Database connection closed")

    @asynccontextmanager
    async def acquire(self):
        """Borrow a connection, reporting outages as StorageUnavailable"""
        if self.pool is None:
            raise StorageUnavailable("Database is not connected")
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except CONNECTION_ERRORS as e:
            self.logger.error(f"Database unavailable: {e}")
            raise StorageUnavailable(str(e)) from e

    async def _run_migrations(self):
        migrations_path = Path(__file__).parent / "migrations"

        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS migrations (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                )
            """)

            for migration_file in sorted(migrations_path.glob("*.sql")):
                migration_name = migration_file.name

                is_applied = await conn.fetchval(
                    "SELECT COUNT(*) FROM migrations WHERE name = $1",
                    migration_name
                )

                if not is_applied:
                    async with conn.transaction():
                        await conn.execute(migration_file.read_text())
                        await conn.execute(
                            "INSERT INTO migrations (name) VALUES ($1)",
                            migration_name
                        )

                    self.logger.info(f"Applied migration {migration_name}")
