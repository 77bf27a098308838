"""
PostgreSQL credential store for the JWT auth filter.
"""

from typing import Optional

import asyncpg

from shared.logging import get_logger
from ..auth.exceptions import BackingStoreError
from ..auth.models import ConsumerRecord, SecretRecord


class PostgresCredentialStore:
    """Reads JWT secrets and consumers from PostgreSQL."""

    def __init__(self, dsn: str, *, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("jwt_auth.store.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the connection pool and create tables."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )

            await self._create_tables()

            self.logger.info("PostgreSQL credential store started")

        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL credential store", error=str(e))
            raise BackingStoreError(str(e)) from e

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL credential store stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS consumers (
                    id VARCHAR(255) PRIMARY KEY,
                    custom_id VARCHAR(255),
                    username VARCHAR(255),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS jwt_secrets (
                    id VARCHAR(255) PRIMARY KEY,
                    consumer_id VARCHAR(255) NOT NULL REFERENCES consumers(id) ON DELETE CASCADE,
                    key VARCHAR(255) NOT NULL UNIQUE,
                    algorithm VARCHAR(10) NOT NULL DEFAULT 'HS256',
                    secret TEXT,
                    rsa_public_key TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jwt_secrets_consumer ON jwt_secrets(consumer_id);
            """)

    async def find_secret_by_key(self, key: str) -> Optional[SecretRecord]:
        """Return the secret registered under ``key``."""
        row = await self._fetchrow(
            """
            SELECT id, consumer_id, key, algorithm, secret, rsa_public_key
            FROM jwt_secrets
            WHERE key = $1
            """,
            key,
        )
        if row is None:
            return None
        return SecretRecord(
            id=row["id"],
            key=row["key"],
            consumer_id=row["consumer_id"],
            algorithm=row["algorithm"],
            secret=row["secret"],
            rsa_public_key=row["rsa_public_key"],
        )

    async def find_consumer(self, consumer_id: str) -> Optional[ConsumerRecord]:
        """Return the consumer with ``consumer_id``."""
        row = await self._fetchrow(
            "SELECT id, custom_id, username FROM consumers WHERE id = $1",
            consumer_id,
        )
        if row is None:
            return None
        return ConsumerRecord(
            id=row["id"],
            custom_id=row["custom_id"],
            username=row["username"],
        )

    async def check_health(self) -> str:
        try:
            await self._fetchrow("SELECT 1")
            return "ok"
        except BackingStoreError:
            return "error"

    async def _fetchrow(self, query: str, *args):
        if self.pool is None:
            raise BackingStoreError("PostgreSQL credential store is not started")
        try:
            return await self.pool.fetchrow(query, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self.logger.error("Credential store query failed", error=str(e))
            raise BackingStoreError(str(e)) from e
