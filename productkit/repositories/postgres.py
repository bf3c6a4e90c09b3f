"""Postgres-backed product and user repositories (one JSONB document per row)."""

from __future__ import annotations

import asyncio
import json
import logging

from productkit.schemas.models import Product, User

logger = logging.getLogger(__name__)


class _PostgresDocuments:
    """Lazily connected async table of ``id -> JSONB document``."""

    def __init__(self, database_url: str, table: str):
        self._url = database_url
        self._table = table
        self._conn = None
        self._lock = asyncio.Lock()

    async def _connect(self):
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres repositories. pip install 'psycopg[binary]'"
            )
        conn = await psycopg.AsyncConnection.connect(self._url, autocommit=True)
        await conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id TEXT PRIMARY KEY,
                doc JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        return conn

    async def connection(self):
        async with self._lock:
            if self._conn is None or self._conn.closed:
                self._conn = await self._connect()
                logger.info("Connected to Postgres table %s", self._table)
            return self._conn

    async def get(self, entity_id: str) -> dict | None:
        conn = await self.connection()
        cur = await conn.execute(f"SELECT doc FROM {self._table} WHERE id = %s", (entity_id,))
        row = await cur.fetchone()
        if not row:
            return None
        return row[0] if isinstance(row[0], dict) else json.loads(row[0])

    async def upsert(self, entity_id: str, doc: dict) -> None:
        conn = await self.connection()
        await conn.execute(
            f"""
            INSERT INTO {self._table} (id, doc, updated_at)
            VALUES (%s, %s::jsonb, NOW())
            ON CONFLICT (id) DO UPDATE SET doc = EXCLUDED.doc, updated_at = NOW()
            """,
            (entity_id, json.dumps(doc, default=str)),
        )


class PostgresProductRepository:
    """Persist products in ``pk_products``. Survives restarts."""

    def __init__(self, database_url: str):
        self._docs = _PostgresDocuments(database_url, "pk_products")

    async def find_by_id(self, product_id: str) -> Product | None:
        doc = await self._docs.get(product_id)
        return Product.model_validate(doc) if doc is not None else None

    async def replace(self, product: Product) -> Product:
        await self._docs.upsert(product.id, product.model_dump(mode="json"))
        return product


class PostgresUserRepository:
    """Persist users in ``pk_users``."""

    def __init__(self, database_url: str):
        self._docs = _PostgresDocuments(database_url, "pk_users")

    async def find_by_id(self, user_id: str) -> User | None:
        doc = await self._docs.get(user_id)
        return User.model_validate(doc) if doc is not None else None

    async def replace(self, user: User) -> User:
        await self._docs.upsert(user.id, user.model_dump(mode="json"))
        return user
