# order_store_pg.py
"""
Backend Postgres (asyncpg) del OrderStore: una fila JSONB por usuario y tipo.
Mismo contrato que JsonFileOrderStore; save reemplaza la fila entera.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence

import asyncpg

from errors import PersistenceError
from models import Record, RecordKind, record_from_dict
from order_store import OrderStore

logger = logging.getLogger(__name__)


class PostgresOrderStore(OrderStore):
    def __init__(self, database_url: str, min_size: int = 1, max_size: int = 4) -> None:
        super().__init__()
        if not database_url:
            raise RuntimeError("DATABASE_URL no configurado")
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.pool.Pool] = None

    async def connect(self) -> None:
        self.pool = await asyncpg.create_pool(
            self.database_url, min_size=self.min_size, max_size=self.max_size
        )
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS order_collections (
                    user_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    records JSONB NOT NULL,
                    updated_at TIMESTAMP DEFAULT NOW(),
                    PRIMARY KEY (user_id, kind)
                );
            """)
        logger.info("✅ Postgres conectado (order_collections)")

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    def _require_pool(self) -> asyncpg.pool.Pool:
        if self.pool is None:
            raise PersistenceError("PostgresOrderStore sin conectar")
        return self.pool

    async def load(self, user_id: str, kind: RecordKind) -> List[Record]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT records FROM order_collections WHERE user_id=$1 AND kind=$2",
                    str(user_id), kind.value,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"error leyendo {kind.value} de {user_id}: {exc!r}") from exc

        if row is None:
            return []
        raw = row["records"]
        if isinstance(raw, str):
            raw = json.loads(raw)
        try:
            return [record_from_dict(kind, item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"registro inválido en {kind.value} de {user_id}: {exc!r}"
            ) from exc

    async def save(self, user_id: str, kind: RecordKind, records: Sequence[Record]) -> None:
        pool = self._require_pool()
        payload = json.dumps([r.to_dict() for r in records])
        try:
            async with pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO order_collections (user_id, kind, records)
                    VALUES ($1, $2, $3::jsonb)
                    ON CONFLICT (user_id, kind)
                    DO UPDATE SET records=EXCLUDED.records, updated_at=NOW()
                """, str(user_id), kind.value, payload)
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"error guardando {kind.value} de {user_id}: {exc!r}") from exc

    async def list_users(self, kind: RecordKind) -> List[str]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    "SELECT user_id FROM order_collections WHERE kind=$1 ORDER BY user_id",
                    kind.value,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"error listando usuarios {kind.value}: {exc!r}") from exc
        return [r["user_id"] for r in rows]
