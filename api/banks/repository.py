"""
Bank catalog persistence (raw SQL).

Two record kinds:
- `bank_catalog_cache`: a single row (id = 1) holding the last fetched catalog.
- `bank_overrides`: sparse per-user rows. A missing row means "active"; a row
  only exists while the code is inactive for that user.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Iterable

from core import db

from .models import CatalogSnapshot, Institution

SNAPSHOT_ROW_ID = 1


def _json_dumps(value: object) -> str:
    # asyncpg has no jsonb codec registered; pass text and cast in SQL.
    return json.dumps(value, ensure_ascii=True)


def _distinct_codes(codes: Iterable[int]) -> list[int]:
    return sorted({int(c) for c in codes})


# --- catalog snapshot -------------------------------------------------------


async def load_snapshot() -> CatalogSnapshot | None:
    row = await db.fetch_one(
        """
        SELECT data_json, updated_at
        FROM bank_catalog_cache
        WHERE id = $1
        """,
        SNAPSHOT_ROW_ID,
    )
    if row is None or row.get("updated_at") is None:
        return None

    data = row["data_json"]
    if isinstance(data, str):
        data = json.loads(data)

    fetched_at: datetime = row["updated_at"]
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)

    return CatalogSnapshot.build(
        (Institution.from_dict(item) for item in data or []),
        fetched_at=fetched_at,
    )


async def save_snapshot(snapshot: CatalogSnapshot) -> None:
    """
    Upsert the single cache row. A row newer than `snapshot` is left alone.
    """
    await db.execute(
        """
        INSERT INTO bank_catalog_cache (id, data_json, updated_at)
        VALUES ($1, $2::jsonb, $3)
        ON CONFLICT (id) DO UPDATE
        SET data_json = EXCLUDED.data_json,
            updated_at = EXCLUDED.updated_at
        WHERE bank_catalog_cache.updated_at <= EXCLUDED.updated_at
        """,
        SNAPSHOT_ROW_ID,
        _json_dumps([item.to_dict() for item in snapshot.institutions]),
        snapshot.fetched_at,
    )


# --- per-user overrides -----------------------------------------------------


async def get_inactive_codes(user_id: int) -> set[int]:
    rows = await db.fetch_all(
        """
        SELECT code
        FROM bank_overrides
        WHERE user_id = $1
          AND inactive = true
        """,
        user_id,
    )
    return {int(r["code"]) for r in rows}


async def set_inactive(user_id: int, code: int) -> None:
    await db.execute(
        """
        INSERT INTO bank_overrides (user_id, code, inactive)
        VALUES ($1, $2, true)
        ON CONFLICT (user_id, code) DO UPDATE
        SET inactive = true,
            updated_at = now()
        """,
        user_id,
        code,
    )


async def clear_override(user_id: int, code: int) -> None:
    await db.execute(
        """
        DELETE FROM bank_overrides
        WHERE user_id = $1
          AND code = $2
        """,
        user_id,
        code,
    )


async def bulk_set_inactive(user_id: int, codes: Iterable[int]) -> None:
    """
    Create missing rows and force `inactive = true` on existing ones, in a
    single transaction.
    """
    distinct = _distinct_codes(codes)
    if not distinct:
        return None

    pool = db.pool()
    async with pool.acquire() as conn:  # type: asyncpg.Connection
        async with conn.transaction():
            await conn.execute(
                """
                INSERT INTO bank_overrides (user_id, code, inactive)
                SELECT $1, c, true
                FROM unnest($2::int[]) AS c
                ON CONFLICT (user_id, code) DO NOTHING
                """,
                user_id,
                distinct,
            )
            await conn.execute(
                """
                UPDATE bank_overrides
                SET inactive = true,
                    updated_at = now()
                WHERE user_id = $1
                  AND code = ANY($2::int[])
                  AND inactive = false
                """,
                user_id,
                distinct,
            )


async def bulk_clear(user_id: int, codes: Iterable[int]) -> None:
    distinct = _distinct_codes(codes)
    if not distinct:
        return None
    await db.execute(
        """
        DELETE FROM bank_overrides
        WHERE user_id = $1
          AND code = ANY($2::int[])
        """,
        user_id,
        distinct,
    )


async def clear_all_for_user(user_id: int) -> None:
    await db.execute(
        """
        DELETE FROM bank_overrides
        WHERE user_id = $1
        """,
        user_id,
    )
