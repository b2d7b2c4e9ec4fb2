from __future__ import annotations

from datetime import datetime, timedelta, timezone
import hashlib
import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


def make_cache_key(namespace: str, url: str, params: dict, cache_tag: str | None = None) -> str:
    raw = url + "|" + (cache_tag or "") + "|" + json.dumps(params, sort_keys=True, ensure_ascii=False)
    return f"{namespace}:{hashlib.sha1(raw.encode('utf-8')).hexdigest()}"


async def get_cached_payload(session: AsyncSession, cache_key: str) -> dict | list | None:
    res = await session.execute(
        text(
            """
            SELECT payload FROM api_cache
            WHERE cache_key=:k AND expires_at > now()
            """
        ),
        {"k": cache_key},
    )
    row = res.first()
    return row[0] if row else None


async def set_cached_payload(session: AsyncSession, cache_key: str, payload: dict | list, ttl_seconds: int) -> None:
    expires = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    payload_json = payload
    if payload is not None and not isinstance(payload, str):
        payload_json = json.dumps(payload, ensure_ascii=False)
    await session.execute(
        text(
            """
            INSERT INTO api_cache(cache_key, payload, expires_at)
            VALUES(:k, CAST(:p AS jsonb), :e)
            ON CONFLICT (cache_key)
            DO UPDATE SET payload=CAST(:p AS jsonb), expires_at=:e
            """
        ),
        {"k": cache_key, "p": payload_json, "e": expires},
    )


async def drop_cached_payload(session: AsyncSession, cache_key: str) -> None:
    await session.execute(text("DELETE FROM api_cache WHERE cache_key=:k"), {"k": cache_key})


async def purge_expired(session: AsyncSession, *, max_rows: int = 0) -> dict:
    """Delete expired entries, then the soonest-expiring ones beyond ``max_rows`` (0 = no cap)."""
    res = await session.execute(text("DELETE FROM api_cache WHERE expires_at <= now()"))
    expired = int(res.rowcount or 0)
    overflow = 0
    if max_rows > 0:
        res = await session.execute(
            text(
                """
                DELETE FROM api_cache
                WHERE cache_key IN (
                  SELECT cache_key FROM api_cache
                  ORDER BY expires_at DESC
                  OFFSET :keep
                )
                """
            ),
            {"keep": int(max_rows)},
        )
        overflow = int(res.rowcount or 0)
    return {"expired": expired, "overflow": overflow}
