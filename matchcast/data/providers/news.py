from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.http import news_client, request_with_retries
from matchcast.data.providers.cache import get_cached_payload, make_cache_key, set_cached_payload


def _article(raw: dict) -> dict:
    source = raw.get("source") or {}
    return {
        "source": (source.get("name") if isinstance(source, dict) else None) or None,
        "published_at": raw.get("publishedAt"),
        "title": raw.get("title"),
        "description": raw.get("description"),
    }


async def get_team_news(session: AsyncSession, team_name: str) -> list[dict]:
    query = (team_name or "").strip()
    if not settings.news_api_key or not query:
        return []

    params = {
        "q": query,
        "language": "en",
        "sortBy": "publishedAt",
        "pageSize": int(settings.news_page_size or 5),
    }
    cache_key = make_cache_key("news", "/everything", params)
    cached = await get_cached_payload(session, cache_key)
    if isinstance(cached, list):
        return cached

    client = news_client()
    r = await request_with_retries(
        client,
        "GET",
        "/everything",
        params={**params, "apiKey": settings.news_api_key},
        retries=2,
    )
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict) or data.get("status") != "ok":
        raise RuntimeError(f"NewsAPI request failed: {str(data)[:300]}")

    articles = [_article(a) for a in (data.get("articles") or []) if isinstance(a, dict)]
    await set_cached_payload(session, cache_key, articles, int(settings.news_cache_ttl_seconds or 3600))
    return articles
