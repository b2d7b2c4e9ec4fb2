import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable

import httpx

from .config import settings
from .logger import get_logger

log = get_logger("core.http")

RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})
_LIMITS = httpx.Limits(max_connections=20, max_keepalive_connections=10)

_clients: dict[str, httpx.AsyncClient] = {}


def _api_football_options() -> dict:
    return {
        "base_url": settings.api_football_base,
        "headers": {
            "x-apisports-key": settings.api_football_key,
            "x-rapidapi-host": settings.api_football_host,
        },
        "timeout": httpx.Timeout(20.0),
    }


def _openweather_options() -> dict:
    return {"base_url": settings.openweather_base, "timeout": httpx.Timeout(15.0)}


def _news_options() -> dict:
    return {
        "base_url": settings.news_api_base,
        "headers": {"User-Agent": "matchcast/1.0"},
        "timeout": httpx.Timeout(15.0),
    }


PROVIDERS: dict[str, Callable[[], dict]] = {
    "api_football": _api_football_options,
    "openweather": _openweather_options,
    "news": _news_options,
}


def get_client(provider: str) -> httpx.AsyncClient:
    """Shared AsyncClient per upstream provider, rebuilt after it was closed."""
    client = _clients.get(provider)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(limits=_LIMITS, **PROVIDERS[provider]())
        _clients[provider] = client
    return client


def api_football_client() -> httpx.AsyncClient:
    return get_client("api_football")


def openweather_client() -> httpx.AsyncClient:
    return get_client("openweather")


def news_client() -> httpx.AsyncClient:
    return get_client("news")


async def init_http_clients() -> None:
    for provider in PROVIDERS:
        get_client(provider)


async def close_http_clients() -> None:
    clients = list(_clients.values())
    _clients.clear()
    for client in clients:
        if not client.is_closed:
            await client.aclose()


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After as seconds; accepts delta-seconds or an HTTP date."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _backoff_delay(attempt: int, base: float, cap: float, retry_after: float | None) -> float:
    delay = min(cap, base * (2 ** attempt))
    if retry_after is not None:
        delay = max(delay, retry_after)
    return delay


async def request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict | None = None,
    retries: int = 3,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
    retry_statuses: set[int] | frozenset[int] | None = None,
    retry_exceptions: tuple[type[BaseException], ...] = (httpx.RequestError,),
    _sleep=asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying transport errors and 429/5xx with exponential backoff.

    The last retryable response is returned as-is so callers can decide
    between ``raise_for_status()`` and treating it as "no data"; the last
    transport error is re-raised.
    """
    statuses = retry_statuses or RETRY_STATUSES
    for attempt in range(retries + 1):
        try:
            response = await client.request(method, url, params=params, **kwargs)
        except retry_exceptions as exc:
            if attempt >= retries:
                raise
            delay = _backoff_delay(attempt, backoff_base, backoff_max, None)
            log.warning("http_retry url=%s attempt=%s err=%s delay=%.2f", url, attempt + 1, type(exc).__name__, delay)
            await _sleep(delay)
            continue

        if response.status_code not in statuses or attempt >= retries:
            return response
        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        await response.aclose()
        delay = _backoff_delay(attempt, backoff_base, backoff_max, retry_after)
        log.warning("http_retry url=%s attempt=%s status=%s delay=%.2f", url, attempt + 1, response.status_code, delay)
        await _sleep(delay)

    raise RuntimeError("request_with_retries: exhausted retries")
