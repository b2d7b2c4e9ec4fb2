from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.http import api_football_client, request_with_retries
from matchcast.core.logger import get_logger
from matchcast.data.mappers import fixture_outcome, is_finished
from matchcast.data.providers.cache import (
    drop_cached_payload,
    get_cached_payload,
    make_cache_key,
    set_cached_payload,
)

log = get_logger("providers.api_football")


def _errors_empty(errors_obj) -> bool:
    if errors_obj is None:
        return True
    if isinstance(errors_obj, (dict, list)):
        return len(errors_obj) == 0
    if isinstance(errors_obj, str):
        return errors_obj.strip() == ""
    return False


def _payload_has_errors(payload) -> bool:
    if not isinstance(payload, dict):
        return False
    return not _errors_empty(payload.get("errors"))


def _response_list(payload) -> list:
    if not isinstance(payload, dict):
        return []
    rows = payload.get("response")
    return list(rows) if isinstance(rows, list) else []


async def get_cached(session: AsyncSession, cache_key: str):
    payload = await get_cached_payload(session, cache_key)
    # Avoid poisoning the cache with API-Football quota/validation errors.
    if payload is not None and _payload_has_errors(payload):
        await drop_cached_payload(session, cache_key)
        return None
    return payload


async def set_cached(session: AsyncSession, cache_key: str, payload: dict, ttl_seconds: int):
    await set_cached_payload(session, cache_key, payload, ttl_seconds)


async def api_get(
    session: AsyncSession,
    url: str,
    params: dict,
    ttl_seconds: int,
    *,
    cache_tag: str | None = None,
):
    key = make_cache_key("api_football", url, params, cache_tag=cache_tag)
    cached = await get_cached(session, key)
    if cached is not None:
        return cached

    client = api_football_client()
    r = await request_with_retries(client, "GET", url, params=params)
    r.raise_for_status()
    data = r.json()
    if _payload_has_errors(data):
        raise RuntimeError(f"API-Football returned errors for {url}: {data.get('errors')}")

    await set_cached(session, key, data, ttl_seconds)
    return data


async def get_upcoming_fixtures(
    session: AsyncSession, league_id: int, season: int, date_from: date, date_to: date
) -> list[dict]:
    """Not-started fixtures of one league between two dates (inclusive)."""
    params = {
        "league": league_id,
        "season": season,
        "from": date_from.isoformat(),
        "to": date_to.isoformat(),
        "status": "NS",
        "timezone": "UTC",
    }
    data = await api_get(
        session,
        "/fixtures",
        params,
        ttl_seconds=int(settings.api_football_fixtures_ttl_seconds or 600),
        cache_tag="upcoming_v1",
    )
    return [f for f in _response_list(data) if isinstance(f, dict)]


async def get_team_statistics(session: AsyncSession, team_id: int, league_id: int, season: int) -> dict | None:
    params = {"team": team_id, "league": league_id, "season": season}
    data = await api_get(
        session,
        "/teams/statistics",
        params,
        ttl_seconds=int(settings.api_football_statistics_ttl_seconds or 12 * 3600),
    )
    stats = data.get("response") if isinstance(data, dict) else None
    # The endpoint answers with an empty list instead of an object when the team has no season data.
    if not isinstance(stats, dict) or not stats:
        return None
    return stats


async def get_team_form(session: AsyncSession, team_id: int, last_n: int = 10) -> list[str]:
    params = {"team": team_id, "last": last_n, "status": "FT", "timezone": "UTC"}
    data = await api_get(
        session,
        "/fixtures",
        params,
        ttl_seconds=int(settings.api_football_form_ttl_seconds or 6 * 3600),
        cache_tag="form_v1",
    )
    fixtures = [f for f in _response_list(data) if is_finished(f)]
    fixtures.sort(key=lambda f: str(((f.get("fixture") or {}).get("date")) or ""), reverse=True)
    form: list[str] = []
    for fixture in fixtures[:last_n]:
        outcome = fixture_outcome(fixture, team_id)
        if outcome is not None:
            form.append(outcome)
    return form


async def get_head_to_head(session: AsyncSession, team_a: int, team_b: int, last_n: int = 10) -> list[dict]:
    params = {"h2h": f"{team_a}-{team_b}", "last": last_n, "timezone": "UTC"}
    data = await api_get(
        session,
        "/fixtures/headtohead",
        params,
        ttl_seconds=int(settings.api_football_h2h_ttl_seconds or 24 * 3600),
    )
    fixtures = [f for f in _response_list(data) if is_finished(f)]
    fixtures.sort(key=lambda f: str(((f.get("fixture") or {}).get("date")) or ""), reverse=True)
    return fixtures


async def get_injuries(session: AsyncSession, team_id: int, season: int | None = None) -> list[dict]:
    params = {"team": team_id}
    if season:
        params["season"] = int(season)
    data = await api_get(
        session,
        "/injuries",
        params,
        ttl_seconds=int(settings.api_football_injuries_ttl_seconds or 3 * 3600),
    )
    return _response_list(data)


async def get_odds(session: AsyncSession, fixture_id: int) -> list[dict]:
    params = {"fixture": fixture_id}
    data = await api_get(
        session,
        "/odds",
        params,
        ttl_seconds=int(settings.api_football_odds_ttl_seconds or 300),
        cache_tag="odds_fixture_v1",
    )
    return _response_list(data)
