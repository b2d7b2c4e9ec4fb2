import asyncio

import httpx
import pytest

import matchcast.data.providers.api_football as api_football


class DummySession:
    pass


def _patch_cache(monkeypatch, cached=None):
    stored = {}

    async def fake_get_cached(_session, _key):
        return cached

    async def fake_set_cached(_session, key, payload, ttl):
        stored[key] = (payload, ttl)

    monkeypatch.setattr(api_football, "get_cached", fake_get_cached)
    monkeypatch.setattr(api_football, "set_cached", fake_set_cached)
    monkeypatch.setattr(api_football, "api_football_client", lambda: object())
    return stored


def _respond_with(monkeypatch, payload, counter=None):
    async def fake_request_with_retries(_client, _method, url, *_args, **_kwargs):
        if counter is not None:
            counter.append(url)
        req = httpx.Request("GET", f"https://example.com{url}")
        return httpx.Response(200, json=payload, request=req)

    monkeypatch.setattr(api_football, "request_with_retries", fake_request_with_retries)


def test_api_get_uses_cache(monkeypatch):
    _patch_cache(monkeypatch, cached={"cached": True})
    calls = []
    _respond_with(monkeypatch, {"fresh": True}, counter=calls)

    result = asyncio.run(api_football.api_get(DummySession(), "/test", {}, ttl_seconds=1))
    assert result == {"cached": True}
    assert calls == []


def test_api_get_fetches_and_caches_on_miss(monkeypatch):
    stored = _patch_cache(monkeypatch)
    _respond_with(monkeypatch, {"response": [], "errors": []})

    result = asyncio.run(api_football.api_get(DummySession(), "/test", {"a": 1}, ttl_seconds=60))
    assert result == {"response": [], "errors": []}
    assert list(stored.values()) == [({"response": [], "errors": []}, 60)]


def test_api_get_error_payload_raises_and_is_not_cached(monkeypatch):
    stored = _patch_cache(monkeypatch)
    _respond_with(monkeypatch, {"response": [], "errors": {"requests": "limit reached"}})

    with pytest.raises(RuntimeError):
        asyncio.run(api_football.api_get(DummySession(), "/test", {}, ttl_seconds=60))
    assert stored == {}


def test_get_cached_drops_poisoned_payload(monkeypatch):
    dropped = []

    async def fake_get_cached_payload(_session, _key):
        return {"errors": {"token": "invalid"}}

    async def fake_drop(_session, key):
        dropped.append(key)

    monkeypatch.setattr(api_football, "get_cached_payload", fake_get_cached_payload)
    monkeypatch.setattr(api_football, "drop_cached_payload", fake_drop)
    assert asyncio.run(api_football.get_cached(DummySession(), "k")) is None
    assert dropped == ["k"]


def _fx(date, home_id, away_id, gh, ga, status="FT"):
    return {
        "fixture": {"date": date, "status": {"short": status}},
        "teams": {"home": {"id": home_id}, "away": {"id": away_id}},
        "goals": {"home": gh, "away": ga},
    }


def test_team_form_is_most_recent_first(monkeypatch):
    _patch_cache(monkeypatch)
    _respond_with(
        monkeypatch,
        {
            "errors": [],
            "response": [
                _fx("2026-09-01T18:00:00+00:00", 1, 5, 0, 1),
                _fx("2026-10-01T18:00:00+00:00", 6, 1, 1, 3),
                _fx("2026-09-15T18:00:00+00:00", 1, 7, 2, 2),
                _fx("2026-10-10T18:00:00+00:00", 1, 8, None, None, status="PST"),
            ],
        },
    )
    form = asyncio.run(api_football.get_team_form(DummySession(), 1, last_n=5))
    assert form == ["W", "D", "L"]


def test_team_statistics_empty_response_is_absent(monkeypatch):
    _patch_cache(monkeypatch)
    _respond_with(monkeypatch, {"errors": [], "response": []})
    assert asyncio.run(api_football.get_team_statistics(DummySession(), 1, 39, 2026)) is None


def test_head_to_head_keeps_finished_fixtures(monkeypatch):
    _patch_cache(monkeypatch)
    _respond_with(
        monkeypatch,
        {
            "errors": [],
            "response": [
                _fx("2025-01-01T18:00:00+00:00", 1, 2, 1, 0),
                _fx("2026-11-01T18:00:00+00:00", 2, 1, None, None, status="NS"),
                _fx("2025-06-01T18:00:00+00:00", 2, 1, 2, 2, status="AET"),
            ],
        },
    )
    rows = asyncio.run(api_football.get_head_to_head(DummySession(), 1, 2, last_n=10))
    assert [r["fixture"]["date"][:10] for r in rows] == ["2025-06-01", "2025-01-01"]


def test_upcoming_fixtures_request_window(monkeypatch):
    from datetime import date

    seen = {}

    async def fake_api_get(_session, path, params, ttl_seconds, cache_tag=None):
        seen.update(path=path, params=params, ttl=ttl_seconds)
        return {"response": [{"fixture": {"id": 1}}, "junk", None]}

    monkeypatch.setattr(api_football, "api_get", fake_api_get)
    fixtures = asyncio.run(
        api_football.get_upcoming_fixtures(DummySession(), 119, 2026, date(2026, 10, 18), date(2026, 10, 25))
    )
    assert fixtures == [{"fixture": {"id": 1}}]
    assert seen["path"] == "/fixtures"
    assert seen["params"]["league"] == 119
    assert seen["params"]["from"] == "2026-10-18"
    assert seen["params"]["to"] == "2026-10-25"
    assert seen["params"]["status"] == "NS"
