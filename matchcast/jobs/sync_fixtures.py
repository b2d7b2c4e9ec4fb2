from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.logger import get_logger
from matchcast.core.timeutils import parse_iso, utcnow
from matchcast.data.mappers import _field, _int_or_none, fixture_team_ids, stored_status
from matchcast.data.providers.api_football import get_upcoming_fixtures

log = get_logger("jobs.sync_fixtures")

_PLACEHOLDER_KEYS = {"", "YOUR_KEY", "your_paid_key"}


def _parse_kickoff(raw_date) -> Optional[datetime]:
    return parse_iso(raw_date)


def _venue(item: dict) -> Optional[str]:
    name = _field(item, "fixture", "venue", "name")
    city = _field(item, "fixture", "venue", "city")
    parts = [p.strip() for p in (name, city) if isinstance(p, str) and p.strip()]
    return ", ".join(parts) or None


async def _upsert_country(session: AsyncSession, code: str, name: Optional[str]) -> str:
    res = await session.execute(
        text(
            """
            INSERT INTO countries(name, code)
            VALUES(:name, :code)
            ON CONFLICT (code) DO UPDATE SET name=countries.name
            RETURNING id::text AS id
        """
        ),
        {"name": name or code, "code": code},
    )
    return res.mappings().one()["id"]


async def _upsert_team(session: AsyncSession, team_json: dict, country_id: str, league_name: Optional[str]) -> str:
    res = await session.execute(
        text(
            """
            INSERT INTO teams(name, country_id, league, api_team_id, logo_url)
            VALUES(:name, CAST(:country_id AS uuid), :league, :api_team_id, :logo)
            ON CONFLICT (api_team_id) DO UPDATE
            SET name=EXCLUDED.name,
                league=COALESCE(EXCLUDED.league, teams.league),
                logo_url=COALESCE(EXCLUDED.logo_url, teams.logo_url)
            RETURNING id::text AS id
        """
        ),
        {
            "name": team_json.get("name") or f"Team {team_json['id']}",
            "country_id": country_id,
            "league": league_name,
            "api_team_id": int(team_json["id"]),
            "logo": team_json.get("logo"),
        },
    )
    return res.mappings().one()["id"]


async def _upsert_match(
    session: AsyncSession,
    item: dict,
    *,
    kickoff: datetime,
    home_id: str,
    away_id: str,
    country_id: str,
    league_id: int,
    league_name: Optional[str],
) -> bool:
    """Insert or refresh one fixture; True when the row is new."""
    short = _field(item, "fixture", "status", "short")
    res = await session.execute(
        text(
            """
            INSERT INTO matches(
              home_team_id, away_team_id, country_id, match_date, league, venue,
              status, api_fixture_id, api_league_id
            )
            VALUES(
              CAST(:home_id AS uuid), CAST(:away_id AS uuid), CAST(:country_id AS uuid),
              :kickoff, :league, :venue, :status, :fixture_id, :league_id
            )
            ON CONFLICT (api_fixture_id) DO UPDATE SET
              match_date=EXCLUDED.match_date,
              league=COALESCE(EXCLUDED.league, matches.league),
              venue=COALESCE(EXCLUDED.venue, matches.venue),
              status=EXCLUDED.status,
              api_league_id=EXCLUDED.api_league_id
            RETURNING (xmax = 0) AS inserted
        """
        ),
        {
            "home_id": home_id,
            "away_id": away_id,
            "country_id": country_id,
            "kickoff": kickoff,
            "league": league_name,
            "venue": _venue(item),
            "status": stored_status(short) if isinstance(short, str) and short else "scheduled",
            "fixture_id": _int_or_none(_field(item, "fixture", "id")),
            "league_id": league_id,
        },
    )
    return bool(res.mappings().one()["inserted"])


async def _sync_league(session: AsyncSession, code: str, league_id: int, fixtures: list[dict], counts: dict) -> None:
    country_id: Optional[str] = None
    for item in fixtures:
        fixture_id = _int_or_none(_field(item, "fixture", "id"))
        kickoff = _parse_kickoff(_field(item, "fixture", "date"))
        home_api_id, away_api_id = fixture_team_ids(item)
        if fixture_id is None or kickoff is None or home_api_id is None or away_api_id is None:
            counts["skipped"] += 1
            log.warning("fixture_skipped league=%s fixture_id=%s reason=malformed", league_id, fixture_id)
            continue

        league_name = _field(item, "league", "name")
        league_name = league_name if isinstance(league_name, str) else None
        if country_id is None:
            country_name = _field(item, "league", "country")
            country_id = await _upsert_country(session, code, country_name if isinstance(country_name, str) else None)

        home_id = await _upsert_team(session, item["teams"]["home"], country_id, league_name)
        away_id = await _upsert_team(session, item["teams"]["away"], country_id, league_name)
        inserted = await _upsert_match(
            session,
            item,
            kickoff=kickoff,
            home_id=home_id,
            away_id=away_id,
            country_id=country_id,
            league_id=league_id,
            league_name=league_name,
        )
        counts["created" if inserted else "updated"] += 1


async def run(session: AsyncSession, *, now: Optional[datetime] = None) -> dict:
    """Pull not-started fixtures for every configured league and upsert them as scheduled matches."""
    if (settings.api_football_key or "").strip() in _PLACEHOLDER_KEYS:
        raise RuntimeError("API_FOOTBALL_KEY is not configured")

    today = (now or utcnow()).date()
    until = today + timedelta(days=int(settings.sync_days_ahead or 7))
    counts = {"leagues": 0, "fixtures": 0, "created": 0, "updated": 0, "skipped": 0, "failed_leagues": 0}

    try:
        for code, league_id in settings.leagues.items():
            counts["leagues"] += 1
            try:
                fixtures = await get_upcoming_fixtures(session, league_id, settings.season, today, until)
            except Exception as exc:
                counts["failed_leagues"] += 1
                log.error("sync_league_failed country=%s league=%s err=%s", code, league_id, exc)
                continue
            counts["fixtures"] += len(fixtures)
            await _sync_league(session, code, league_id, fixtures, counts)
            log.info("sync_league_done country=%s league=%s fixtures=%s", code, league_id, len(fixtures))
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    log.info(
        "sync_fixtures created=%s updated=%s skipped=%s failed_leagues=%s",
        counts["created"],
        counts["updated"],
        counts["skipped"],
        counts["failed_leagues"],
    )
    return counts
