import os
import socket
import sys
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("ADMIN_TOKEN", "test")
os.environ.setdefault("PROBABILITY_CLAMP_POLICY", "redistribute")


def _db_is_reachable(database_url: str) -> bool:
    try:
        u = urlparse(database_url)
        host = u.hostname
        port = int(u.port or 5432)
        if not host:
            return False
        with socket.create_connection((host, port), timeout=0.5):
            return True
    except Exception:
        return False


class FakeProvider:
    """In-memory data provider; ``fail`` names reads that raise, unset reads return None."""

    def __init__(self, fail=(), **data):
        self.fail = set(fail)
        self.data = data
        self.calls = []

    async def _read(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail or "*" in self.fail:
            raise RuntimeError(f"{name} unavailable")
        value = self.data.get(name)
        if callable(value):
            return value(*args)
        return value

    async def get_team_statistics(self, team_id):
        return await self._read("get_team_statistics", team_id)

    async def get_team_form(self, team_id, last_n):
        return await self._read("get_team_form", team_id, last_n)

    async def get_head_to_head(self, team_id_a, team_id_b, last_n):
        return await self._read("get_head_to_head", team_id_a, team_id_b, last_n)

    async def get_injuries(self, team_id):
        return await self._read("get_injuries", team_id)

    async def get_weather(self, location):
        return await self._read("get_weather", location)

    async def get_odds(self, fixture_id):
        return await self._read("get_odds", fixture_id)

    async def get_team_news(self, team_name):
        value = await self._read("get_team_news", team_name)
        return value if value is not None else []


@pytest.fixture()
def fake_provider():
    return FakeProvider


@pytest.fixture()
def match():
    from matchcast.domain.models import Match, Team

    return Match(
        id="6f1c2a52-3c1e-4d8e-9a57-0d2a9f4b1e01",
        home_team=Team(id="team-home", name="Home FC", api_team_id=1),
        away_team=Team(id="team-away", name="Away FC", api_team_id=2),
        venue="Parken, Copenhagen",
        league="Superliga",
        country="DK",
        match_date=datetime(2026, 10, 20, 18, 0, tzinfo=timezone.utc),
        api_fixture_id=9001,
        api_league_id=119,
    )


@pytest.fixture()
def make_prediction():
    from matchcast.domain.models import Prediction

    def _make(match_id: str, *, created_at: datetime | None = None, prediction_id: str = "p-1", **overrides):
        fields = dict(
            id=prediction_id,
            match_id=match_id,
            home_win_prob=0.4,
            draw_prob=0.3,
            away_win_prob=0.3,
            predicted_home_score=1,
            predicted_away_score=1,
            confidence_score=0.6,
            feature_importance=[],
            evidence_snippets=[],
            reasoning="",
            model_version="test",
            created_at=created_at or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc),
        )
        fields.update(overrides)
        return Prediction(**fields)

    return _make


@pytest.fixture()
def db_session():
    from matchcast.core.config import settings

    if not _db_is_reachable(settings.database_url):
        pytest.skip("DB is not reachable for storage tests")
    from matchcast.core.db import SessionLocal

    return SessionLocal
