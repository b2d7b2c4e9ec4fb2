from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.db import SessionLocal
from matchcast.core.errors import MatchNotFound, StorageFailure
from matchcast.core.logger import get_logger
from matchcast.core.timeutils import utcnow
from matchcast.data.gateway import DataProvider, ProviderGateway
from matchcast.data.repository import PredictionRepository
from matchcast.domain.models import Match, Prediction
from matchcast.services.engine import generate_prediction

log = get_logger("jobs.build_predictions")

class _MatchLock:
    """Lock plus the number of callers holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


# Entries live only while some caller is generating or waiting for that match.
MATCH_LOCKS: dict[str, _MatchLock] = {}


class PredictionStore(Protocol):
    async def get_match(self, match_id: str) -> Optional[Match]: ...

    async def find_latest_prediction(self, match_id: str) -> Optional[Prediction]: ...

    async def insert_prediction(self, prediction: Prediction) -> Prediction: ...


def _acquire_entry(match_id: str) -> _MatchLock:
    entry = MATCH_LOCKS.get(match_id)
    if entry is None:
        entry = MATCH_LOCKS[match_id] = _MatchLock()
    entry.users += 1
    return entry


def _release_entry(match_id: str, entry: _MatchLock) -> None:
    entry.users -= 1
    if entry.users <= 0 and MATCH_LOCKS.get(match_id) is entry:
        del MATCH_LOCKS[match_id]


def default_provider(match: Match) -> DataProvider:
    return ProviderGateway(SessionLocal, league_id=match.api_league_id)


async def predict_and_store(match: Match, store: PredictionStore, provider: DataProvider) -> Prediction:
    """Generate and persist one prediction; at most one generation per match is in flight."""
    entry = _acquire_entry(match.id)
    try:
        return await _predict_serialized(match, store, provider, entry.lock)
    finally:
        _release_entry(match.id, entry)


async def _predict_serialized(
    match: Match, store: PredictionStore, provider: DataProvider, lock: asyncio.Lock
) -> Prediction:
    if lock.locked():
        log.info("prediction_in_flight match_id=%s waiting=1", match.id)
        async with lock:
            latest = await store.find_latest_prediction(match.id)
        if latest is not None:
            return latest
        # the in-flight attempt stored nothing; generate our own

    async with lock:
        prediction = await generate_prediction(match, provider)
        try:
            stored = await store.insert_prediction(prediction)
        except Exception as exc:
            log.error("prediction_store_failed match_id=%s err=%s", match.id, exc)
            raise StorageFailure(match.id, reason=str(exc)) from exc
    return stored


async def generate_for_match(
    session: AsyncSession,
    match_id: str,
    *,
    provider_factory: Callable[[Match], DataProvider] | None = None,
) -> Prediction:
    repo = PredictionRepository(session)
    match = await repo.get_match(match_id)
    if match is None:
        raise MatchNotFound(match_id)
    provider = (provider_factory or default_provider)(match)
    return await predict_and_store(match, repo, provider)


async def run(
    session: AsyncSession,
    *,
    provider_factory: Callable[[Match], DataProvider] | None = None,
    now: datetime | None = None,
) -> dict:
    start = now or utcnow()
    end = start + timedelta(hours=int(settings.prediction_horizon_hours or 48))
    repo = PredictionRepository(session)
    matches = await repo.matches_missing_prediction(start, end)
    summary = {"matches": len(matches), "created": 0, "failed": 0}
    if not matches:
        log.info("build_predictions no matches")
        return summary

    log.info("build_predictions matches=%s horizon_hours=%s", len(matches), settings.prediction_horizon_hours)
    factory = provider_factory or default_provider
    for match in matches:
        try:
            await predict_and_store(match, repo, factory(match))
            summary["created"] += 1
        except Exception as exc:
            summary["failed"] += 1
            log.warning("build_predictions match_failed match_id=%s err=%s", match.id, exc)

    log.info(
        "build_predictions done matches=%s created=%s failed=%s",
        summary["matches"],
        summary["created"],
        summary["failed"],
    )
    return summary
