from __future__ import annotations

from datetime import datetime
import json
import uuid
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.logger import get_logger
from matchcast.core.timeutils import ensure_aware_utc
from matchcast.domain.models import EvidenceSnippet, FeatureImportance, Match, Prediction, Team

log = get_logger("data.repository")

_MATCH_SELECT = """
    SELECT m.id::text AS id, m.match_date, m.league, m.venue, m.status,
           m.api_fixture_id, m.api_league_id,
           ht.id::text AS home_id, ht.name AS home_name, ht.api_team_id AS home_api_id,
           at.id::text AS away_id, at.name AS away_name, at.api_team_id AS away_api_id,
           c.code AS country_code
    FROM matches m
    JOIN teams ht ON ht.id = m.home_team_id
    JOIN teams at ON at.id = m.away_team_id
    LEFT JOIN countries c ON c.id = m.country_id
"""

_PREDICTION_COLUMNS = """
    id::text AS id, match_id::text AS match_id,
    home_win_prob, draw_prob, away_win_prob,
    predicted_home_score, predicted_away_score,
    confidence_score, feature_importance, evidence_snippets,
    reasoning, model_version, created_at
"""


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True


def _json_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return list(value) if isinstance(value, list) else []


def _match_from_row(row) -> Match:
    return Match(
        id=row.id,
        home_team=Team(id=row.home_id, name=row.home_name or "", api_team_id=row.home_api_id),
        away_team=Team(id=row.away_id, name=row.away_name or "", api_team_id=row.away_api_id),
        venue=row.venue,
        league=row.league or "",
        country=row.country_code or "",
        match_date=ensure_aware_utc(row.match_date),
        api_fixture_id=row.api_fixture_id,
        api_league_id=row.api_league_id,
    )


def _prediction_from_row(row) -> Prediction:
    return Prediction(
        id=row.id,
        match_id=row.match_id,
        home_win_prob=float(row.home_win_prob),
        draw_prob=float(row.draw_prob),
        away_win_prob=float(row.away_win_prob),
        predicted_home_score=int(row.predicted_home_score),
        predicted_away_score=int(row.predicted_away_score),
        confidence_score=float(row.confidence_score),
        feature_importance=[FeatureImportance(**f) for f in _json_list(row.feature_importance)],
        evidence_snippets=[EvidenceSnippet(**e) for e in _json_list(row.evidence_snippets)],
        reasoning=row.reasoning or "",
        model_version=row.model_version,
        created_at=ensure_aware_utc(row.created_at),
    )


class PredictionRepository:
    """Storage collaborator: matches are read-only here, predictions are append-only."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_match(self, match_id: str) -> Optional[Match]:
        if not _is_uuid(match_id):
            return None
        res = await self.session.execute(
            text(_MATCH_SELECT + " WHERE m.id = CAST(:mid AS uuid)"),
            {"mid": str(match_id)},
        )
        row = res.first()
        return _match_from_row(row) if row else None

    async def list_upcoming_matches(self, country_code: str | None = None, limit: int = 50) -> list[Match]:
        res = await self.session.execute(
            text(
                _MATCH_SELECT
                + """
                WHERE m.status = 'scheduled'
                  AND m.match_date >= now()
                  AND (CAST(:cc AS text) IS NULL OR c.code = :cc)
                ORDER BY m.match_date ASC
                LIMIT :lim
                """
            ),
            {"cc": (country_code or "").upper() or None, "lim": int(limit)},
        )
        return [_match_from_row(r) for r in res.fetchall()]

    async def matches_missing_prediction(self, start: datetime, end: datetime) -> list[Match]:
        res = await self.session.execute(
            text(
                _MATCH_SELECT
                + """
                WHERE m.status = 'scheduled'
                  AND m.match_date >= :start AND m.match_date < :end
                  AND NOT EXISTS (SELECT 1 FROM predictions p WHERE p.match_id = m.id)
                ORDER BY m.match_date ASC
                """
            ),
            {"start": start, "end": end},
        )
        return [_match_from_row(r) for r in res.fetchall()]

    async def find_latest_prediction(self, match_id: str) -> Optional[Prediction]:
        if not _is_uuid(match_id):
            return None
        res = await self.session.execute(
            text(
                f"""
                SELECT {_PREDICTION_COLUMNS}
                FROM predictions
                WHERE match_id = CAST(:mid AS uuid)
                ORDER BY created_at DESC
                LIMIT 1
                """
            ),
            {"mid": str(match_id)},
        )
        row = res.first()
        return _prediction_from_row(row) if row else None

    async def insert_prediction(self, prediction: Prediction) -> Prediction:
        payload = prediction.model_dump(mode="json")
        try:
            res = await self.session.execute(
                text(
                    f"""
                    INSERT INTO predictions(
                      id, match_id, home_win_prob, draw_prob, away_win_prob,
                      predicted_home_score, predicted_away_score, confidence_score,
                      feature_importance, evidence_snippets, reasoning, model_version, created_at
                    )
                    VALUES(
                      CAST(:id AS uuid), CAST(:mid AS uuid), :ph, :pd, :pa,
                      :sh, :sa, :conf,
                      CAST(:fi AS jsonb), CAST(:ev AS jsonb), :reasoning, :mv, :created_at
                    )
                    RETURNING {_PREDICTION_COLUMNS}
                    """
                ),
                {
                    "id": prediction.id,
                    "mid": prediction.match_id,
                    "ph": prediction.home_win_prob,
                    "pd": prediction.draw_prob,
                    "pa": prediction.away_win_prob,
                    "sh": prediction.predicted_home_score,
                    "sa": prediction.predicted_away_score,
                    "conf": prediction.confidence_score,
                    "fi": json.dumps(payload["feature_importance"], ensure_ascii=False),
                    "ev": json.dumps(payload["evidence_snippets"], ensure_ascii=False),
                    "reasoning": prediction.reasoning,
                    "mv": prediction.model_version,
                    "created_at": prediction.created_at,
                },
            )
            row = res.first()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        log.info("prediction_stored match_id=%s prediction_id=%s", prediction.match_id, prediction.id)
        return _prediction_from_row(row)
