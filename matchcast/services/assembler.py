from __future__ import annotations

from datetime import datetime
import uuid
from typing import Sequence

from matchcast.core.config import settings
from matchcast.core.timeutils import ensure_aware_utc, utcnow
from matchcast.domain.models import EvidenceSnippet, FeatureImportance, Match, Prediction, Probabilities


def assemble(
    match: Match,
    probabilities: Probabilities,
    scores: tuple[int, int],
    importance: Sequence[FeatureImportance],
    evidence: Sequence[EvidenceSnippet],
    confidence: float,
    reasoning: str,
    *,
    model_version: str | None = None,
    now: datetime | None = None,
) -> Prediction:
    home_score, away_score = scores
    return Prediction(
        id=str(uuid.uuid4()),
        match_id=match.id,
        home_win_prob=probabilities.home,
        draw_prob=probabilities.draw,
        away_win_prob=probabilities.away,
        predicted_home_score=int(home_score),
        predicted_away_score=int(away_score),
        confidence_score=confidence,
        feature_importance=list(importance),
        evidence_snippets=list(evidence),
        reasoning=reasoning,
        model_version=model_version or settings.model_version,
        created_at=ensure_aware_utc(now) if now else utcnow(),
    )
