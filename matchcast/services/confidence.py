"""Scalar confidence from data completeness, evidence quality and directional consensus."""

from __future__ import annotations

from typing import Sequence

from matchcast.domain.models import EvidenceSnippet
from matchcast.services.criteria import CriteriaVector

CONFIDENCE_MIN = 0.30
CONFIDENCE_MAX = 0.95

BASE_CONFIDENCE = 0.5
COMPLETENESS_WEIGHT = 0.3
EVIDENCE_WEIGHT = 0.2
CONSENSUS_WEIGHT = 0.2
HOME_LEAN = 0.6
AWAY_LEAN = 0.4


def estimate(criteria: CriteriaVector, evidence: Sequence[EvidenceSnippet]) -> float:
    n = len(criteria)
    confidence = BASE_CONFIDENCE
    confidence += criteria.signal_count / n * COMPLETENESS_WEIGHT

    if evidence:
        avg = sum(e.confidence for e in evidence) / len(evidence)
        confidence += avg * EVIDENCE_WEIGHT

    values = list(criteria.values())
    home_lean = sum(1 for v in values if v > HOME_LEAN)
    away_lean = sum(1 for v in values if v < AWAY_LEAN)
    confidence += max(home_lean, away_lean) / n * CONSENSUS_WEIGHT

    return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, confidence))
