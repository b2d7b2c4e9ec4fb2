"""Prediction scoring engine: one match + a data provider -> one unsaved Prediction.

The only I/O is through the provider; everything after the gather step is
pure and works on the same criteria vector.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Mapping

from matchcast.core.config import settings
from matchcast.core.logger import get_logger
from matchcast.core.timeutils import utcnow
from matchcast.data.gateway import DataProvider
from matchcast.domain.models import Match, Prediction
from matchcast.services import confidence, criteria, evidence, importance, probability, reasoning, scoreline
from matchcast.services.assembler import assemble

log = get_logger("services.engine")


async def generate_prediction(
    match: Match,
    provider: DataProvider,
    *,
    weights: Mapping[str, float] | None = None,
    clamp_policy: str | None = None,
    model_version: str | None = None,
    now: datetime | None = None,
) -> Prediction:
    now = now or utcnow()
    vector, snippets = await asyncio.gather(
        criteria.gather(match, provider),
        evidence.collect(match, provider, now=now),
    )

    probs = probability.predict(vector, weights, clamp_policy or settings.probability_clamp_policy)
    scores = scoreline.predict_scoreline(vector)
    ranked = importance.rank(vector)
    conf = confidence.estimate(vector, snippets)
    text = reasoning.generate(vector, probs, match)

    prediction = assemble(
        match,
        probs,
        scores,
        ranked,
        snippets,
        conf,
        text,
        model_version=model_version,
        now=now,
    )
    log.info(
        "prediction_generated match_id=%s home=%.3f draw=%.3f away=%.3f score=%s-%s confidence=%.3f evidence=%s",
        match.id,
        probs.home,
        probs.draw,
        probs.away,
        scores[0],
        scores[1],
        conf,
        len(snippets),
    )
    return prediction
