"""Records shared by the engine, the storage repository and the HTTP API."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    api_team_id: Optional[int] = None


class Match(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    home_team: Team
    away_team: Team
    venue: Optional[str] = None
    league: str = ""
    country: str = ""
    match_date: datetime
    api_fixture_id: Optional[int] = None
    api_league_id: Optional[int] = None


class FeatureImportance(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: str
    impact: float = Field(ge=-1.0, le=1.0)
    description: str


class EvidenceSnippet(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    timestamp: datetime
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class Probabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: float
    draw: float
    away: float

    @property
    def total(self) -> float:
        return self.home + self.draw + self.away


class Prediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    match_id: str
    home_win_prob: float
    draw_prob: float
    away_win_prob: float
    predicted_home_score: int = Field(ge=0)
    predicted_away_score: int = Field(ge=0)
    confidence_score: float = Field(ge=0.30, le=0.95)
    feature_importance: List[FeatureImportance]
    evidence_snippets: List[EvidenceSnippet]
    reasoning: str
    model_version: str
    created_at: datetime
