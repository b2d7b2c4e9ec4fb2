"""init schema: countries, teams, matches, predictions, api_cache

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
from alembic import op


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS countries (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          name VARCHAR(100) NOT NULL,
          code VARCHAR(3) NOT NULL UNIQUE,
          flag_emoji VARCHAR(16),
          timezone VARCHAR(64),
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS teams (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          name VARCHAR(100) NOT NULL,
          country_id UUID REFERENCES countries(id),
          league VARCHAR(100),
          api_team_id INTEGER UNIQUE,
          logo_url TEXT,
          home_stadium VARCHAR(200),
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS matches (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          home_team_id UUID NOT NULL REFERENCES teams(id),
          away_team_id UUID NOT NULL REFERENCES teams(id),
          country_id UUID REFERENCES countries(id),
          match_date TIMESTAMPTZ NOT NULL,
          league VARCHAR(100),
          venue VARCHAR(200),
          status VARCHAR(20) NOT NULL DEFAULT 'scheduled',
          home_score INTEGER,
          away_score INTEGER,
          api_fixture_id INTEGER UNIQUE,
          api_league_id INTEGER,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_matches_status_date ON matches(status, match_date)")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS predictions (
          id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
          match_id UUID NOT NULL REFERENCES matches(id) ON DELETE CASCADE,
          home_win_prob DOUBLE PRECISION NOT NULL,
          draw_prob DOUBLE PRECISION NOT NULL,
          away_win_prob DOUBLE PRECISION NOT NULL,
          predicted_home_score INTEGER NOT NULL CHECK (predicted_home_score >= 0),
          predicted_away_score INTEGER NOT NULL CHECK (predicted_away_score >= 0),
          confidence_score DOUBLE PRECISION NOT NULL CHECK (confidence_score BETWEEN 0.30 AND 0.95),
          model_version VARCHAR(50) NOT NULL,
          feature_importance JSONB NOT NULL DEFAULT '[]'::jsonb,
          evidence_snippets JSONB NOT NULL DEFAULT '[]'::jsonb,
          reasoning TEXT NOT NULL DEFAULT '',
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_predictions_match_created ON predictions(match_id, created_at DESC)")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS api_cache (
          cache_key TEXT PRIMARY KEY,
          payload JSONB NOT NULL DEFAULT '{}'::jsonb,
          expires_at TIMESTAMPTZ NOT NULL,
          created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS idx_api_cache_expires ON api_cache(expires_at)")


def downgrade():
    op.execute("DROP TABLE IF EXISTS api_cache")
    op.execute("DROP TABLE IF EXISTS predictions")
    op.execute("DROP TABLE IF EXISTS matches")
    op.execute("DROP TABLE IF EXISTS teams")
    op.execute("DROP TABLE IF EXISTS countries")
