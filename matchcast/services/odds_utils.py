"""Bookmaker odds helpers."""

from __future__ import annotations

from typing import Optional, Tuple

MATCH_WINNER_MARKETS = ("Match Winner", "1X2")


def remove_overround_basic(
    odd_home: float | None,
    odd_draw: float | None,
    odd_away: float | None,
) -> Tuple[float | None, float | None, float | None]:
    """Remove the bookmaker margin by plain normalization.

    Implied probabilities of a priced market sum to more than 1 because of
    the overround; this rescales them to sum to exactly 1.

    Raises:
        ValueError: if any odd is <= 0
    """
    if odd_home is None or odd_draw is None or odd_away is None:
        return (None, None, None)

    odd_h = float(odd_home)
    odd_d = float(odd_draw)
    odd_a = float(odd_away)
    if odd_h <= 0 or odd_d <= 0 or odd_a <= 0:
        raise ValueError(f"Odds must be > 0, got: home={odd_h}, draw={odd_d}, away={odd_a}")

    imp_h = 1.0 / odd_h
    imp_d = 1.0 / odd_d
    imp_a = 1.0 / odd_a
    total = imp_h + imp_d + imp_a
    return (imp_h / total, imp_d / total, imp_a / total)


def _odd(value) -> Optional[float]:
    try:
        odd = float(value)
    except (TypeError, ValueError):
        return None
    return odd if odd > 1.0 else None


def _dicts(value) -> list[dict]:
    return [v for v in value if isinstance(v, dict)] if isinstance(value, list) else []


def first_match_winner_odds(odds_rows: list[dict] | None) -> Tuple[float | None, float | None, float | None]:
    """1X2 odds (home, draw, away) of the first bookmaker pricing the match-winner market."""
    for row in _dicts(odds_rows):
        for bookmaker in _dicts(row.get("bookmakers")):
            for bet in _dicts(bookmaker.get("bets")):
                if bet.get("name") not in MATCH_WINNER_MARKETS:
                    continue
                prices = {}
                for v in _dicts(bet.get("values")):
                    label = str(v.get("value") or "").strip().lower()
                    prices[label] = _odd(v.get("odd"))
                home = prices.get("home") or prices.get("1")
                draw = prices.get("draw") or prices.get("x")
                away = prices.get("away") or prices.get("2")
                if home and draw and away:
                    return home, draw, away
    return (None, None, None)
