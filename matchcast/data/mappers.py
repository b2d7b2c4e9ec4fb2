from typing import Optional

WIN = "W"
DRAW = "D"
LOSS = "L"

FINAL_STATUSES = ("FT", "AET", "PEN")


def normalize_status(short_status: Optional[str]) -> str:
    code = (short_status or "").upper()
    if not code:
        return "UNK"

    not_started = {"NS", "PENDING"}
    canceled = {"CANC", "ABD", "AWD", "WO"}
    in_play = {"1H", "HT", "2H", "ET", "BT", "P", "LIVE", "INT"}

    if code in FINAL_STATUSES:
        return code
    if code in not_started:
        return "NS"
    if code in canceled:
        return code
    if code == "PST":
        return "PST"
    if code == "SUSP":
        return "SUSP"
    if code == "TBD":
        return "TBD"
    if code in in_play:
        return "LIVE"
    return "UNK"


def _int_or_none(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _field(data, *path):
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def fixture_goals(fixture: dict) -> tuple[Optional[int], Optional[int]]:
    return _int_or_none(_field(fixture, "goals", "home")), _int_or_none(_field(fixture, "goals", "away"))


def fixture_team_ids(fixture: dict) -> tuple[Optional[int], Optional[int]]:
    return (
        _int_or_none(_field(fixture, "teams", "home", "id")),
        _int_or_none(_field(fixture, "teams", "away", "id")),
    )


def fixture_status(fixture: dict) -> str:
    short = _field(fixture, "fixture", "status", "short")
    return normalize_status(short if isinstance(short, str) else None)


def is_finished(fixture: dict) -> bool:
    return fixture_status(fixture) in FINAL_STATUSES


# matches.status values
STORED_STATUSES = {
    "NS": "scheduled",
    "TBD": "scheduled",
    "LIVE": "live",
    "SUSP": "live",
    "PST": "postponed",
    "CANC": "cancelled",
    "ABD": "cancelled",
    "AWD": "finished",
    "WO": "finished",
}


def stored_status(short_status: Optional[str]) -> str:
    code = normalize_status(short_status)
    if code in FINAL_STATUSES:
        return "finished"
    return STORED_STATUSES.get(code, "unknown")


def fixture_outcome(fixture: dict, team_id: int) -> Optional[str]:
    """Result of a finished fixture from ``team_id``'s point of view (W/D/L), None when unknown."""
    home_goals, away_goals = fixture_goals(fixture)
    home_id, away_id = fixture_team_ids(fixture)
    if home_goals is None or away_goals is None:
        return None
    if team_id == home_id:
        own, other = home_goals, away_goals
    elif team_id == away_id:
        own, other = away_goals, home_goals
    else:
        return None
    if own > other:
        return WIN
    if own < other:
        return LOSS
    return DRAW
