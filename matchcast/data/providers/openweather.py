from matchcast.core.config import settings
from matchcast.core.http import openweather_client, request_with_retries


def _num(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_weather(data: dict) -> dict | None:
    main = data.get("main") if isinstance(data, dict) else None
    if not isinstance(main, dict) or main.get("temp") is None:
        return None
    wind = data.get("wind") or {}
    rain = data.get("rain") or {}
    snow = data.get("snow") or {}
    conditions = data.get("weather") or [{}]
    return {
        "temperature": _num(main.get("temp")),
        "humidity": _num(main.get("humidity")),
        "wind_speed": _num(wind.get("speed")),
        "precipitation": _num(rain.get("1h")) + _num(snow.get("1h")),
        "condition": str((conditions[0] or {}).get("main") or ""),
    }


async def get_weather(city: str) -> dict | None:
    city = (city or "").strip()
    if not settings.openweather_key or not city:
        return None
    client = openweather_client()
    r = await request_with_retries(
        client,
        "GET",
        "/weather",
        params={
            "q": city,
            "appid": settings.openweather_key,
            "units": "metric",
        },
        retries=2,
        backoff_base=0.5,
        backoff_max=4.0,
    )
    if r.status_code == 404:
        return None
    r.raise_for_status()
    return parse_weather(r.json())
