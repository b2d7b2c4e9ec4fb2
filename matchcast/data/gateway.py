"""Data-provider collaborator consumed by the criteria gatherer and the evidence collector.

Every read is independently failable; callers decide how to degrade.
A read returns None when the fixture lacks the identifiers it needs, which
callers treat the same as a failed read ("no data"), while an empty list
is a real answer (e.g. no injuries reported).
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matchcast.core.config import settings
from matchcast.data.providers import api_football, news, openweather


class DataProvider(Protocol):
    async def get_team_statistics(self, team_id: Optional[int]) -> Optional[dict]: ...

    async def get_team_form(self, team_id: Optional[int], last_n: int) -> Optional[list[str]]: ...

    async def get_head_to_head(
        self, team_id_a: Optional[int], team_id_b: Optional[int], last_n: int
    ) -> Optional[list[dict]]: ...

    async def get_injuries(self, team_id: Optional[int]) -> Optional[list[dict]]: ...

    async def get_weather(self, location: str) -> Optional[dict]: ...

    async def get_odds(self, fixture_id: Optional[int]) -> Optional[list[dict]]: ...

    async def get_team_news(self, team_name: str) -> list[dict]: ...


class ProviderGateway:
    """API-Football / OpenWeather / NewsAPI reads for one fixture.

    Reads run concurrently, so each one opens its own session for the
    response cache instead of sharing the caller's session.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        league_id: Optional[int],
        season: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.league_id = league_id
        self.season = int(season or settings.season)

    async def _with_session(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs):
        async with self._session_factory() as session:
            result = await fn(session, *args, **kwargs)
            await session.commit()
            return result

    async def get_team_statistics(self, team_id: Optional[int]) -> Optional[dict]:
        if team_id is None or self.league_id is None:
            return None
        return await self._with_session(api_football.get_team_statistics, team_id, self.league_id, self.season)

    async def get_team_form(self, team_id: Optional[int], last_n: int) -> Optional[list[str]]:
        if team_id is None:
            return None
        return await self._with_session(api_football.get_team_form, team_id, last_n)

    async def get_head_to_head(
        self, team_id_a: Optional[int], team_id_b: Optional[int], last_n: int
    ) -> Optional[list[dict]]:
        if team_id_a is None or team_id_b is None:
            return None
        return await self._with_session(api_football.get_head_to_head, team_id_a, team_id_b, last_n)

    async def get_injuries(self, team_id: Optional[int]) -> Optional[list[dict]]:
        if team_id is None:
            return None
        return await self._with_session(api_football.get_injuries, team_id, self.season)

    async def get_weather(self, location: str) -> Optional[dict]:
        return await openweather.get_weather(location)

    async def get_odds(self, fixture_id: Optional[int]) -> Optional[list[dict]]:
        if fixture_id is None:
            return None
        return await self._with_session(api_football.get_odds, fixture_id)

    async def get_team_news(self, team_name: str) -> list[dict]:
        return await self._with_session(news.get_team_news, team_name)
