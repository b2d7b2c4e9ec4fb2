from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.logger import get_logger
from matchcast.data.providers.cache import purge_expired

log = get_logger("jobs.maintenance")


async def run(session: AsyncSession) -> dict:
    try:
        result = await purge_expired(session, max_rows=int(settings.api_cache_max_rows or 0))
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    log.info("maintenance api_cache expired=%s overflow=%s", result["expired"], result["overflow"])
    return {"api_cache_deleted_expired": result["expired"], "api_cache_deleted_overflow": result["overflow"]}
