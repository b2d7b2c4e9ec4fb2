import asyncio
from contextlib import asynccontextmanager
import hashlib
import os
import time
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from matchcast.core.config import settings
from matchcast.core.db import SessionLocal, engine, get_session, init_db
from matchcast.core.errors import MatchNotFound, StorageFailure
from matchcast.core.http import close_http_clients, init_http_clients
from matchcast.core.logger import get_logger
from matchcast.data.repository import PredictionRepository
from matchcast.domain.models import Match, Prediction
from matchcast.jobs import build_predictions, maintenance, sync_fixtures

logger = get_logger("main")
JOB_LOCKS: dict[str, asyncio.Lock] = {}


def _advisory_key(name: str) -> int:
    digest = hashlib.blake2b(f"matchcast:{name}".encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") & 0x7FFF_FFFF_FFFF_FFFF


async def _try_advisory_lock(conn, key: int) -> bool:
    try:
        row = (await conn.execute(text("SELECT pg_try_advisory_lock(:k) AS ok"), {"k": int(key)})).first()
        return bool(row and row.ok)
    except Exception as e:
        logger.warning("advisory_lock_failed key=%s err=%s", key, e)
        return False


async def _advisory_unlock(conn, key: int) -> None:
    try:
        await conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": int(key)})
    except Exception as e:
        logger.warning("advisory_unlock_failed key=%s err=%s", key, e)


def _require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")):
    token = (settings.admin_token or "").strip()
    if not token:
        raise HTTPException(status_code=403, detail="Admin token is not configured")
    if x_admin_token != token:
        raise HTTPException(status_code=403, detail="Forbidden")


def _invalid_api_key() -> bool:
    v = (settings.api_football_key or "").strip()
    return v in {"", "YOUR_KEY", "your_paid_key"}


def _validate_runtime_config(*, for_scheduler: bool) -> None:
    if settings.is_prod:
        if not (settings.admin_token or "").strip():
            raise RuntimeError("ADMIN_TOKEN is required in prod")
        if _invalid_api_key():
            raise RuntimeError("API_FOOTBALL_KEY is required in prod")
    elif for_scheduler and _invalid_api_key():
        logger.warning("API_FOOTBALL_KEY is not configured; predictions will use neutral criteria")


def _get_lock(name: str) -> asyncio.Lock:
    lock = JOB_LOCKS.get(name)
    if lock is None:
        lock = asyncio.Lock()
        JOB_LOCKS[name] = lock
    return lock


async def _run_job(job_name: str, job_fn, triggered_by: str | None = None):
    lock = _get_lock(job_name)
    if lock.locked():
        logger.warning("job_skip_already_running job=%s", job_name)
        return None
    async with lock:
        key = _advisory_key(job_name)
        async with engine.connect() as lock_conn:
            if not await _try_advisory_lock(lock_conn, key):
                logger.warning("job_skip_global_lock job=%s", job_name)
                return None
            try:
                async with SessionLocal() as session:
                    t0 = time.perf_counter()
                    try:
                        result = await job_fn(session)
                    except Exception:
                        logger.exception("job_failed job=%s triggered_by=%s", job_name, triggered_by)
                        await session.rollback()
                        return None
                    dur_ms = int((time.perf_counter() - t0) * 1000)
                    logger.info("job_ok job=%s triggered_by=%s duration_ms=%s result=%s", job_name, triggered_by, dur_ms, result)
                    return result
            finally:
                await _advisory_unlock(lock_conn, key)


async def _scheduled_build_predictions():
    await _run_job("build_predictions", build_predictions.run, triggered_by="scheduler")


async def _scheduled_sync_fixtures():
    if _invalid_api_key():
        logger.warning("job_skip_no_api_key job=sync_fixtures")
        return None
    await _run_job("sync_fixtures", sync_fixtures.run, triggered_by="scheduler")


async def _scheduled_maintenance():
    await _run_job("maintenance", maintenance.run, triggered_by="scheduler")


def build_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        _scheduled_build_predictions,
        CronTrigger.from_crontab(settings.job_build_predictions_cron, timezone="UTC"),
        id="build_predictions",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )
    scheduler.add_job(
        _scheduled_sync_fixtures,
        CronTrigger.from_crontab(settings.job_sync_fixtures_cron, timezone="UTC"),
        id="sync_fixtures",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=900,
    )
    scheduler.add_job(
        _scheduled_maintenance,
        CronTrigger.from_crontab(settings.job_maintenance_cron, timezone="UTC"),
        id="maintenance",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )
    return scheduler


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_db()
    await init_http_clients()
    _validate_runtime_config(for_scheduler=bool(settings.scheduler_enabled))

    scheduler = None
    if settings.scheduler_enabled:
        workers_raw = os.getenv("UVICORN_WORKERS") or os.getenv("WEB_CONCURRENCY") or "1"
        try:
            workers = int(workers_raw)
        except ValueError:
            workers = 1
        if workers > 1:
            logger.error("scheduler_refuse_multiworker workers=%s", workers)
            raise RuntimeError("scheduler is not allowed with UVICORN_WORKERS/WEB_CONCURRENCY > 1; run a separate scheduler service")
        scheduler = build_scheduler()
        scheduler.start()
        logger.info("scheduler_started cron=%s", settings.job_build_predictions_cron)

    try:
        yield
    finally:
        if scheduler is not None and scheduler.running:
            scheduler.shutdown(wait=False)
        try:
            await close_http_clients()
        except Exception:
            logger.exception("http_client_close_failed")
        try:
            await engine.dispose()
        except Exception:
            logger.exception("engine_dispose_failed")


app = FastAPI(title="Matchcast prediction engine", lifespan=lifespan)


@app.exception_handler(MatchNotFound)
async def _match_not_found(_: Request, exc: MatchNotFound):
    return JSONResponse(status_code=404, content={"detail": "Match not found", "match_id": exc.match_id})


@app.exception_handler(StorageFailure)
async def _storage_failure(_: Request, exc: StorageFailure):
    return JSONResponse(status_code=503, content={"detail": "Prediction could not be stored", "match_id": exc.match_id})


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/api/v1/matches", response_model=List[Match])
async def list_matches(
    country: Optional[str] = Query(default=None, min_length=2, max_length=3),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
):
    return await PredictionRepository(session).list_upcoming_matches(country_code=country, limit=limit)


@app.get("/api/v1/matches/{match_id}/prediction", response_model=Prediction)
async def latest_prediction(match_id: str, session: AsyncSession = Depends(get_session)):
    repo = PredictionRepository(session)
    if await repo.get_match(match_id) is None:
        raise MatchNotFound(match_id)
    prediction = await repo.find_latest_prediction(match_id)
    if prediction is None:
        raise HTTPException(status_code=404, detail="No prediction for this match yet")
    return prediction


@app.post("/api/v1/matches/{match_id}/prediction", response_model=Prediction, status_code=201)
async def create_prediction(
    match_id: str,
    session: AsyncSession = Depends(get_session),
    _: None = Depends(_require_admin),
):
    return await build_predictions.generate_for_match(session, match_id)
