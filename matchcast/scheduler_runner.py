"""Standalone scheduler service: ``python -m matchcast.scheduler_runner``.

Runs the scheduled jobs (see ``build_scheduler``) outside the web
process, so the API can scale to several workers.
"""

import asyncio

from matchcast.core.config import settings
from matchcast.core.db import engine, init_db
from matchcast.core.http import close_http_clients, init_http_clients
from matchcast.core.logger import configure_logging, get_logger
from matchcast.main import _validate_runtime_config, build_scheduler

log = get_logger("scheduler_runner")


async def main() -> None:
    if not settings.scheduler_enabled:
        log.warning("scheduler_disabled SCHEDULER_ENABLED=false; exiting")
        return

    await init_db()
    await init_http_clients()
    _validate_runtime_config(for_scheduler=True)

    scheduler = build_scheduler()
    scheduler.start()
    log.info("scheduler_runner_started cron=%s", settings.job_build_predictions_cron)
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        await close_http_clients()
        await engine.dispose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
