"""
scripts/generate_prediction.py
==============================
Generate a prediction for one match, or run the batch job once.

Usage:
    python scripts/generate_prediction.py <match_id>
    python scripts/generate_prediction.py <match_id> --dry-run   # compute and print, do not store
    python scripts/generate_prediction.py --batch                # predictions for every upcoming match without one
    python scripts/generate_prediction.py --sync                 # pull upcoming fixtures from API-Football
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from matchcast.core.logger import get_logger  # noqa: E402

log = get_logger("scripts.generate_prediction")


async def _run(match_id: str | None, *, dry_run: bool, batch: bool, sync: bool = False) -> int:
    from matchcast.core.db import SessionLocal, engine, init_db
    from matchcast.core.errors import MatchNotFound, StorageFailure
    from matchcast.core.http import close_http_clients, init_http_clients
    from matchcast.data.repository import PredictionRepository
    from matchcast.jobs import build_predictions, sync_fixtures
    from matchcast.services.engine import generate_prediction

    await init_db()
    await init_http_clients()
    try:
        async with SessionLocal() as session:
            if sync:
                summary = await sync_fixtures.run(session)
                print(json.dumps(summary, indent=2))
                return 0 if not summary["failed_leagues"] else 1

            if batch:
                summary = await build_predictions.run(session)
                print(json.dumps(summary, indent=2))
                return 0 if not summary["failed"] else 1

            try:
                if dry_run:
                    match = await PredictionRepository(session).get_match(match_id)
                    if match is None:
                        raise MatchNotFound(match_id)
                    prediction = await generate_prediction(match, build_predictions.default_provider(match))
                else:
                    prediction = await build_predictions.generate_for_match(session, match_id)
            except MatchNotFound as exc:
                log.error("%s", exc)
                return 2
            except StorageFailure as exc:
                log.error("%s", exc)
                return 3
            print(json.dumps(prediction.model_dump(mode="json"), indent=2, ensure_ascii=False))
            return 0
    finally:
        await close_http_clients()
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Generate a match prediction")
    parser.add_argument("match_id", nargs="?", help="Match UUID")
    parser.add_argument("--dry-run", action="store_true", help="Compute and print without storing")
    parser.add_argument("--batch", action="store_true", help="Run the build_predictions job once")
    parser.add_argument("--sync", action="store_true", help="Run the sync_fixtures job once")
    args = parser.parse_args()
    if not (args.batch or args.sync) and not args.match_id:
        parser.error("match_id is required unless --batch or --sync is given")
    sys.exit(asyncio.run(_run(args.match_id, dry_run=args.dry_run, batch=args.batch, sync=args.sync)))


if __name__ == "__main__":
    main()
