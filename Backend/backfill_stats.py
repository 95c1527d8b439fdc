"""
Recompute ``player_stats`` for every player with discoveries or game sessions.

Repairs drift after manual data fixes or imports.

Usage:
    DATABASE_URL=postgresql://... python backfill_stats.py
"""

import logging
import sys

from sqlalchemy import select, union
from sqlalchemy.exc import SQLAlchemyError

from config import Settings
from database import build_engine, build_session_factory
from models import PlayerGameSession, PlayerSpeciesDiscovery
from player_stats import refresh_player_stats

logger = logging.getLogger(__name__)


def backfill(session_factory) -> tuple[int, int]:
    """Refresh each player in its own transaction; returns ``(succeeded, failed)``."""
    with session_factory() as db:
        player_ids = db.execute(
            union(select(PlayerSpeciesDiscovery.player_id), select(PlayerGameSession.player_id))
        ).scalars().all()
    logger.info("Found %d players to refresh", len(player_ids))

    success = failed = 0
    for player_id in player_ids:
        with session_factory() as db:
            try:
                refresh_player_stats(db, player_id)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                failed += 1
                logger.error("ERROR refreshing %s: %s", player_id, exc)
                continue
        success += 1
        logger.info("OK refreshed stats for %s", player_id)

    return success, failed


def main() -> int:
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s │ %(levelname)-7s │ %(message)s")
    engine = build_engine(settings)
    try:
        success, failed = backfill(build_session_factory(engine))
    finally:
        engine.dispose()
    logger.info("Backfill complete: %d success, %d failed", success, failed)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
