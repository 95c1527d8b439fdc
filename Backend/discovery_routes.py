"""
Discovery routes.

Endpoints:
  POST /api/discoveries/migrate               — Reconcile locally cached discoveries
  POST /api/discoveries                       — Record a discovery made in play
  POST /api/clues                             — Record a revealed clue
  GET  /api/clues                             — A player's clue unlocks
  GET  /api/players/{player_id}/discoveries   — A player's discoveries, newest first
  GET  /api/players/{player_id}/stats         — A player's aggregate stats
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from discoveries import (
    DiscoveryNotFoundError,
    UnknownSpeciesError,
    list_clue_unlocks,
    list_discoveries,
    migrate_discoveries,
    record_discovery,
    track_clue_unlock,
)
from limiter import CLUE_WRITE_LIMIT, DISCOVERY_WRITE_LIMIT, MIGRATION_LIMIT, limiter, rate_limit_disabled
from player_stats import get_player_stats
from schemas import (
    ClueUnlockListResponse,
    ClueUnlockOut,
    ClueUnlockResponse,
    ClueUnlockSubmission,
    DiscoveryListResponse,
    DiscoveryOut,
    DiscoveryResponse,
    DiscoverySubmission,
    MigrationRequest,
    MigrationResponse,
    PlayerStatsOut,
)
from sessions import SessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/discoveries", tags=["Discoveries"])
players_router = APIRouter(prefix="/api/players", tags=["Players"])
clues_router = APIRouter(prefix="/api/clues", tags=["Clues"])


# ── 1. Migrate local discoveries ─────────────────────────────────

@router.post("/migrate", response_model=MigrationResponse)
@limiter.limit(MIGRATION_LIMIT, exempt_when=rate_limit_disabled)
def migrate(request: Request, payload: MigrationRequest, db: Session = Depends(get_db)):
    """
    Migrate a client's locally cached discoveries into the database.

    Unknown or malformed species ids are skipped; rows that already exist are
    left untouched. Every item's outcome is reported in ``results``.
    """
    if payload.userId is None or payload.discoveries is None:
        raise HTTPException(status_code=400, detail="Missing userId or discoveries array")

    if not payload.discoveries:
        return MigrationResponse(migrated=0, results=[])

    try:
        outcome = migrate_discoveries(db, payload.userId, payload.discoveries)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("migrate failed for user %s: %s", payload.userId, exc)
        raise HTTPException(status_code=500, detail="Failed to migrate discoveries")

    return MigrationResponse(migrated=outcome.migrated, results=outcome.results)


# ── 2. Record a discovery ────────────────────────────────────────

@router.post("", response_model=DiscoveryResponse)
@limiter.limit(DISCOVERY_WRITE_LIMIT, exempt_when=rate_limit_disabled)
def create_discovery(request: Request, payload: DiscoverySubmission, db: Session = Depends(get_db)):
    """Record a correct guess. A repeat guess for the same species is a no-op."""
    try:
        row, created = record_discovery(db, payload)
        db.commit()
    except (UnknownSpeciesError, SessionNotFoundError) as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("create_discovery failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to record discovery")

    if created:
        logger.info("Player %s discovered species %d", payload.userId, payload.speciesId)
    return DiscoveryResponse(discovery=DiscoveryOut.model_validate(row), created=created)


# ── 3. Player reads ──────────────────────────────────────────────

@players_router.get("/{player_id}/discoveries", response_model=DiscoveryListResponse)
def player_discoveries(player_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        rows = list_discoveries(db, player_id)
    except SQLAlchemyError as exc:
        logger.error("player_discoveries failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch discoveries")
    return DiscoveryListResponse(
        discoveries=[DiscoveryOut.model_validate(r) for r in rows],
        count=len(rows),
    )


@players_router.get("/{player_id}/stats", response_model=PlayerStatsOut)
def player_stats(player_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        stats = get_player_stats(db, player_id)
    except SQLAlchemyError as exc:
        logger.error("player_stats failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch player stats")
    if stats is None:
        raise HTTPException(status_code=404, detail=f"No stats for player {player_id}")
    return PlayerStatsOut.model_validate(stats)


# ── 4. Clue unlocks ──────────────────────────────────────────────

@clues_router.post("", response_model=ClueUnlockResponse)
@limiter.limit(CLUE_WRITE_LIMIT, exempt_when=rate_limit_disabled)
def create_clue_unlock(request: Request, payload: ClueUnlockSubmission, db: Session = Depends(get_db)):
    """Record a revealed clue. Unlocking the same clue field again is a no-op."""
    try:
        row, created = track_clue_unlock(db, payload)
        db.commit()
    except (UnknownSpeciesError, DiscoveryNotFoundError) as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("create_clue_unlock failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to record clue unlock")

    return ClueUnlockResponse(clue=ClueUnlockOut.model_validate(row), created=created)


@clues_router.get("", response_model=ClueUnlockListResponse)
def clue_unlocks(
    userId: uuid.UUID,
    speciesId: Optional[int] = None,
    db: Session = Depends(get_db),
):
    try:
        rows = list_clue_unlocks(db, userId, speciesId)
    except SQLAlchemyError as exc:
        logger.error("clue_unlocks failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch clue unlocks")
    return ClueUnlockListResponse(
        clues=[ClueUnlockOut.model_validate(r) for r in rows],
        count=len(rows),
    )
