"""
High score routes.

Endpoints:
  GET  /api/highscores — Top 50 scores, highest first
  POST /api/highscores — Save a finished game's score
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cache import HIGHSCORES_KEY, ResponseCache, get_cache
from config import Settings, get_settings
from database import get_db
from limiter import HIGHSCORE_SUBMIT_LIMIT, limiter, rate_limit_disabled
from models import HighScore
from schemas import (
    HighScoreListResponse,
    HighScoreOut,
    HighScoreResponse,
    HighScoreSubmission,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/highscores", tags=["High Scores"])

TOP_SCORES_LIMIT = 50


@router.get("", response_model=HighScoreListResponse)
def list_highscores(
    db: Session = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """Return the top 50 scores, sorted by score descending."""

    # Try cache first
    cached = cache.get(HIGHSCORES_KEY)
    if cached:
        return HighScoreListResponse(**cached)

    try:
        rows = db.execute(
            select(HighScore)
            .order_by(HighScore.score.desc(), HighScore.created_at.asc())
            .limit(TOP_SCORES_LIMIT)
        ).scalars().all()
    except SQLAlchemyError as exc:
        logger.error("list_highscores failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch high scores")

    response = HighScoreListResponse(scores=[HighScoreOut.model_validate(r) for r in rows])
    cache.set(HIGHSCORES_KEY, response.model_dump(mode="json"), settings.highscores_cache_ttl)
    return response


@router.post("", response_model=HighScoreResponse)
@limiter.limit(HIGHSCORE_SUBMIT_LIMIT, exempt_when=rate_limit_disabled)
def submit_highscore(
    request: Request,
    payload: HighScoreSubmission,
    db: Session = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    """Append a score. Username is trimmed and must be 2-25 characters; score >= 0."""
    entry = HighScore(username=payload.username, score=payload.score)
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("submit_highscore failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to save high score")

    # Invalidate so the next read reflects the new score
    cache.invalidate(HIGHSCORES_KEY)

    logger.info("High score %d saved for %s", entry.score, entry.username)
    return HighScoreResponse(score=HighScoreOut.model_validate(entry))
