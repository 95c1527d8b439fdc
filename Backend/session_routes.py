"""
Game session routes.

Endpoints:
  POST  /api/sessions                    — Start a session, or resume the open one
  GET   /api/sessions/{session_id}       — Session totals
  PATCH /api/sessions/{session_id}       — Save running totals
  POST  /api/sessions/{session_id}/end   — Close the session with final totals
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from limiter import SESSION_WRITE_LIMIT, limiter, rate_limit_disabled
from schemas import GameSessionOut, GameSessionResponse, SessionEnd, SessionProgress, SessionStart
from sessions import (
    SessionEndedError,
    SessionNotFoundError,
    end_session,
    get_session,
    start_session,
    update_progress,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


@router.post("", response_model=GameSessionResponse)
@limiter.limit(SESSION_WRITE_LIMIT, exempt_when=rate_limit_disabled)
def start(request: Request, payload: SessionStart, db: Session = Depends(get_db)):
    try:
        session, resumed = start_session(db, payload.userId)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("start session failed for user %s: %s", payload.userId, exc)
        raise HTTPException(status_code=500, detail="Failed to start game session")

    if not resumed:
        logger.info("Player %s started session %s", payload.userId, session.id)
    return GameSessionResponse(session=GameSessionOut.model_validate(session), resumed=resumed)


@router.get("/{session_id}", response_model=GameSessionResponse)
def read(session_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        session = get_session(db, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SQLAlchemyError as exc:
        logger.error("read session failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch game session")
    return GameSessionResponse(session=GameSessionOut.model_validate(session))


@router.patch("/{session_id}", response_model=GameSessionResponse)
@limiter.limit(SESSION_WRITE_LIMIT, exempt_when=rate_limit_disabled)
def progress(request: Request, session_id: uuid.UUID, payload: SessionProgress, db: Session = Depends(get_db)):
    try:
        session = update_progress(db, session_id, payload)
        db.commit()
    except SessionNotFoundError as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc))
    except SessionEndedError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("update session %s failed: %s", session_id, exc)
        raise HTTPException(status_code=500, detail="Failed to update game session")
    return GameSessionResponse(session=GameSessionOut.model_validate(session))


@router.post("/{session_id}/end", response_model=GameSessionResponse)
@limiter.limit(SESSION_WRITE_LIMIT, exempt_when=rate_limit_disabled)
def end(request: Request, session_id: uuid.UUID, payload: SessionEnd, db: Session = Depends(get_db)):
    try:
        session = end_session(db, session_id, payload)
        db.commit()
    except SessionNotFoundError as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("end session %s failed: %s", session_id, exc)
        raise HTTPException(status_code=500, detail="Failed to end game session")
    return GameSessionResponse(session=GameSessionOut.model_validate(session))
