"""
Game sessions: one row per sitting, open until ended.

A player has at most one open session in normal play. Starting again while
one is open resumes it, so a client that mounts twice or reconnects keeps
the same session id.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import PlayerGameSession
from player_stats import refresh_player_stats
from schemas import SessionEnd, SessionProgress

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: uuid.UUID):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionEndedError(ValueError):
    def __init__(self, session_id: uuid.UUID):
        super().__init__(f"Session {session_id} has already ended")
        self.session_id = session_id


def open_session(db: Session, player_id: uuid.UUID):
    """Most recently started open session for ``player_id``, or None."""
    return db.execute(
        select(PlayerGameSession)
        .where(PlayerGameSession.player_id == player_id, PlayerGameSession.ended_at.is_(None))
        .order_by(PlayerGameSession.started_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def start_session(db: Session, player_id: uuid.UUID) -> tuple[PlayerGameSession, bool]:
    """Resume the open session or create one. Returns ``(session, resumed)``; does not commit."""
    existing = open_session(db, player_id)
    if existing is not None:
        logger.debug("Resuming session %s for player %s", existing.id, player_id)
        return existing, True

    session = PlayerGameSession(
        player_id=player_id,
        started_at=datetime.now(timezone.utc),
        total_moves=0,
        total_score=0,
        species_discovered_in_session=0,
        clues_unlocked_in_session=0,
    )
    db.add(session)
    db.flush()
    return session, False


def get_session(db: Session, session_id: uuid.UUID) -> PlayerGameSession:
    session = db.get(PlayerGameSession, session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def update_progress(db: Session, session_id: uuid.UUID, progress: SessionProgress) -> PlayerGameSession:
    session = get_session(db, session_id)
    if session.ended_at is not None:
        raise SessionEndedError(session_id)

    if progress.totalMoves is not None:
        session.total_moves = progress.totalMoves
    if progress.totalScore is not None:
        session.total_score = progress.totalScore
    if progress.speciesDiscovered is not None:
        session.species_discovered_in_session = progress.speciesDiscovered
    if progress.cluesUnlocked is not None:
        session.clues_unlocked_in_session = progress.cluesUnlocked
    db.flush()
    return session


def end_session(db: Session, session_id: uuid.UUID, final: SessionEnd) -> PlayerGameSession:
    """
    Close a session with its final totals and refresh the player's stats.

    Ending an already ended session leaves it untouched.
    """
    session = get_session(db, session_id)
    if session.ended_at is not None:
        return session

    session.ended_at = datetime.now(timezone.utc)
    session.total_moves = final.totalMoves
    session.total_score = final.totalScore
    db.flush()
    refresh_player_stats(db, session.player_id)
    logger.info("Session %s ended: %d moves, score %d", session_id, final.totalMoves, final.totalScore)
    return session
