"""
Discovery and clue writes: batched migration of client-held discoveries,
single gameplay discoveries and clue unlocks.

Discoveries rely on the (player_id, species_id) unique constraint and clue
unlocks on (player_id, species_id, clue_category, clue_field), both with
``ON CONFLICT DO NOTHING``: the first write wins and later ones are no-ops,
including under concurrent submissions.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from database import dialect_insert
from models import PlayerClueUnlock, PlayerSpeciesDiscovery, Species
from player_stats import refresh_player_stats
from schemas import ClueUnlockSubmission, DiscoveryCandidate, DiscoverySubmission, coerce_species_id
from sessions import SessionNotFoundError, get_session

logger = logging.getLogger(__name__)

INSERTED = "inserted"
ALREADY_DISCOVERED = "already_discovered"
DUPLICATE = "duplicate"
UNKNOWN_SPECIES = "unknown_species"
INVALID = "invalid"


class UnknownSpeciesError(LookupError):
    """Raised when a discovery references a species id not in the catalog."""

    def __init__(self, species_id: int):
        super().__init__(f"Species {species_id} not found")
        self.species_id = species_id


class DiscoveryNotFoundError(LookupError):
    def __init__(self, discovery_id: uuid.UUID):
        super().__init__(f"Discovery {discovery_id} not found")
        self.discovery_id = discovery_id


@dataclass
class MigrationResult:
    migrated: int = 0
    results: list[dict] = field(default_factory=list)


def existing_species_ids(db: Session, ids: Iterable[int]) -> set[int]:
    ids = list(ids)
    if not ids:
        return set()
    rows = db.execute(select(Species.ogc_fid).where(Species.ogc_fid.in_(ids))).scalars().all()
    return set(rows)


def parse_candidate(raw) -> tuple[Optional[int], Optional[datetime]]:
    """Return ``(species_id, discovered_at)`` for one submitted item; species_id is None when unusable."""
    try:
        candidate = DiscoveryCandidate.model_validate(raw)
    except ValidationError:
        return None, None
    return coerce_species_id(candidate.id), candidate.discoveredAt


def _reported_id(raw):
    if isinstance(raw, dict):
        value = raw.get("id")
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
    return None


def migrate_discoveries(db: Session, player_id: uuid.UUID, items: list) -> MigrationResult:
    """
    Write every valid item with one ``INSERT ... ON CONFLICT DO NOTHING``.

    ``items`` is the raw submitted list. Each item gets exactly one status,
    in submission order. The caller owns the transaction (commit / rollback).
    """
    outcome = MigrationResult()
    statuses: list[Optional[str]] = []
    species_ids: list[Optional[int]] = []
    discovered: list[Optional[datetime]] = []
    seen: set[int] = set()

    for raw in items:
        species_id, discovered_at = parse_candidate(raw)
        species_ids.append(species_id)
        discovered.append(discovered_at)
        if species_id is None:
            statuses.append(INVALID)
        elif species_id in seen:
            statuses.append(DUPLICATE)
        else:
            seen.add(species_id)
            statuses.append(None)

    known = existing_species_ids(db, seen)

    now = datetime.now(timezone.utc)
    rows = []
    for idx in range(len(items)):
        if statuses[idx] is not None:
            continue
        if species_ids[idx] not in known:
            statuses[idx] = UNKNOWN_SPECIES
            continue
        rows.append(
            {
                "id": uuid.uuid4(),
                "player_id": player_id,
                "species_id": species_ids[idx],
                "discovered_at": discovered[idx] or now,
                "clues_unlocked_before_guess": 0,
                "incorrect_guesses_count": 0,
                "score_earned": 0,
            }
        )

    inserted: set[int] = set()
    if rows:
        insert = dialect_insert(db)
        stmt = (
            insert(PlayerSpeciesDiscovery)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["player_id", "species_id"])
            .returning(PlayerSpeciesDiscovery.species_id)
        )
        inserted = set(db.execute(stmt).scalars().all())
        if inserted:
            refresh_player_stats(db, player_id)

    for idx, raw in enumerate(items):
        status = statuses[idx]
        if status is None:
            status = INSERTED if species_ids[idx] in inserted else ALREADY_DISCOVERED
        outcome.results.append({"id": _reported_id(raw), "status": status})

    outcome.migrated = len(inserted)
    logger.info(
        "Migrated %d of %d discoveries for player %s", outcome.migrated, len(items), player_id
    )
    return outcome


def count_clue_unlocks(db: Session, player_id: uuid.UUID, species_id: int) -> int:
    return db.execute(
        select(func.count())
        .select_from(PlayerClueUnlock)
        .where(PlayerClueUnlock.player_id == player_id, PlayerClueUnlock.species_id == species_id)
    ).scalar_one()


def record_discovery(db: Session, payload: DiscoverySubmission) -> tuple[PlayerSpeciesDiscovery, bool]:
    """
    Record a discovery made in play. Returns ``(row, created)``; an existing
    row for the same player and species is returned untouched.

    Clue unlocks for the species that are not yet tied to a discovery are
    linked to the row.
    """
    if not existing_species_ids(db, [payload.speciesId]):
        raise UnknownSpeciesError(payload.speciesId)
    if payload.sessionId is not None:
        session = get_session(db, payload.sessionId)
        if session.player_id != payload.userId:
            raise SessionNotFoundError(payload.sessionId)

    clues_before = payload.cluesUnlockedBeforeGuess
    if clues_before is None:
        clues_before = count_clue_unlocks(db, payload.userId, payload.speciesId)

    insert = dialect_insert(db)
    stmt = (
        insert(PlayerSpeciesDiscovery)
        .values(
            id=uuid.uuid4(),
            player_id=payload.userId,
            species_id=payload.speciesId,
            session_id=payload.sessionId,
            discovered_at=datetime.now(timezone.utc),
            time_to_discover_seconds=payload.timeToDiscoverSeconds,
            clues_unlocked_before_guess=clues_before,
            incorrect_guesses_count=payload.incorrectGuessesCount,
            score_earned=payload.scoreEarned,
        )
        .on_conflict_do_nothing(index_elements=["player_id", "species_id"])
        .returning(PlayerSpeciesDiscovery.id)
    )
    created = db.execute(stmt).scalar_one_or_none() is not None

    row = db.execute(
        select(PlayerSpeciesDiscovery).where(
            PlayerSpeciesDiscovery.player_id == payload.userId,
            PlayerSpeciesDiscovery.species_id == payload.speciesId,
        )
    ).scalar_one()

    linked = db.execute(
        update(PlayerClueUnlock)
        .where(
            PlayerClueUnlock.player_id == payload.userId,
            PlayerClueUnlock.species_id == payload.speciesId,
            PlayerClueUnlock.discovery_id.is_(None),
        )
        .values(discovery_id=row.id)
    ).rowcount
    if linked:
        logger.debug("Linked %d clue unlocks to discovery %s", linked, row.id)

    if created:
        refresh_player_stats(db, payload.userId)
    return row, created


def list_discoveries(db: Session, player_id: uuid.UUID) -> list[PlayerSpeciesDiscovery]:
    return list(
        db.execute(
            select(PlayerSpeciesDiscovery)
            .where(PlayerSpeciesDiscovery.player_id == player_id)
            .order_by(PlayerSpeciesDiscovery.discovered_at.desc())
        ).scalars()
    )


def track_clue_unlock(db: Session, payload: ClueUnlockSubmission) -> tuple[PlayerClueUnlock, bool]:
    """
    Record a revealed clue. Returns ``(row, created)``.

    A repeat unlock of the same clue field keeps the original row and value;
    a ``discoveryId`` on the repeat still links the row to that discovery.
    """
    if not existing_species_ids(db, [payload.speciesId]):
        raise UnknownSpeciesError(payload.speciesId)
    if payload.discoveryId is not None:
        discovery = db.get(PlayerSpeciesDiscovery, payload.discoveryId)
        if (
            discovery is None
            or discovery.player_id != payload.userId
            or discovery.species_id != payload.speciesId
        ):
            raise DiscoveryNotFoundError(payload.discoveryId)

    insert = dialect_insert(db)
    stmt = (
        insert(PlayerClueUnlock)
        .values(
            id=uuid.uuid4(),
            player_id=payload.userId,
            species_id=payload.speciesId,
            discovery_id=payload.discoveryId,
            clue_category=payload.clueCategory,
            clue_field=payload.clueField,
            clue_value=payload.clueValue,
            unlocked_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(
            index_elements=["player_id", "species_id", "clue_category", "clue_field"]
        )
        .returning(PlayerClueUnlock.id)
    )
    created = db.execute(stmt).scalar_one_or_none() is not None

    row = db.execute(
        select(PlayerClueUnlock).where(
            PlayerClueUnlock.player_id == payload.userId,
            PlayerClueUnlock.species_id == payload.speciesId,
            PlayerClueUnlock.clue_category == payload.clueCategory,
            PlayerClueUnlock.clue_field == payload.clueField,
        )
    ).scalar_one()

    if not created and payload.discoveryId is not None and row.discovery_id != payload.discoveryId:
        row.discovery_id = payload.discoveryId
        db.flush()

    if created:
        refresh_player_stats(db, payload.userId)
    return row, created


def list_clue_unlocks(
    db: Session, player_id: uuid.UUID, species_id: Optional[int] = None
) -> list[PlayerClueUnlock]:
    stmt = select(PlayerClueUnlock).where(PlayerClueUnlock.player_id == player_id)
    if species_id is not None:
        stmt = stmt.where(PlayerClueUnlock.species_id == species_id)
    return list(db.execute(stmt.order_by(PlayerClueUnlock.unlocked_at, PlayerClueUnlock.id)).scalars())
