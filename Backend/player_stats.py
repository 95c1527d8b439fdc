"""
Rebuilds the denormalized ``player_stats`` row from a player's discoveries,
clue unlocks and game sessions.

Called inside the same transaction as every discovery write, new clue unlock
and session end, and in bulk by ``backfill_stats.py`` to repair drift.
"""

import logging
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from database import dialect_insert
from models import PlayerClueUnlock, PlayerGameSession, PlayerSpeciesDiscovery, PlayerStats, Species

logger = logging.getLogger(__name__)

# Shapefile habitat columns hold free text flags.
_TRUTHY = {"true", "t", "yes", "y", "1"}

_BREAKDOWNS = {
    "species_by_order": Species.order,
    "species_by_family": Species.family,
    "species_by_genus": Species.genus,
    "species_by_realm": Species.realm,
    "species_by_biome": Species.biome,
    "species_by_bioregion": Species.bioregio_1,
    "species_by_iucn_status": Species.category,
}

_HABITAT_COUNTS = {
    "marine_species_count": Species.marine,
    "terrestrial_species_count": Species.terrestria,
    "freshwater_species_count": Species.freshwater,
    "aquatic_species_count": Species.aquatic,
}


def is_flagged(value) -> bool:
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def compute_player_stats(rows, clue_categories=(), sessions=()) -> dict:
    """
    Aggregate discovery rows into ``player_stats`` column values.

    Each row is a mapping with the discovery's counters plus the species
    columns named in ``_BREAKDOWNS`` / ``_HABITAT_COUNTS`` (labelled by the
    stats column they feed). ``clue_categories`` holds one category per
    unlocked clue; ``sessions`` holds mappings with ``started_at``,
    ``ended_at`` and ``total_moves``.
    """
    rows = list(rows)
    stats = {
        "total_species_discovered": len(rows),
        "total_score": sum(r["score_earned"] or 0 for r in rows),
        "total_clues_unlocked": 0,
        "average_clues_per_discovery": None,
        "fastest_discovery_clues": None,
        "slowest_discovery_clues": None,
        "average_time_per_discovery_seconds": None,
        "first_discovery_at": None,
        "last_discovery_at": None,
    }

    clues = [r["clues_unlocked_before_guess"] or 0 for r in rows]
    if clues:
        stats["total_clues_unlocked"] = sum(clues)
        stats["average_clues_per_discovery"] = round(sum(clues) / len(clues), 2)
        stats["fastest_discovery_clues"] = min(clues)
        stats["slowest_discovery_clues"] = max(clues)

    times = [r["time_to_discover_seconds"] for r in rows if r["time_to_discover_seconds"] is not None]
    if times:
        stats["average_time_per_discovery_seconds"] = round(sum(times) / len(times))

    timestamps = [r["discovered_at"] for r in rows if r["discovered_at"] is not None]
    if timestamps:
        stats["first_discovery_at"] = min(timestamps)
        stats["last_discovery_at"] = max(timestamps)

    for column in _BREAKDOWNS:
        counts = Counter(r[column] for r in rows if r[column])
        stats[column] = dict(counts)

    for column in _HABITAT_COUNTS:
        stats[column] = sum(1 for r in rows if is_flagged(r[column]))

    by_category = Counter(c for c in clue_categories if c)
    stats["clues_by_category"] = dict(by_category)
    # Ties go to the alphabetically first category.
    stats["favorite_clue_category"] = (
        sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))[0][0] if by_category else None
    )

    sessions = list(sessions)
    finished = [s for s in sessions if s["ended_at"] is not None and s["started_at"] is not None]
    stats["total_games_played"] = len(finished)
    stats["total_moves_made"] = sum(s["total_moves"] or 0 for s in sessions)
    stats["total_play_time_seconds"] = sum(
        max(0, int((_as_utc(s["ended_at"]) - _as_utc(s["started_at"])).total_seconds())) for s in finished
    )

    return stats


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def refresh_player_stats(db: Session, player_id: uuid.UUID) -> dict:
    """Recompute and upsert the stats row for ``player_id``. Does not commit."""
    rows = db.execute(
        select(
            PlayerSpeciesDiscovery.discovered_at,
            PlayerSpeciesDiscovery.time_to_discover_seconds,
            PlayerSpeciesDiscovery.clues_unlocked_before_guess,
            PlayerSpeciesDiscovery.score_earned,
            *[col.label(name) for name, col in _BREAKDOWNS.items()],
            *[col.label(name) for name, col in _HABITAT_COUNTS.items()],
        )
        .join(Species, Species.ogc_fid == PlayerSpeciesDiscovery.species_id)
        .where(PlayerSpeciesDiscovery.player_id == player_id)
    ).mappings().all()

    clue_categories = db.execute(
        select(PlayerClueUnlock.clue_category).where(PlayerClueUnlock.player_id == player_id)
    ).scalars().all()
    sessions = db.execute(
        select(
            PlayerGameSession.started_at,
            PlayerGameSession.ended_at,
            PlayerGameSession.total_moves,
        ).where(PlayerGameSession.player_id == player_id)
    ).mappings().all()

    stats = compute_player_stats(rows, clue_categories, sessions)
    values = dict(stats, updated_at=datetime.now(timezone.utc))

    insert = dialect_insert(db)
    db.execute(
        insert(PlayerStats)
        .values(player_id=player_id, **values)
        .on_conflict_do_update(index_elements=["player_id"], set_=values)
    )
    logger.debug("Refreshed stats for player %s (%d species)", player_id, stats["total_species_discovered"])
    return stats


def get_player_stats(db: Session, player_id: uuid.UUID) -> Optional[PlayerStats]:
    return db.get(PlayerStats, player_id)
