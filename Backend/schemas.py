"""
Pydantic schemas for request validation and response serialization.
"""

import math
import uuid
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_MIN_LENGTH = 2
USERNAME_MAX_LENGTH = 25


# ── Request Schemas ──────────────────────────────────────────────

class HighScoreSubmission(BaseModel):
    """Request body for saving a finished game's score."""

    username: str = Field(default="", validate_default=True, description="Display name, 2-25 characters after trimming")
    score: int = Field(..., ge=0, strict=True, description="Final score, non-negative")

    @field_validator("username", mode="before")
    @classmethod
    def trim_username(cls, value):
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Username must be a string")
        value = value.strip()
        if not USERNAME_MIN_LENGTH <= len(value) <= USERNAME_MAX_LENGTH:
            raise ValueError(
                f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
            )
        return value


class DiscoveryCandidate(BaseModel):
    """
    One locally cached discovery.

    Validated item by item during migration, so a malformed entry is
    reported as invalid without rejecting the rest of the batch.
    """

    id: Union[int, float, str, None] = None
    discoveredAt: Optional[datetime] = None


class MigrationRequest(BaseModel):
    """Request body for migrating locally cached discoveries."""

    userId: Optional[uuid.UUID] = None
    discoveries: Optional[list[Any]] = None


class DiscoverySubmission(BaseModel):
    """
    Request body for recording a discovery made during gameplay.

    When ``cluesUnlockedBeforeGuess`` is omitted it is taken from the clue
    unlocks the server has recorded for this player and species.
    """

    userId: uuid.UUID
    speciesId: int = Field(..., gt=0)
    sessionId: Optional[uuid.UUID] = None
    timeToDiscoverSeconds: Optional[int] = Field(default=None, ge=0)
    cluesUnlockedBeforeGuess: Optional[int] = Field(default=None, ge=0)
    incorrectGuessesCount: int = Field(default=0, ge=0)
    scoreEarned: int = Field(default=0, ge=0)


class SessionStart(BaseModel):
    userId: uuid.UUID


class SessionProgress(BaseModel):
    """Running totals for an open session; omitted fields keep their value."""

    totalMoves: Optional[int] = Field(default=None, ge=0)
    totalScore: Optional[int] = Field(default=None, ge=0)
    speciesDiscovered: Optional[int] = Field(default=None, ge=0)
    cluesUnlocked: Optional[int] = Field(default=None, ge=0)


class SessionEnd(BaseModel):
    totalMoves: int = Field(..., ge=0)
    totalScore: int = Field(..., ge=0)


class ClueUnlockSubmission(BaseModel):
    """Request body for recording a revealed clue."""

    userId: uuid.UUID
    speciesId: int = Field(..., gt=0)
    clueCategory: str = Field(..., min_length=1, max_length=64)
    clueField: str = Field(..., min_length=1, max_length=64)
    clueValue: Optional[str] = None
    discoveryId: Optional[uuid.UUID] = None


class SpeciesIdsBody(BaseModel):
    """POST body for batch species endpoints; accepts ``ids`` or ``species_ids``."""

    ids: list[int] = Field(default_factory=list)
    species_ids: list[int] = Field(default_factory=list)

    def resolved(self) -> list[int]:
        return self.species_ids or self.ids


# ── Response Schemas ─────────────────────────────────────────────

class HighScoreOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    score: int
    created_at: Optional[datetime] = None


class HighScoreResponse(BaseModel):
    score: HighScoreOut


class HighScoreListResponse(BaseModel):
    scores: list[HighScoreOut]


MigrationStatus = Literal["inserted", "already_discovered", "duplicate", "unknown_species", "invalid"]


class MigrationItemResult(BaseModel):
    """Outcome for a single submitted discovery."""

    id: Any
    status: MigrationStatus


class MigrationResponse(BaseModel):
    migrated: int
    results: list[MigrationItemResult] = Field(default_factory=list)


class DiscoveryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    player_id: uuid.UUID
    species_id: int
    session_id: Optional[uuid.UUID] = None
    discovered_at: Optional[datetime] = None
    time_to_discover_seconds: Optional[int] = None
    clues_unlocked_before_guess: Optional[int] = 0
    incorrect_guesses_count: Optional[int] = 0
    score_earned: Optional[int] = 0


class DiscoveryResponse(BaseModel):
    discovery: DiscoveryOut
    created: bool


class DiscoveryListResponse(BaseModel):
    discoveries: list[DiscoveryOut]
    count: int


class GameSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    player_id: uuid.UUID
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    total_moves: Optional[int] = 0
    total_score: Optional[int] = 0
    species_discovered_in_session: Optional[int] = 0
    clues_unlocked_in_session: Optional[int] = 0


class GameSessionResponse(BaseModel):
    session: GameSessionOut
    resumed: bool = False


class ClueUnlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    player_id: uuid.UUID
    species_id: int
    discovery_id: Optional[uuid.UUID] = None
    clue_category: str
    clue_field: str
    clue_value: Optional[str] = None
    unlocked_at: Optional[datetime] = None


class ClueUnlockResponse(BaseModel):
    clue: ClueUnlockOut
    created: bool


class ClueUnlockListResponse(BaseModel):
    clues: list[ClueUnlockOut]
    count: int


class PlayerStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: uuid.UUID
    total_species_discovered: int = 0
    total_clues_unlocked: int = 0
    total_score: int = 0
    total_games_played: int = 0
    total_moves_made: int = 0
    total_play_time_seconds: int = 0
    average_clues_per_discovery: Optional[float] = None
    fastest_discovery_clues: Optional[int] = None
    slowest_discovery_clues: Optional[int] = None
    average_time_per_discovery_seconds: Optional[int] = None
    species_by_order: dict[str, int] = Field(default_factory=dict)
    species_by_family: dict[str, int] = Field(default_factory=dict)
    species_by_genus: dict[str, int] = Field(default_factory=dict)
    species_by_realm: dict[str, int] = Field(default_factory=dict)
    species_by_biome: dict[str, int] = Field(default_factory=dict)
    species_by_bioregion: dict[str, int] = Field(default_factory=dict)
    species_by_iucn_status: dict[str, int] = Field(default_factory=dict)
    marine_species_count: int = 0
    terrestrial_species_count: int = 0
    freshwater_species_count: int = 0
    aquatic_species_count: int = 0
    clues_by_category: dict[str, int] = Field(default_factory=dict)
    favorite_clue_category: Optional[str] = None
    first_discovery_at: Optional[datetime] = None
    last_discovery_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SpeciesListResponse(BaseModel):
    species: list[dict[str, Any]]
    count: int


class ClosestSpecies(BaseModel):
    ogc_fid: int
    comm_name: Optional[str] = None
    sci_name: Optional[str] = None
    distance_km: int


class ClosestSpeciesResponse(BaseModel):
    species: Optional[ClosestSpecies] = None
    geometry: Optional[dict[str, Any]] = None


class BioregionEntry(BaseModel):
    species_id: int
    bioregion: Optional[str] = None
    realm: Optional[str] = None
    subrealm: Optional[str] = None
    biome: Optional[str] = None


class BioregionResponse(BaseModel):
    bioregions: list[BioregionEntry]


class RandomNamesResponse(BaseModel):
    names: list[str]


class ColormapEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: int
    label: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str


def coerce_species_id(raw) -> Optional[int]:
    """Return ``raw`` as an integer species id, or None when it is not a finite whole number."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
        try:
            raw = float(raw)
        except ValueError:
            return None
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            return None
        return int(raw)
    if isinstance(raw, int):
        return raw
    return None
