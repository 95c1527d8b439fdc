"""
SQLAlchemy ORM models for the biodiversity discovery game.
Tables: icaa (species, import-owned), player_species_discoveries,
player_game_sessions, player_clue_unlocks, player_stats, high_scores,
habitat_colormap
"""

import uuid

from sqlalchemy import (
    JSON, Column, DateTime, ForeignKey, Index, Integer, Numeric, Text,
    UniqueConstraint, Uuid, func
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Species(Base):
    """
    Species range record loaded from the ICAA shapefile.

    The table is created by the shapefile import, not by this application.
    Its ``wkb_geometry`` column (PostGIS, SRID 4326) is not mapped; spatial
    predicates go through hand-written SQL.
    """

    __tablename__ = "icaa"

    ogc_fid = Column(Integer, primary_key=True)
    comm_name = Column(Text)
    sci_name = Column(Text)
    tax_comm = Column(Text)
    http_iucn = Column(Text)
    kingdom = Column(Text)
    phylum = Column(Text)
    class_ = Column("class", Text)
    order = Column("order_", Text)
    family = Column(Text)
    genus = Column(Text)
    category = Column(Text)
    cons_code = Column(Text)
    cons_text = Column(Text)
    threats = Column(Text)
    hab_desc = Column(Text)
    hab_tags = Column(Text)
    marine = Column(Text)
    terrestria = Column(Text)
    freshwater = Column(Text)
    aquatic = Column(Text)
    geo_desc = Column(Text)
    dist_comm = Column(Text)
    island = Column(Text)
    origin = Column(Numeric)
    bioregio_1 = Column(Text)
    realm = Column(Text)
    sub_realm = Column(Text)
    biome = Column(Text)
    color_prim = Column(Text)
    color_sec = Column(Text)
    pattern = Column(Text)
    shape_desc = Column(Text)
    size_min = Column(Numeric)
    size_max = Column(Numeric)
    weight_kg = Column(Numeric)
    diet_type = Column(Text)
    diet_prey = Column(Text)
    diet_flora = Column(Text)
    behav_1 = Column(Text)
    behav_2 = Column(Text)
    lifespan = Column(Numeric)
    maturity = Column(Text)
    repro_type = Column(Text)
    clutch_sz = Column(Text)
    life_desc1 = Column(Text)
    life_desc2 = Column(Text)
    key_fact1 = Column(Text)
    key_fact2 = Column(Text)
    key_fact3 = Column(Text)

    def __repr__(self):
        return f"<Species(ogc_fid={self.ogc_fid}, comm_name='{self.comm_name}')>"


class PlayerGameSession(Base):
    """One sitting of the game. Open while ``ended_at`` is NULL."""

    __tablename__ = "player_game_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    ended_at = Column(DateTime(timezone=True), nullable=True)
    total_moves = Column(Integer, default=0)
    total_score = Column(Integer, default=0)
    species_discovered_in_session = Column(Integer, default=0)
    clues_unlocked_in_session = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PlayerGameSession(id={self.id}, player_id={self.player_id}, ended={self.ended_at is not None})>"


class PlayerSpeciesDiscovery(Base):
    """A player's first correct identification of a species."""

    __tablename__ = "player_species_discoveries"
    __table_args__ = (
        UniqueConstraint("player_id", "species_id", name="uq_player_species_discoveries_player_species"),
        Index("ix_player_species_discoveries_session_id", "session_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, nullable=False, index=True)
    species_id = Column(Integer, ForeignKey("icaa.ogc_fid"), nullable=False)
    session_id = Column(Uuid, ForeignKey("player_game_sessions.id"), nullable=True)
    discovered_at = Column(DateTime(timezone=True), server_default=func.now())
    time_to_discover_seconds = Column(Integer, nullable=True)
    clues_unlocked_before_guess = Column(Integer, default=0)
    incorrect_guesses_count = Column(Integer, default=0)
    score_earned = Column(Integer, default=0)

    def __repr__(self):
        return f"<PlayerSpeciesDiscovery(player_id={self.player_id}, species_id={self.species_id})>"


class PlayerClueUnlock(Base):
    """A clue revealed while guessing a species. The first unlock of a clue field wins."""

    __tablename__ = "player_clue_unlocks"
    __table_args__ = (
        UniqueConstraint(
            "player_id", "species_id", "clue_category", "clue_field",
            name="uq_player_clue_unlocks_player_species_category_field",
        ),
        Index("ix_player_clue_unlocks_discovery_id", "discovery_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    player_id = Column(Uuid, nullable=False)
    species_id = Column(Integer, ForeignKey("icaa.ogc_fid"), nullable=False)
    discovery_id = Column(Uuid, ForeignKey("player_species_discoveries.id"), nullable=True)
    clue_category = Column(Text, nullable=False)
    clue_field = Column(Text, nullable=False)
    clue_value = Column(Text, nullable=True)
    unlocked_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PlayerClueUnlock(species_id={self.species_id}, clue='{self.clue_category}.{self.clue_field}')>"


class PlayerStats(Base):
    """Denormalized per-player aggregates, rebuilt from discoveries, clue unlocks and sessions."""

    __tablename__ = "player_stats"

    player_id = Column(Uuid, primary_key=True)
    total_species_discovered = Column(Integer, default=0)
    total_clues_unlocked = Column(Integer, default=0)
    total_score = Column(Integer, default=0)
    total_games_played = Column(Integer, default=0)
    total_moves_made = Column(Integer, default=0)
    total_play_time_seconds = Column(Integer, default=0)
    average_clues_per_discovery = Column(Numeric, nullable=True)
    fastest_discovery_clues = Column(Integer, nullable=True)
    slowest_discovery_clues = Column(Integer, nullable=True)
    average_time_per_discovery_seconds = Column(Integer, nullable=True)
    species_by_order = Column(JSONType, default=dict)
    species_by_family = Column(JSONType, default=dict)
    species_by_genus = Column(JSONType, default=dict)
    species_by_realm = Column(JSONType, default=dict)
    species_by_biome = Column(JSONType, default=dict)
    species_by_bioregion = Column(JSONType, default=dict)
    species_by_iucn_status = Column(JSONType, default=dict)
    marine_species_count = Column(Integer, default=0)
    terrestrial_species_count = Column(Integer, default=0)
    freshwater_species_count = Column(Integer, default=0)
    aquatic_species_count = Column(Integer, default=0)
    clues_by_category = Column(JSONType, default=dict)
    favorite_clue_category = Column(Text, nullable=True)
    first_discovery_at = Column(DateTime(timezone=True), nullable=True)
    last_discovery_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PlayerStats(player_id={self.player_id}, total={self.total_species_discovered})>"


class HighScore(Base):
    """One finished game's score. Append-only."""

    __tablename__ = "high_scores"
    __table_args__ = (Index("ix_high_scores_score", "score"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(Text, nullable=False)
    score = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<HighScore(username='{self.username}', score={self.score})>"


class HabitatColormap(Base):
    """Raster habitat code -> human readable label."""

    __tablename__ = "habitat_colormap"

    value = Column(Integer, primary_key=True)
    label = Column(Text, nullable=False)


# Tables this service owns and may create; ``icaa`` comes from the shapefile import.
APP_TABLES = [
    PlayerGameSession.__table__,
    PlayerSpeciesDiscovery.__table__,
    PlayerClueUnlock.__table__,
    PlayerStats.__table__,
    HighScore.__table__,
    HabitatColormap.__table__,
]
