"""Tests for player stats aggregation and the backfill script."""

import uuid
from datetime import datetime, timezone

import pytest

from backfill_stats import backfill
from models import PlayerGameSession, PlayerSpeciesDiscovery, PlayerStats
from player_stats import compute_player_stats, is_flagged


def row(**overrides):
    base = {
        "discovered_at": None,
        "time_to_discover_seconds": None,
        "clues_unlocked_before_guess": 0,
        "score_earned": 0,
        "species_by_order": None,
        "species_by_family": None,
        "species_by_genus": None,
        "species_by_realm": None,
        "species_by_biome": None,
        "species_by_bioregion": None,
        "species_by_iucn_status": None,
        "marine_species_count": None,
        "terrestrial_species_count": None,
        "freshwater_species_count": None,
        "aquatic_species_count": None,
    }
    base.update(overrides)
    return base


class TestComputePlayerStats:
    def test_no_discoveries(self):
        stats = compute_player_stats([])

        assert stats["total_species_discovered"] == 0
        assert stats["total_score"] == 0
        assert stats["average_clues_per_discovery"] is None
        assert stats["species_by_order"] == {}
        assert stats["marine_species_count"] == 0

    def test_aggregates(self):
        stats = compute_player_stats(
            [
                row(
                    discovered_at=datetime(2024, 1, 1),
                    time_to_discover_seconds=30,
                    clues_unlocked_before_guess=3,
                    score_earned=100,
                    species_by_order="TESTUDINES",
                    species_by_iucn_status="VU",
                    marine_species_count="True",
                ),
                row(
                    discovered_at=datetime(2024, 3, 1),
                    time_to_discover_seconds=61,
                    clues_unlocked_before_guess=8,
                    score_earned=40,
                    species_by_order="TESTUDINES",
                    species_by_iucn_status="EN",
                    freshwater_species_count="yes",
                ),
                row(clues_unlocked_before_guess=None, score_earned=None, species_by_order="ANURA"),
            ]
        )

        assert stats["total_species_discovered"] == 3
        assert stats["total_score"] == 140
        assert stats["total_clues_unlocked"] == 11
        assert stats["fastest_discovery_clues"] == 0
        assert stats["slowest_discovery_clues"] == 8
        assert stats["average_time_per_discovery_seconds"] == 46
        assert stats["first_discovery_at"] == datetime(2024, 1, 1)
        assert stats["last_discovery_at"] == datetime(2024, 3, 1)
        assert stats["species_by_order"] == {"TESTUDINES": 2, "ANURA": 1}
        assert stats["species_by_iucn_status"] == {"VU": 1, "EN": 1}
        assert stats["marine_species_count"] == 1
        assert stats["freshwater_species_count"] == 1


@pytest.mark.parametrize(
    "value,expected",
    [("true", True), ("T", True), ("Yes", True), ("1", True), ("false", False), ("", False), (None, False)],
)
def test_is_flagged(value, expected):
    assert is_flagged(value) is expected


def test_backfill_rebuilds_stats(app, db_session, species, player_id):
    db_session.add_all(
        [
            PlayerSpeciesDiscovery(player_id=player_id, species_id=1, score_earned=10),
            PlayerSpeciesDiscovery(player_id=player_id, species_id=2, score_earned=15),
        ]
    )
    db_session.commit()

    succeeded, failed = backfill(app.state.session_factory)

    assert (succeeded, failed) == (1, 0)
    stats = db_session.get(PlayerStats, player_id)
    assert stats.total_species_discovered == 2
    assert stats.total_score == 25


def test_clue_and_session_aggregates():
    stats = compute_player_stats(
        [],
        clue_categories=["diet", "habitat", "habitat", "taxonomy", "diet"],
        sessions=[
            {
                "started_at": datetime(2024, 1, 1, 10, 0, 0),
                "ended_at": datetime(2024, 1, 1, 10, 5, 30, tzinfo=timezone.utc),
                "total_moves": 12,
            },
            {"started_at": datetime(2024, 1, 2, 9, 0, 0), "ended_at": None, "total_moves": 4},
        ],
    )

    assert stats["clues_by_category"] == {"diet": 2, "habitat": 2, "taxonomy": 1}
    assert stats["favorite_clue_category"] == "diet"
    assert stats["total_games_played"] == 1
    assert stats["total_moves_made"] == 16
    assert stats["total_play_time_seconds"] == 330


def test_backfill_includes_players_with_only_sessions(app, db_session):
    player = uuid.uuid4()
    db_session.add(
        PlayerGameSession(
            player_id=player,
            started_at=datetime(2024, 1, 1, 10, 0, 0),
            ended_at=datetime(2024, 1, 1, 10, 1, 0),
            total_moves=7,
        )
    )
    db_session.commit()

    assert backfill(app.state.session_factory) == (1, 0)
    stats = db_session.get(PlayerStats, player)
    assert stats.total_games_played == 1
    assert stats.total_play_time_seconds == 60
