"""Tests for game session start, progress and end."""

import uuid

import pytest


def start(client, player_id):
    return client.post("/api/sessions", json={"userId": str(player_id)})


class TestStartSession:
    """Test POST /api/sessions."""

    def test_creates_open_session(self, client, player_id):
        response = start(client, player_id)

        assert response.status_code == 200
        data = response.json()
        assert data["resumed"] is False
        assert data["session"]["player_id"] == str(player_id)
        assert data["session"]["ended_at"] is None
        assert data["session"]["total_moves"] == 0

    def test_second_start_resumes(self, client, player_id):
        first = start(client, player_id).json()
        second = start(client, player_id).json()

        assert second["resumed"] is True
        assert second["session"]["id"] == first["session"]["id"]

    def test_players_get_separate_sessions(self, client):
        a = start(client, uuid.uuid4()).json()["session"]["id"]
        b = start(client, uuid.uuid4()).json()["session"]["id"]

        assert a != b

    def test_new_session_after_end(self, client, player_id):
        first = start(client, player_id).json()["session"]["id"]
        client.post(f"/api/sessions/{first}/end", json={"totalMoves": 3, "totalScore": 10})

        second = start(client, player_id).json()

        assert second["resumed"] is False
        assert second["session"]["id"] != first

    def test_invalid_user_id(self, client):
        response = client.post("/api/sessions", json={"userId": "abc"})

        assert response.status_code == 400


class TestSessionProgress:
    """Test PATCH /api/sessions/{id}."""

    def test_updates_only_given_fields(self, client, player_id):
        session_id = start(client, player_id).json()["session"]["id"]
        client.patch(f"/api/sessions/{session_id}", json={"totalMoves": 12, "totalScore": 300})

        response = client.patch(f"/api/sessions/{session_id}", json={"speciesDiscovered": 2})

        assert response.status_code == 200
        session = response.json()["session"]
        assert session["total_moves"] == 12
        assert session["total_score"] == 300
        assert session["species_discovered_in_session"] == 2
        assert session["clues_unlocked_in_session"] == 0

    def test_unknown_session(self, client):
        session_id = uuid.uuid4()

        response = client.patch(f"/api/sessions/{session_id}", json={"totalMoves": 1})

        assert response.status_code == 404
        assert response.json() == {"error": f"Session {session_id} not found"}

    def test_ended_session_is_read_only(self, client, player_id):
        session_id = start(client, player_id).json()["session"]["id"]
        client.post(f"/api/sessions/{session_id}/end", json={"totalMoves": 5, "totalScore": 50})

        response = client.patch(f"/api/sessions/{session_id}", json={"totalMoves": 99})

        assert response.status_code == 409
        assert client.get(f"/api/sessions/{session_id}").json()["session"]["total_moves"] == 5

    @pytest.mark.parametrize("body", [{"totalMoves": -1}, {"totalScore": "lots"}])
    def test_rejects_bad_totals(self, client, player_id, body):
        session_id = start(client, player_id).json()["session"]["id"]

        response = client.patch(f"/api/sessions/{session_id}", json=body)

        assert response.status_code == 400


class TestEndSession:
    """Test POST /api/sessions/{id}/end."""

    def test_records_final_totals(self, client, player_id):
        session_id = start(client, player_id).json()["session"]["id"]

        response = client.post(f"/api/sessions/{session_id}/end", json={"totalMoves": 40, "totalScore": 900})

        assert response.status_code == 200
        session = response.json()["session"]
        assert session["ended_at"] is not None
        assert session["total_moves"] == 40
        assert session["total_score"] == 900

    def test_ending_twice_keeps_first_end(self, client, player_id):
        session_id = start(client, player_id).json()["session"]["id"]
        first = client.post(f"/api/sessions/{session_id}/end", json={"totalMoves": 40, "totalScore": 900})

        second = client.post(f"/api/sessions/{session_id}/end", json={"totalMoves": 1, "totalScore": 1})

        assert second.status_code == 200
        assert second.json()["session"]["total_moves"] == 40
        assert second.json()["session"]["ended_at"] == first.json()["session"]["ended_at"]

    def test_unknown_session(self, client):
        response = client.post(f"/api/sessions/{uuid.uuid4()}/end", json={"totalMoves": 1, "totalScore": 1})

        assert response.status_code == 404

    def test_refreshes_player_stats(self, client, player_id):
        for moves in (10, 15):
            session_id = start(client, player_id).json()["session"]["id"]
            client.post(f"/api/sessions/{session_id}/end", json={"totalMoves": moves, "totalScore": 100})
        start(client, player_id)

        stats = client.get(f"/api/players/{player_id}/stats").json()

        assert stats["total_games_played"] == 2
        assert stats["total_moves_made"] == 25
        assert stats["total_play_time_seconds"] >= 0
        assert stats["total_species_discovered"] == 0


def test_read_session(client, player_id):
    session_id = start(client, player_id).json()["session"]["id"]

    response = client.get(f"/api/sessions/{session_id}")

    assert response.status_code == 200
    assert response.json()["session"]["id"] == session_id
    assert client.get(f"/api/sessions/{uuid.uuid4()}").status_code == 404
