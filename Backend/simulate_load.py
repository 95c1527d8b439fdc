"""
Load simulation script for the Biodiversity Discovery API.

Continuously runs spatial lookups at random points, unlocks clues, records
discoveries and submits high scores to simulate players under load.

Usage:
    python simulate_load.py
"""

import random
import time
import uuid

import requests

API_BASE_URL = "http://localhost:8000/api"
CLUE_FIELDS = [("habitat", "biome"), ("habitat", "realm"), ("taxonomy", "family"), ("diet", "diet_type")]


def random_point():
    return round(random.uniform(-180, 180), 4), round(random.uniform(-85, 85), 4)


def species_at_point():
    """GET species whose range contains a random point."""
    lon, lat = random_point()
    try:
        resp = requests.get(f"{API_BASE_URL}/species/at-point", params={"lon": lon, "lat": lat}, timeout=10)
        data = resp.json()
        print(f"  ↓ at-point  ({lon}, {lat})  count={data.get('count', '?')}  status={resp.status_code}")
        return data.get("species", [])
    except requests.RequestException as e:
        print(f"  ✗ at-point failed: {e}")
        return []


def closest_species():
    """GET the nearest species range to a random point."""
    lon, lat = random_point()
    try:
        resp = requests.get(f"{API_BASE_URL}/species/closest", params={"lon": lon, "lat": lat}, timeout=10)
        species = resp.json().get("species") or {}
        print(f"  ↓ closest   ({lon}, {lat})  id={species.get('ogc_fid', '-')}  km={species.get('distance_km', '-')}")
        return species
    except requests.RequestException as e:
        print(f"  ✗ closest failed: {e}")
        return {}


def unlock_clue(player_id: uuid.UUID, species_id: int):
    """POST a random clue unlock for the species being guessed."""
    category, field = random.choice(CLUE_FIELDS)
    try:
        resp = requests.post(
            f"{API_BASE_URL}/clues",
            json={"userId": str(player_id), "speciesId": species_id, "clueCategory": category, "clueField": field},
            timeout=10,
        )
        print(f"  ↑ clue      player={player_id}  {category}.{field}  status={resp.status_code}")
    except requests.RequestException as e:
        print(f"  ✗ clue failed: {e}")


def record_discovery(player_id: uuid.UUID, species_id: int):
    """POST a discovery for the given player."""
    try:
        resp = requests.post(
            f"{API_BASE_URL}/discoveries",
            json={
                "userId": str(player_id),
                "speciesId": species_id,
                "incorrectGuessesCount": random.randint(0, 3),
                "scoreEarned": random.randint(10, 500),
            },
            timeout=10,
        )
        print(f"  ↑ discover  player={player_id}  species={species_id}  status={resp.status_code}")
    except requests.RequestException as e:
        print(f"  ✗ discover failed: {e}")


def submit_highscore(player_num: int):
    """POST a random high score."""
    score = random.randint(100, 10000)
    try:
        resp = requests.post(
            f"{API_BASE_URL}/highscores",
            json={"username": f"player_{player_num}", "score": score},
            timeout=10,
        )
        print(f"  ↑ highscore player_{player_num}  score={score}  status={resp.status_code}")
    except requests.RequestException as e:
        print(f"  ✗ highscore failed: {e}")


if __name__ == "__main__":
    print("🚀 Load simulation started — press Ctrl+C to stop\n")
    players = [uuid.uuid4() for _ in range(50)]
    cycle = 0
    try:
        while True:
            cycle += 1
            player_num = random.randrange(len(players))
            print(f"── Cycle {cycle} ──")
            found = species_at_point()
            nearest = closest_species()
            target = random.choice(found)["ogc_fid"] if found else nearest.get("ogc_fid")
            if target:
                unlock_clue(players[player_num], target)
                record_discovery(players[player_num], target)
            submit_highscore(player_num)
            delay = random.uniform(0.5, 2)
            time.sleep(delay)
    except KeyboardInterrupt:
        print("\n⏹ Simulation stopped")
