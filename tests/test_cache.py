"""Tests for the optional Redis response cache."""

import json
from unittest.mock import MagicMock, patch

import redis
from fastapi.testclient import TestClient

from app import create_app
from cache import CATALOG_KEY, HIGHSCORES_KEY, ResponseCache
from models import Base


class TestResponseCache:
    def test_disabled_without_url(self):
        cache = ResponseCache.from_url("")

        assert cache.enabled is False
        assert cache.get("anything") is None
        cache.set("anything", {"a": 1}, ttl=5)
        cache.invalidate("anything")

    def test_unreachable_redis_disables_cache(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")

        with patch("cache.redis.Redis.from_url", return_value=client):
            cache = ResponseCache.from_url("redis://localhost:6379/0")

        assert cache.enabled is False

    def test_get_decodes_json(self):
        client = MagicMock()
        client.get.return_value = json.dumps({"scores": []})

        assert ResponseCache(client).get(HIGHSCORES_KEY) == {"scores": []}

    def test_get_miss(self):
        client = MagicMock()
        client.get.return_value = None

        assert ResponseCache(client).get(HIGHSCORES_KEY) is None

    def test_set_uses_ttl(self):
        client = MagicMock()

        ResponseCache(client).set(CATALOG_KEY, {"count": 0}, ttl=300)

        client.setex.assert_called_once_with(CATALOG_KEY, 300, json.dumps({"count": 0}))

    def test_zero_ttl_skips_write(self):
        client = MagicMock()

        ResponseCache(client).set(CATALOG_KEY, {"count": 0}, ttl=0)

        client.setex.assert_not_called()

    def test_redis_errors_degrade_to_miss(self):
        client = MagicMock()
        client.get.side_effect = redis.TimeoutError("slow")
        client.setex.side_effect = redis.TimeoutError("slow")
        client.delete.side_effect = redis.TimeoutError("slow")
        cache = ResponseCache(client)

        assert cache.get(HIGHSCORES_KEY) is None
        cache.set(HIGHSCORES_KEY, {}, ttl=5)
        cache.invalidate(HIGHSCORES_KEY)


class TestHighScoreCaching:
    def _client(self, settings, redis_client):
        application = create_app(settings, cache=ResponseCache(redis_client))
        Base.metadata.create_all(application.state.engine)
        return application

    def test_cached_list_is_served(self, settings):
        redis_client = MagicMock()
        cached = {"scores": [{"id": "6f1c2a8e-1a2b-4c3d-9e8f-0a1b2c3d4e5f", "username": "cached",
                              "score": 7, "created_at": None}]}
        redis_client.get.return_value = json.dumps(cached)
        application = self._client(settings, redis_client)

        with TestClient(application) as client:
            data = client.get("/api/highscores").json()

        assert data["scores"][0]["username"] == "cached"
        application.state.engine.dispose()

    def test_submission_invalidates(self, settings):
        redis_client = MagicMock()
        redis_client.get.return_value = None
        application = self._client(settings, redis_client)

        with TestClient(application) as client:
            client.get("/api/highscores")
            client.post("/api/highscores", json={"username": "fresh", "score": 3})

        redis_client.setex.assert_called_once()
        assert redis_client.setex.call_args[0][0] == HIGHSCORES_KEY
        redis_client.delete.assert_called_once_with(HIGHSCORES_KEY)
        application.state.engine.dispose()
