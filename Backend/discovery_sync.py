"""
Client side of the discovery synchronization protocol.

Players who have not signed in keep discoveries locally. On first sign-in
the local list is sent once to ``POST /api/discoveries/migrate``; the store
records a ``migrated`` flag only after the server accepted the batch, so a
failed attempt is retried on the next sign-in.

Store file layout::

    {"version": 1, "migrated": false,
     "discoveries": [{"id": 12, "discoveredAt": "2024-05-01T10:00:00+00:00"}]}
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import requests

logger = logging.getLogger(__name__)

STORE_VERSION = 1
DEFAULT_TIMEOUT = 10  # seconds


class LocalDiscoveryStore:
    """Discovered species kept on the player's device, persisted as JSON."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.version = STORE_VERSION
        self.migrated = False
        self.discoveries: list[dict] = []
        self.load()

    def load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable discovery store %s: %s", self.path, exc)
            return

        # Pre-versioned stores were a bare list of discoveries.
        if isinstance(data, list):
            self.discoveries = [d for d in data if isinstance(d, dict) and "id" in d]
            self.migrated = False
            return

        if not isinstance(data, dict):
            return
        self.version = int(data.get("version", STORE_VERSION))
        self.migrated = bool(data.get("migrated", False))
        self.discoveries = [
            d for d in data.get("discoveries", []) if isinstance(d, dict) and "id" in d
        ]

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": STORE_VERSION,
            "migrated": self.migrated,
            "discoveries": self.discoveries,
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record(self, species_id: int, discovered_at: Optional[datetime] = None) -> bool:
        """Add a discovery; returns False if the species was already stored."""
        if any(d.get("id") == species_id for d in self.discoveries):
            return False
        discovered_at = discovered_at or datetime.now(timezone.utc)
        self.discoveries.append({"id": species_id, "discoveredAt": discovered_at.isoformat()})
        self.save()
        return True

    def mark_migrated(self) -> None:
        self.migrated = True
        self.save()

    def needs_migration(self) -> bool:
        return not self.migrated and bool(self.discoveries)


@dataclass
class SyncOutcome:
    migrated: int
    results: list[dict] = field(default_factory=list)


class DiscoverySyncClient:
    """One-shot migration of a ``LocalDiscoveryStore`` into the server."""

    def __init__(self, base_url: str, store: LocalDiscoveryStore, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.session = session or requests.Session()

    def migrate(self, user_id: uuid.UUID) -> Optional[SyncOutcome]:
        """
        Send local discoveries for ``user_id``.

        Returns the server's outcome, or None when nothing was sent (already
        migrated / empty store) or the request failed. Failures leave the
        store unmigrated.
        """
        if self.store.migrated:
            logger.info("Discoveries already migrated, skipping")
            return None

        if not self.store.discoveries:
            logger.info("No local discoveries to migrate")
            self.store.mark_migrated()
            return None

        logger.info("Migrating %d local discoveries...", len(self.store.discoveries))
        try:
            resp = self.session.post(
                f"{self.base_url}/api/discoveries/migrate",
                json={"userId": str(user_id), "discoveries": self.store.discoveries},
                timeout=DEFAULT_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.error("Failed to migrate local discoveries: %s", exc)
            return None

        if not resp.ok:
            try:
                message = resp.json().get("error", "Migration failed")
            except ValueError:
                message = "Migration failed"
            logger.error("Failed to migrate local discoveries: %s (HTTP %d)", message, resp.status_code)
            return None

        data = resp.json()
        outcome = SyncOutcome(migrated=data.get("migrated", 0), results=data.get("results", []))
        self.store.mark_migrated()
        logger.info("Successfully migrated %d discoveries", outcome.migrated)
        return outcome
