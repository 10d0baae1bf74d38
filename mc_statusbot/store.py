"""JSON-file backed history of check results."""
from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass, field

from mc_statusbot.errors import StorageIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observation:
    id: int
    online: bool
    timestamp_ms: int
    players: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "online": self.online,
            "lastChecked": self.timestamp_ms,
            "players": list(self.players),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Observation":
        players = data.get("players") or []
        if not isinstance(players, list):
            raise ValueError(f"players must be a list, got {type(players).__name__}")
        return cls(
            id=int(data["id"]),
            online=bool(data["online"]),
            timestamp_ms=int(data["lastChecked"]),
            players=[str(p) for p in players if p],
        )


# === JSON IO ===

def load_json(filename):
    if os.path.exists(filename):
        with open(filename, "r", encoding="utf-8") as f:
            return json.load(f)
    return {}


def save_json(filename, data):
    """Write via a temp file and keep the previous version as ``.bak``."""
    parent = os.path.dirname(filename)
    if parent:
        os.makedirs(parent, exist_ok=True)
    tmp = f"{filename}.tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    if os.path.exists(filename):
        try:
            shutil.copyfile(filename, f"{filename}.bak")
        except OSError as e:
            logger.warning("[WARN] Could not back up %s: %s", filename, e)
    os.replace(tmp, filename)


class StatusStore:
    """Append-only observation log with age-based pruning.

    One lock covers reads, appends, prunes and flushes so the check and
    prune timers can share an instance.
    """

    def __init__(self, path: str):
        self.path = str(path)
        self._lock = threading.Lock()
        self._entries: list[Observation] = []
        self._last_id = 0
        self._load()

    def _load(self):
        try:
            data = load_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning("[STORE] Could not read %s, starting with an empty history: %s", self.path, e)
            return
        raw_entries = data.get("entries", []) if isinstance(data, dict) else []
        if not isinstance(raw_entries, list):
            logger.warning("[STORE] %s has no entry list, starting with an empty history", self.path)
            return
        skipped = 0
        for raw in raw_entries:
            try:
                self._entries.append(Observation.from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError):
                skipped += 1
        if skipped:
            logger.warning("[STORE] Skipped %d malformed entries in %s", skipped, self.path)
        if self._entries:
            self._last_id = max(e.id for e in self._entries)
        logger.info("[STORE] Loaded %d observations from %s", len(self._entries), self.path)

    def _save_locked(self):
        try:
            save_json(self.path, {"entries": [e.to_dict() for e in self._entries]})
        except (OSError, TypeError, ValueError) as e:
            raise StorageIOError(f"writing {self.path} failed: {e}") from e

    def _next_id(self) -> int:
        self._last_id = max(time.time_ns(), self._last_id + 1)
        return self._last_id

    def latest(self) -> Observation | None:
        with self._lock:
            if not self._entries:
                return None
            return max(self._entries, key=lambda e: e.timestamp_ms)

    def append(self, online: bool, timestamp_ms: int, players) -> Observation:
        """Record one observation and persist it.

        On a write failure the observation stays in memory and ``StorageIOError`` is raised.
        """
        with self._lock:
            obs = Observation(id=self._next_id(), online=online,
                              timestamp_ms=int(timestamp_ms), players=list(players))
            self._entries.append(obs)
            self._save_locked()
            return obs

    def prune_older_than(self, cutoff_ms: int) -> int:
        with self._lock:
            kept = [e for e in self._entries if e.timestamp_ms >= cutoff_ms]
            removed = len(self._entries) - len(kept)
            self._entries = kept
            self._save_locked()
            return removed

    def flush(self):
        with self._lock:
            self._save_locked()

    def __len__(self):
        with self._lock:
            return len(self._entries)
