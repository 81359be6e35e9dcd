"""Persisted client state — theme preference and last-viewed lists.

Simple key/value persistence outside the relational store. Uses Redis when
REDIS_URL is configured, otherwise a JSON file on disk.

Usage:
    from preferences import init_preferences, get_preferences
    init_preferences(app)         # called once in create_app()
    prefs = get_preferences()     # module-level accessor
    prefs.set("theme:1", "light")
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Protocol

import redis

from models import LastViewedEntry

logger = logging.getLogger(__name__)

THEMES = ("dark", "light")

# ── Protocol ───────────────────────────────────────────────

class PreferenceBackend(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


# ── JSON file implementation ──────────────────────────────

class JSONFilePreferences:
    """All keys in one JSON document, rewritten on every change."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Unreadable preferences file %s: %s", self._path, e)
            return {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2))

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._path.write_text(json.dumps(data, indent=2))


# ── Redis implementation ──────────────────────────────────

class RedisPreferences:
    """Wraps redis.Redis with graceful error handling."""

    def __init__(self, redis_client, prefix: str = "medflix:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._redis.get(self._prefix + key)
        except redis.RedisError as e:
            logger.warning("Redis GET error (key=%s): %s", key, e)
            return default
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        try:
            self._redis.set(self._prefix + key, json.dumps(value))
        except redis.RedisError as e:
            logger.warning("Redis SET error (key=%s): %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._prefix + key)
        except redis.RedisError as e:
            logger.warning("Redis DELETE error (key=%s): %s", key, e)


# ── Typed accessors ───────────────────────────────────────

def load_theme(prefs: PreferenceBackend, user_id: int, default: str = "dark") -> str:
    theme = prefs.get(f"theme:{user_id}", default)
    return theme if theme in THEMES else default


def save_theme(prefs: PreferenceBackend, user_id: int, theme: str) -> None:
    prefs.set(f"theme:{user_id}", theme)


def load_last_viewed(prefs: PreferenceBackend, user_id: int) -> list[LastViewedEntry]:
    raw = prefs.get(f"last_viewed:{user_id}", []) or []
    entries = []
    for item in raw:
        try:
            entries.append(LastViewedEntry.from_dict(item))
        except (KeyError, TypeError):
            logger.debug("Dropping malformed last-viewed entry: %r", item)
    return entries


def save_last_viewed(prefs: PreferenceBackend, user_id: int,
                     entries: list[LastViewedEntry]) -> None:
    prefs.set(f"last_viewed:{user_id}", [e.to_dict() for e in entries])


# ── Module-level singleton ────────────────────────────────

_prefs: PreferenceBackend | None = None


def init_preferences(app) -> None:
    """Initialize the preference backend. Call once from create_app()."""
    global _prefs

    redis_url = app.config.get("REDIS_URL", "")
    if redis_url:
        client = redis.Redis.from_url(redis_url, decode_responses=False)
        _prefs = RedisPreferences(client)
        app.logger.info("Preference backend: Redis (%s)", redis_url)
        return

    path = app.config.get("PREFERENCES_PATH") or str(Path(app.instance_path) / "preferences.json")
    _prefs = JSONFilePreferences(path)
    app.logger.info("Preference backend: JSON file (%s)", path)


def get_preferences() -> PreferenceBackend:
    """Return the active preference backend."""
    if _prefs is None:
        raise RuntimeError("init_preferences() has not been called")
    return _prefs
