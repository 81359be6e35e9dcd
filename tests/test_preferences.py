"""Tests for preferences.py — JSON file and Redis backends, typed accessors."""

from __future__ import annotations

from unittest.mock import MagicMock

import redis

from models import LastViewedEntry
from preferences import (
    JSONFilePreferences,
    RedisPreferences,
    get_preferences,
    load_last_viewed,
    load_theme,
    save_last_viewed,
    save_theme,
)


class TestJSONFile:
    def test_set_get_delete(self, tmp_path):
        prefs = JSONFilePreferences(tmp_path / "prefs.json")
        assert prefs.get("missing", "x") == "x"
        prefs.set("theme:1", "light")
        assert JSONFilePreferences(tmp_path / "prefs.json").get("theme:1") == "light"
        prefs.delete("theme:1")
        assert prefs.get("theme:1") is None

    def test_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json")
        assert JSONFilePreferences(path).get("theme:1", "dark") == "dark"


class TestRedis:
    def test_round_trip_json(self):
        client = MagicMock()
        client.get.return_value = b'"light"'
        prefs = RedisPreferences(client)
        assert prefs.get("theme:1") == "light"
        client.get.assert_called_with("medflix:theme:1")
        prefs.set("theme:1", "dark")
        client.set.assert_called_with("medflix:theme:1", '"dark"')

    def test_redis_error_returns_default(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        assert RedisPreferences(client).get("theme:1", "dark") == "dark"


class TestAccessors:
    def test_theme_default_and_invalid(self, tmp_path):
        prefs = JSONFilePreferences(tmp_path / "p.json")
        assert load_theme(prefs, 1) == "dark"
        prefs.set("theme:1", "neon")
        assert load_theme(prefs, 1) == "dark"
        save_theme(prefs, 1, "light")
        assert load_theme(prefs, 1) == "light"

    def test_last_viewed_round_trip(self, tmp_path):
        prefs = JSONFilePreferences(tmp_path / "p.json")
        entries = [LastViewedEntry(10, "Heart Sounds", 1, "Cardiology")]
        save_last_viewed(prefs, 1, entries)
        assert load_last_viewed(prefs, 1) == entries
        assert load_last_viewed(prefs, 2) == []

    def test_malformed_entries_dropped(self, tmp_path):
        prefs = JSONFilePreferences(tmp_path / "p.json")
        prefs.set("last_viewed:1", [{"title": "no ids"}, {"summary_id": 3, "subject_id": 1}])
        assert [e.summary_id for e in load_last_viewed(prefs, 1)] == [3]


def test_app_uses_configured_json_file(app, tmp_path):
    prefs = get_preferences()
    assert isinstance(prefs, JSONFilePreferences)
    prefs.set("theme:1", "light")
    assert (tmp_path / "preferences.json").exists()
