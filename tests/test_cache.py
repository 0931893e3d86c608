"""Tests for the expiring sheet cache and its key-value stores."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from quiz_sheets.core.cache import (  # noqa: E402
    CACHE_KEY_PREFIX,
    CACHE_TTL_MS,
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    SheetCache,
    cache_key,
)

URL = "https://docs.google.com/spreadsheets/d/e/abc/pub?output=csv"
T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class BrokenStore(MemoryKeyValueStore):
    """Store whose reads and writes fail, e.g. quota exceeded."""

    def get(self, key):
        raise OSError("disk I/O error")

    def set(self, key, value):
        raise OSError("quota exceeded")


def test_cache_key_is_deterministic_and_bounded():
    key = cache_key(URL)
    assert key == cache_key(URL)
    assert key.startswith(CACHE_KEY_PREFIX)
    assert len(key) == len(CACHE_KEY_PREFIX) + 50
    assert cache_key("short") != cache_key("other")


def test_cache_key_collides_for_long_shared_prefix():
    base = "https://docs.google.com/spreadsheets/d/"
    assert cache_key(base + "AAAA") == cache_key(base + "BBBB")


def test_entry_is_fresh_until_ttl_then_deleted():
    clock = FakeClock()
    store = MemoryKeyValueStore()
    cache = SheetCache(store, clock=clock)
    cache.write(URL, "a,b\n1,2\n")

    clock.now = T0 + CACHE_TTL_MS - 1
    doc = cache.read(URL)
    assert doc is not None
    assert doc.text == "a,b\n1,2\n"
    assert doc.source == URL

    clock.now = T0 + CACHE_TTL_MS
    assert cache.read(URL) is None
    assert store.get(cache_key(URL)) is None


def test_stored_entry_shape():
    store = MemoryKeyValueStore()
    SheetCache(store, clock=FakeClock()).write(URL, "payload")

    assert json.loads(store.get(cache_key(URL))) == {"data": "payload", "timestamp": T0}


def test_missing_entry_reads_as_none():
    assert SheetCache(MemoryKeyValueStore()).read(URL) is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"timestamp": T0}),
        json.dumps({"data": 5, "timestamp": T0}),
        json.dumps({"data": "x", "timestamp": "yesterday"}),
        json.dumps(["data", T0]),
    ],
)
def test_corrupt_entries_read_as_none(raw):
    store = MemoryKeyValueStore({cache_key(URL): raw})
    cache = SheetCache(store, clock=FakeClock())

    assert cache.read(URL) is None
    assert not cache.read_result(URL).ok


def test_store_failures_are_silent():
    cache = SheetCache(BrokenStore(), clock=FakeClock())

    cache.write(URL, "data")
    assert cache.read(URL) is None
    assert not cache.write_result(URL, "data").ok


def test_unserializable_payload_is_dropped():
    store = MemoryKeyValueStore()
    cache = SheetCache(store, clock=FakeClock())

    cache.write(URL, object())

    assert store.keys() == []


def test_sqlite_store_round_trip(tmp_path):
    store = SQLiteKeyValueStore(str(tmp_path / "cache.db"))
    assert isinstance(store, KeyValueStore)

    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"
    assert store.keys() == ["k"]

    store.delete("k")
    assert store.get("k") is None

    # A second instance sees the same file
    store.set("persisted", "yes")
    assert SQLiteKeyValueStore(str(tmp_path / "cache.db")).get("persisted") == "yes"


def test_sheet_cache_on_sqlite_store(tmp_path):
    clock = FakeClock()
    cache = SheetCache(SQLiteKeyValueStore(str(tmp_path / "cache.db")), clock=clock)

    cache.write(URL, "a\n1\n")
    clock.now += 1000

    assert cache.read(URL).text == "a\n1\n"


def test_entries_and_clear_only_touch_cache_keys():
    store = MemoryKeyValueStore({"settings": "{}"})
    clock = FakeClock()
    cache = SheetCache(store, clock=clock)
    cache.write(URL, "abc")
    store.set(CACHE_KEY_PREFIX + "broken", "garbage")
    clock.now += 2500

    entries = {key: (age, size) for key, age, size in cache.entries()}
    assert entries[cache_key(URL)][0] == 2500
    assert entries[CACHE_KEY_PREFIX + "broken"] == (None, len("garbage"))
    assert "settings" not in entries

    assert cache.clear() == 2
    assert store.keys() == ["settings"]
