"""Tests for KeyValueStore — aiosqlite JSON storage."""

from pathlib import Path

import pytest

from skycast.storage.kv import KeyValueStore


@pytest.fixture
def kv(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(db_path=tmp_path / "kv.db")


async def test_missing_key_is_none(kv: KeyValueStore) -> None:
    """get should return None for unknown keys."""
    assert await kv.get("nothing") is None


async def test_set_and_get(kv: KeyValueStore) -> None:
    """Values round-trip as JSON."""
    await kv.set("preferences", {"units": "imperial", "voice": "nova"})
    assert await kv.get("preferences") == {"units": "imperial", "voice": "nova"}


async def test_set_overwrites(kv: KeyValueStore) -> None:
    """Setting an existing key replaces its value."""
    await kv.set("current_session_id", "a")
    await kv.set("current_session_id", "b")
    assert await kv.get("current_session_id") == "b"


async def test_set_many(kv: KeyValueStore) -> None:
    """set_many should write several keys at once."""
    await kv.set_many({"a": [1, 2], "b": None, "c": "text"})
    assert await kv.get("a") == [1, 2]
    assert await kv.get("c") == "text"


async def test_delete(kv: KeyValueStore) -> None:
    """delete should report whether the key existed."""
    await kv.set("a", 1)
    assert await kv.delete("a")
    assert not await kv.delete("a")
    assert await kv.get("a") is None


async def test_persists_across_instances(tmp_path: Path) -> None:
    """Data survives a new store on the same file, creating parent dirs."""
    path = tmp_path / "nested" / "kv.db"
    await KeyValueStore(db_path=path).set("location_history", ["Paris"])
    assert await KeyValueStore(db_path=path).get("location_history") == ["Paris"]
