"""Tests for the persisted key-value stores."""

import json

import pytest

from calendar_sync.storage.encryption import TokenCipher
from calendar_sync.storage.kv import FileKeyValueStore, MemoryKeyValueStore


@pytest.fixture(scope="module")
def cipher() -> TokenCipher:
    """Cipher shared across tests (key derivation is deliberately slow)."""
    return TokenCipher("test-secret-key-at-least-32-characters-long")


class TestMemoryKeyValueStore:
    """Tests for the in-memory store."""

    def test_set_and_get(self):
        store = MemoryKeyValueStore()
        store.set_many({"a": "1", "b": "2"})
        assert store.get("a") == "1"
        assert store.get_many(["a", "b", "c"]) == {"a": "1", "b": "2", "c": None}

    def test_delete_many_ignores_missing(self):
        store = MemoryKeyValueStore({"a": "1", "keep": "x"})
        store.delete_many(["a", "missing"])
        assert store.snapshot() == {"keep": "x"}


class TestFileKeyValueStore:
    """Tests for the JSON file store."""

    def test_missing_file_reads_empty(self, tmp_path):
        """Test that a fresh path has no entries."""
        store = FileKeyValueStore(tmp_path / "session.json")
        assert store.get("accessToken") is None

    def test_round_trip_across_instances(self, tmp_path):
        """Test that entries survive a new store instance."""
        path = tmp_path / "nested" / "session.json"
        FileKeyValueStore(path).set_many({"accessToken": "abc", "expiresAt": "42"})

        reopened = FileKeyValueStore(path)
        assert reopened.get("accessToken") == "abc"
        assert reopened.get("expiresAt") == "42"

    def test_set_many_merges(self, tmp_path):
        """Test that writes keep unrelated keys."""
        store = FileKeyValueStore(tmp_path / "session.json")
        store.set_many({"a": "1"})
        store.set_many({"b": "2"})
        assert store.get_many(["a", "b"]) == {"a": "1", "b": "2"}

    def test_no_temp_files_left_behind(self, tmp_path):
        """Test that the atomic write cleans up after itself."""
        store = FileKeyValueStore(tmp_path / "session.json")
        store.set_many({"a": "1"})
        store.set_many({"a": "2"})
        assert [p.name for p in tmp_path.iterdir()] == ["session.json"]

    def test_delete_many_is_idempotent(self, tmp_path):
        """Test deleting twice and deleting from a missing file."""
        path = tmp_path / "session.json"
        store = FileKeyValueStore(path)
        store.delete_many(["a"])
        assert not path.exists()

        store.set_many({"a": "1", "b": "2"})
        store.delete_many(["a"])
        store.delete_many(["a"])
        assert json.loads(path.read_text()) == {"b": "2"}

    def test_get_many_reads_one_snapshot(self, tmp_path, monkeypatch):
        """Test that a multi-key read never mixes two versions of the file."""
        store = FileKeyValueStore(tmp_path / "session.json")
        store.set_many({"accessToken": "old", "expiresAt": "1"})

        original_read = store._read
        reads = []

        def read_then_overwrite():
            data = original_read()
            reads.append(data)
            # Another process replaces the session right after this read
            store._write({"accessToken": "new", "expiresAt": "2"})
            return data

        monkeypatch.setattr(store, "_read", read_then_overwrite)

        assert store.get_many(["accessToken", "expiresAt"]) == {
            "accessToken": "old",
            "expiresAt": "1",
        }
        assert len(reads) == 1

    def test_get_many_decrypts(self, tmp_path, cipher):
        store = FileKeyValueStore(tmp_path / "session.json", cipher=cipher)
        store.set_many({"accessToken": "abc", "expiresAt": "42"})
        assert store.get_many(["accessToken", "expiresAt", "refreshToken"]) == {
            "accessToken": "abc",
            "expiresAt": "42",
            "refreshToken": None,
        }

    def test_encrypted_values(self, tmp_path, cipher):
        """Test that values are unreadable on disk but decrypted on read."""
        path = tmp_path / "session.json"
        store = FileKeyValueStore(path, cipher=cipher)
        store.set_many({"accessToken": "ya29.secret"})

        assert "ya29.secret" not in path.read_text()
        assert store.get("accessToken") == "ya29.secret"

    def test_wrong_key_raises(self, tmp_path, cipher):
        """Test that a value encrypted with another key is rejected."""
        path = tmp_path / "session.json"
        FileKeyValueStore(path, cipher=cipher).set_many({"accessToken": "abc"})

        other = FileKeyValueStore(path, cipher=TokenCipher("a-completely-different-secret-key"))
        with pytest.raises(ValueError, match="Failed to decrypt"):
            other.get("accessToken")


class TestTokenCipher:
    """Tests for value encryption."""

    def test_round_trip(self, cipher):
        encrypted = cipher.encrypt("refresh-token")
        assert encrypted != "refresh-token"
        assert cipher.decrypt(encrypted) == "refresh-token"

    def test_empty_values(self, cipher):
        assert cipher.encrypt("") == ""
        assert cipher.decrypt("") == ""

    def test_secret_required(self):
        with pytest.raises(ValueError):
            TokenCipher("")
