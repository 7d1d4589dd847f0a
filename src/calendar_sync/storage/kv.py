"""Persisted key-value stores for session state.

Every write operation is atomic: readers observe either all entries of a
`set_many`/`delete_many` call or none of them.

## Implementations

- MemoryKeyValueStore: process memory only, used by tests and one-shot runs
- FileKeyValueStore: a JSON file replaced atomically on every write, values
  optionally encrypted with a TokenCipher
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from calendar_sync.storage.encryption import TokenCipher

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String-keyed store of string values."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value for a key, or None if absent."""

    @abstractmethod
    def set_many(self, entries: Mapping[str, str]) -> None:
        """Write several entries in one atomic operation."""

    @abstractmethod
    def delete_many(self, keys: Iterable[str]) -> None:
        """Remove several entries in one atomic operation.

        Missing keys are ignored.
        """

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        """Return several entries; absent keys map to None."""
        return {key: self.get(key) for key in keys}


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set_many(self, entries: Mapping[str, str]) -> None:
        self._data = {**self._data, **entries}

    def delete_many(self, keys: Iterable[str]) -> None:
        doomed = set(keys)
        self._data = {k: v for k, v in self._data.items() if k not in doomed}

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class FileKeyValueStore(KeyValueStore):
    """JSON file store.

    Example:
        ```python
        store = FileKeyValueStore(Path("~/.calendar-sync/session.json"))
        store.set_many({"accessToken": "abc", "expiresAt": "1700000000000"})
        store.get("accessToken")
        ```
    """

    def __init__(self, path: Path, cipher: TokenCipher | None = None):
        """Initialize the store.

        Args:
            path: JSON file location (created on first write)
            cipher: Encrypts values at rest when provided
        """
        self.path = Path(path).expanduser()
        self._cipher = cipher

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        if not raw.strip():
            return {}

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Session file {self.path} is not a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _decode(self, value: str | None) -> str | None:
        if value is None or self._cipher is None:
            return value
        return self._cipher.decrypt(value)

    def get(self, key: str) -> str | None:
        return self._decode(self._read().get(key))

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        """Read several entries from a single snapshot of the file."""
        data = self._read()
        return {key: self._decode(data.get(key)) for key in keys}

    def set_many(self, entries: Mapping[str, str]) -> None:
        data = self._read()
        for key, value in entries.items():
            data[key] = self._cipher.encrypt(value) if self._cipher else value
        self._write(data)
        logger.debug(f"Persisted {len(entries)} session entries to {self.path}")

    def delete_many(self, keys: Iterable[str]) -> None:
        doomed = set(keys)
        if not self.path.exists():
            return
        data = self._read()
        self._write({k: v for k, v in data.items() if k not in doomed})
