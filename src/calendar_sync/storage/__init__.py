"""Storage module for calendar sync.

This module provides:
- The key-value store abstraction the session tokens live in
- In-memory and JSON-file implementations
- Encryption of persisted values
"""

from calendar_sync.storage.encryption import TokenCipher
from calendar_sync.storage.kv import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)

__all__ = [
    "TokenCipher",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
]
