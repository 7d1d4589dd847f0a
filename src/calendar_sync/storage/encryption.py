"""Encryption of persisted session values.

Uses Fernet symmetric encryption so tokens written to disk are not readable
without the configured SECRET_KEY.

## Key Derivation

The encryption key is derived from the secret using PBKDF2:
- Salt: derived from the secret unless given explicitly
- Iterations: 480,000 (OWASP recommendation for PBKDF2-HMAC-SHA256)
- Key length: 32 bytes (256 bits)

## Usage

```python
from calendar_sync.storage.encryption import TokenCipher

cipher = TokenCipher("my-secret")
encrypted = cipher.encrypt("ya29.a0Af...")
cipher.decrypt(encrypted)
```
"""

from __future__ import annotations

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

KDF_ITERATIONS = 480_000


def derive_salt(secret_key: str) -> str:
    """Derive a stable salt from the secret key."""
    return hashlib.sha256(f"{secret_key}-salt".encode()).hexdigest()[:32]


def _create_fernet(secret_key: str, salt: str) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,  # 256 bits for Fernet
        salt=salt.encode("utf-8"),
        iterations=KDF_ITERATIONS,
    )

    key = base64.urlsafe_b64encode(kdf.derive(secret_key.encode("utf-8")))
    return Fernet(key)


class TokenCipher:
    """Encrypts and decrypts individual persisted values."""

    def __init__(self, secret_key: str, salt: str | None = None):
        if not secret_key:
            raise ValueError("A secret key is required for encryption")
        self._fernet = _create_fernet(secret_key, salt or derive_salt(secret_key))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a value for storage.

        Args:
            plaintext: The value to encrypt

        Returns:
            Base64-encoded ciphertext
        """
        if not plaintext:
            return ""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored value.

        Raises:
            ValueError: If decryption fails (corrupted value or wrong key)
        """
        if not ciphertext:
            return ""
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("Failed to decrypt stored value: invalid token or key")
            raise ValueError("Failed to decrypt stored value") from e
