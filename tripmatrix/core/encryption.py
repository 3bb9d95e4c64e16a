"""
Encryption of Canva OAuth tokens at rest.

Access and refresh tokens are encrypted with Fernet (AES-128-CBC + HMAC)
before they reach the database and decrypted only when a caller needs a
usable token.

Usage:
    from tripmatrix.core.encryption import get_token_cipher

    cipher = get_token_cipher()
    stored = cipher.encrypt(access_token)
    access_token = cipher.decrypt(stored)
"""

from functools import lru_cache

from cryptography.fernet import Fernet

from tripmatrix.core.config import settings


class TokenCipher:
    """Fernet wrapper for token columns (str in, bytes stored)."""

    def __init__(self, key: str | bytes | None = None):
        """
        Args:
            key: Base64-encoded 32-byte Fernet key. Defaults to
                 settings.TOKEN_ENCRYPTION_KEY.

        Raises:
            ValueError: If no key is available.
        """
        if key is None:
            key = settings.TOKEN_ENCRYPTION_KEY

        if not key:
            raise ValueError(
                "TOKEN_ENCRYPTION_KEY environment variable is required. "
                "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )

        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> bytes:
        return self._fernet.encrypt(plaintext.encode())

    def encrypt_optional(self, plaintext: str | None) -> bytes | None:
        """Encrypt a value that may be absent (e.g. a missing refresh token)."""
        if plaintext is None:
            return None
        return self.encrypt(plaintext)

    def decrypt(self, ciphertext: bytes) -> str:
        """
        Raises:
            cryptography.fernet.InvalidToken: If data is corrupted, tampered,
                or was encrypted under a different key.
        """
        return self._fernet.decrypt(ciphertext).decode()


@lru_cache(maxsize=1)
def get_token_cipher() -> TokenCipher:
    """Process-wide TokenCipher configured from settings."""
    return TokenCipher()
