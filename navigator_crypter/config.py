"""
Crypter Configuration: key loading and validated settings.

Reads settings from environment variables:
    SESSION_CRYPTER_KEY = <base64-encoded key>
    SESSION_CRYPTER_CIPHER = aesgcm | chacha20 | xchacha20
    SESSION_CRYPTER_SERIALIZER = json | pickle

Key length is not checked here; the cipher constructors raise
``KeySetupError`` / ``AEADSetupError`` for an unusable key.

Security Note:
    Never log key material. Only log cipher names and key sizes.
"""
import os
import base64
import binascii
import secrets
import logging

from pydantic import BaseModel, Field, field_validator

from .aead import CIPHER_BACKENDS
from .serializers import SERIALIZERS

logger = logging.getLogger("navigator.crypter")

KEY_ENV = "SESSION_CRYPTER_KEY"
CIPHER_ENV = "SESSION_CRYPTER_CIPHER"
SERIALIZER_ENV = "SESSION_CRYPTER_SERIALIZER"

KEY_SIZE = 32  # AES-256 and (X)ChaCha20


def load_key() -> bytes:
    """Load the session key from the SESSION_CRYPTER_KEY environment variable.

    Returns:
        Raw key bytes.

    Raises:
        RuntimeError: If the variable is not set.
        ValueError: If the value is not valid base64.
    """
    raw = os.environ.get(KEY_ENV)
    if not raw:
        raise RuntimeError(
            f"{KEY_ENV} environment variable is not set. "
            f"Set {KEY_ENV}=<base64-encoded-key>"
        )
    try:
        key = base64.b64decode(raw, validate=True)
    except binascii.Error as err:
        raise ValueError(f"{KEY_ENV} is not valid base64: {err}") from err
    logger.debug("Loaded session key (%d bytes)", len(key))
    return key


def generate_key(cipher_backend: str = "aesgcm") -> str:
    """Generate a random key for the given backend and return it as base64.

    This is a utility for operators to generate new keys.

    Raises:
        ValueError: If the backend is unknown.
    """
    if cipher_backend not in CIPHER_BACKENDS:
        raise ValueError(f"Unsupported cipher backend: {cipher_backend}")
    return base64.b64encode(
        secrets.token_bytes(KEY_SIZE)
    ).decode("ascii")


class CrypterConfig(BaseModel):
    """Validated crypter configuration."""

    key: bytes = Field(repr=False)
    cipher_backend: str = Field(default="aesgcm")
    serializer: str = Field(default="json")

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("serializer")
    @classmethod
    def validate_serializer(cls, v: str) -> str:
        """Validate serializer is supported."""
        v = v.lower()
        if v not in SERIALIZERS:
            raise ValueError(f"Unsupported session serializer: {v}")
        return v

    @classmethod
    def from_env(cls) -> "CrypterConfig":
        """Create CrypterConfig by loading values from environment.

        Returns:
            Populated CrypterConfig instance.
        """
        return cls(
            key=load_key(),
            cipher_backend=os.environ.get(CIPHER_ENV, "aesgcm"),
            serializer=os.environ.get(SERIALIZER_ENV, "json"),
        )
