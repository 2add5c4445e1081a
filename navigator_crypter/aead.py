"""
AEAD Ciphers: cipher handles used by the session Crypter.

Every handle exposes the same capability set:
- ``nonce_size`` / ``key_size``: sizes in bytes
- ``seal(nonce, plaintext, aad)``: encrypt and append the 16-byte tag
- ``open(nonce, ciphertext, aad)``: verify the tag and decrypt

AES-GCM and ChaCha20-Poly1305 come from ``cryptography``; XChaCha20-Poly1305
uses the libsodium bindings shipped with PyNaCl.

Security Note:
    Never log key material. Only log cipher names and sizes.
"""
import os
from typing import Optional, Protocol, runtime_checkable

from cryptography.hazmat.primitives.ciphers import algorithms
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from nacl import bindings as sodium

from .exceptions import AEADSetupError, KeySetupError

GCM_NONCE_SIZE = 12  # 96-bit random nonce
CHACHA_NONCE_SIZE = 12
XCHACHA_NONCE_SIZE = sodium.crypto_aead_xchacha20poly1305_ietf_NPUBBYTES  # 24
CHACHA_KEY_SIZE = 32
XCHACHA_KEY_SIZE = sodium.crypto_aead_xchacha20poly1305_ietf_KEYBYTES
TAG_SIZE = 16


@runtime_checkable
class AEADCipher(Protocol):
    """Capability set every cipher handle must provide."""

    name: str

    @property
    def nonce_size(self) -> int:
        ...

    @property
    def key_size(self) -> int:
        ...

    def seal(self, nonce: bytes, plaintext: bytes, aad: Optional[bytes]) -> bytes:
        ...

    def open(self, nonce: bytes, ciphertext: bytes, aad: Optional[bytes]) -> bytes:
        ...


@runtime_checkable
class RandomSource(Protocol):
    """Source of cryptographically secure random bytes."""

    def read(self, size: int) -> bytes:
        ...


class SystemRandomSource:
    """Random source backed by ``os.urandom``."""

    def read(self, size: int) -> bytes:
        return os.urandom(size)

    def __repr__(self) -> str:
        return '<SystemRandomSource>'


# ---------------------------------------------------------------------------
# AES-GCM
# ---------------------------------------------------------------------------

class AESGCMCipher:
    """AES-GCM with random 96-bit nonces.

    The key selects the variant: 16 bytes for AES-128, 24 bytes for AES-192
    and 32 bytes for AES-256.

    Args:
        key: Raw AES key.

    Raises:
        KeySetupError: If the key is not a valid AES key.
        AEADSetupError: If the GCM mode cannot be built for the key.
    """

    def __init__(self, key: bytes):
        try:
            block = algorithms.AES(key)
        except (TypeError, ValueError) as err:
            raise KeySetupError(
                f"failed to create AES cipher: {err}", stage="setup"
            ) from err
        try:
            self._aead = AESGCM(key)
        except (TypeError, ValueError) as err:
            raise AEADSetupError(
                f"failed to create AES-GCM AEAD: {err}", stage="setup"
            ) from err
        self._key_size = block.key_size // 8
        self.name = f"AES-{block.key_size}-GCM"

    @property
    def nonce_size(self) -> int:
        return GCM_NONCE_SIZE

    @property
    def key_size(self) -> int:
        return self._key_size

    def seal(self, nonce: bytes, plaintext: bytes, aad: Optional[bytes]) -> bytes:
        return self._aead.encrypt(nonce, plaintext, aad)

    def open(self, nonce: bytes, ciphertext: bytes, aad: Optional[bytes]) -> bytes:
        return self._aead.decrypt(nonce, ciphertext, aad)

    def __repr__(self) -> str:
        return f'<AESGCMCipher {self.name}>'


# ---------------------------------------------------------------------------
# ChaCha20-Poly1305
# ---------------------------------------------------------------------------

class ChaCha20Poly1305Cipher:
    """ChaCha20-Poly1305 (RFC 8439) with a 96-bit nonce.

    Raises:
        AEADSetupError: If the key is not exactly 32 bytes.
    """

    name = "ChaCha20-Poly1305"

    def __init__(self, key: bytes):
        try:
            self._aead = ChaCha20Poly1305(key)
        except (TypeError, ValueError) as err:
            raise AEADSetupError(
                f"failed to create ChaCha20-Poly1305 AEAD: {err}", stage="setup"
            ) from err

    @property
    def nonce_size(self) -> int:
        return CHACHA_NONCE_SIZE

    @property
    def key_size(self) -> int:
        return CHACHA_KEY_SIZE

    def seal(self, nonce: bytes, plaintext: bytes, aad: Optional[bytes]) -> bytes:
        return self._aead.encrypt(nonce, plaintext, aad)

    def open(self, nonce: bytes, ciphertext: bytes, aad: Optional[bytes]) -> bytes:
        return self._aead.decrypt(nonce, ciphertext, aad)

    def __repr__(self) -> str:
        return '<ChaCha20Poly1305Cipher>'


# ---------------------------------------------------------------------------
# XChaCha20-Poly1305
# ---------------------------------------------------------------------------

class XChaCha20Poly1305Cipher:
    """XChaCha20-Poly1305 with an extended 192-bit nonce.

    Random nonces of this size do not collide in practice, so a long-lived
    key can seal far more sessions than with a 96-bit nonce.

    Raises:
        AEADSetupError: If the key is not exactly 32 bytes.
    """

    name = "XChaCha20-Poly1305"

    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)):
            raise AEADSetupError(
                "failed to create XChaCha20-Poly1305 AEAD: key must be bytes",
                stage="setup",
            )
        if len(key) != XCHACHA_KEY_SIZE:
            raise AEADSetupError(
                "failed to create XChaCha20-Poly1305 AEAD: "
                f"key must be {XCHACHA_KEY_SIZE} bytes, got {len(key)}",
                stage="setup",
            )
        self._key = bytes(key)

    @property
    def nonce_size(self) -> int:
        return XCHACHA_NONCE_SIZE

    @property
    def key_size(self) -> int:
        return XCHACHA_KEY_SIZE

    def seal(self, nonce: bytes, plaintext: bytes, aad: Optional[bytes]) -> bytes:
        return sodium.crypto_aead_xchacha20poly1305_ietf_encrypt(
            plaintext, aad, nonce, self._key
        )

    def open(self, nonce: bytes, ciphertext: bytes, aad: Optional[bytes]) -> bytes:
        return sodium.crypto_aead_xchacha20poly1305_ietf_decrypt(
            ciphertext, aad, nonce, self._key
        )

    def __repr__(self) -> str:
        return '<XChaCha20Poly1305Cipher>'


CIPHER_BACKENDS = {
    "aesgcm": AESGCMCipher,
    "chacha20": ChaCha20Poly1305Cipher,
    "xchacha20": XChaCha20Poly1305Cipher,
}
