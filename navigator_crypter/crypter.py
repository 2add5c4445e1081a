"""
Crypter: encrypted codec for session data.

Implements the ``encode``/``decode`` contract expected by session storages:
- ``encode(deadline, values)``: serialize the record, then seal it
- ``decode(data)``: open the envelope, then deserialize the record

Envelope layout: ``[nonce N bytes][ciphertext + tag 16B]``, where N is the
nonce size of the configured cipher (12 for AES-GCM and ChaCha20-Poly1305,
24 for XChaCha20-Poly1305). There is no version tag and no associated data,
so decoding requires the same cipher and key used to encode.

Security Note:
    Never log plaintext, ciphertext or key material. Only log cipher names,
    error kinds and stages.
"""
import logging
from typing import Any, Optional
from datetime import datetime

from .aead import (
    AEADCipher,
    AESGCMCipher,
    ChaCha20Poly1305Cipher,
    XChaCha20Poly1305Cipher,
    CIPHER_BACKENDS,
    RandomSource,
    SystemRandomSource,
)
from .exceptions import (
    AuthenticationError,
    CiphertextTooShortError,
    CrypterError,
    DeserializationError,
    NoCipherError,
    RandomSourceError,
    SerializationError,
)
from .serializers import JSONSerializer, Serializer, get_serializer

logger = logging.getLogger("navigator.crypter")


class Crypter:
    """Encrypts and authenticates session records with an AEAD cipher.

    A Crypter is built once and shared: it holds no mutable state, so the
    same instance can be used from many tasks or threads at once. To change
    the cipher, build a new Crypter.

    Args:
        cipher: AEAD cipher handle. ``None`` is accepted; every operation
            then fails with ``NoCipherError``.
        random_source: Source of nonces, defaults to ``os.urandom``.
        serializer: Session record serializer, defaults to ``JSONSerializer``.
    """

    __slots__ = ('_cipher', '_random', '_serializer')

    def __init__(
        self,
        cipher: Optional[AEADCipher] = None,
        *,
        random_source: Optional[RandomSource] = None,
        serializer: Optional[Serializer] = None,
    ):
        self._cipher = cipher
        self._random = random_source or SystemRandomSource()
        self._serializer = serializer or JSONSerializer()
        if cipher is not None:
            logger.debug(
                "Crypter ready: cipher=%s nonce_size=%d serializer=%s",
                cipher.name, cipher.nonce_size, self._serializer.name,
            )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def aes_gcm(cls, key: bytes, **kwargs) -> "Crypter":
        """Crypter using AES-GCM; a 16, 24 or 32 byte key selects AES-128/192/256.

        Raises:
            KeySetupError: If the key length is invalid for AES.
            AEADSetupError: If the GCM AEAD cannot be built.
        """
        return cls(AESGCMCipher(key), **kwargs)

    @classmethod
    def chacha20_poly1305(cls, key: bytes, **kwargs) -> "Crypter":
        """Crypter using ChaCha20-Poly1305 with a 32-byte key.

        Raises:
            AEADSetupError: If the key is not 32 bytes.
        """
        return cls(ChaCha20Poly1305Cipher(key), **kwargs)

    @classmethod
    def xchacha20_poly1305(cls, key: bytes, **kwargs) -> "Crypter":
        """Crypter using XChaCha20-Poly1305 with a 32-byte key.

        Raises:
            AEADSetupError: If the key is not 32 bytes.
        """
        return cls(XChaCha20Poly1305Cipher(key), **kwargs)

    @classmethod
    def from_config(cls, config: Any, **kwargs) -> "Crypter":
        """Build a Crypter from a :class:`CrypterConfig`.

        Args:
            config: Validated crypter configuration.
            **kwargs: Passed to the constructor (e.g. ``random_source``).

        Returns:
            Crypter instance for the configured cipher and serializer.
        """
        cipher = CIPHER_BACKENDS[config.cipher_backend](config.key)
        kwargs.setdefault('serializer', get_serializer(config.serializer))
        return cls(cipher, **kwargs)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def cipher(self) -> Optional[AEADCipher]:
        return self._cipher

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    def __repr__(self) -> str:
        name = self._cipher.name if self._cipher is not None else None
        return f'<Crypter cipher={name} serializer={self._serializer.name}>'

    # ------------------------------------------------------------------
    # Session codec
    # ------------------------------------------------------------------

    def encode(self, deadline: datetime, values: dict[str, Any]) -> bytes:
        """Serialize and encrypt session data.

        Args:
            deadline: Expiration time of the session.
            values: Session values.

        Returns:
            Encrypted session data.

        Raises:
            SerializationError: If a value type cannot be serialized.
            NoCipherError: If the Crypter has no cipher.
            RandomSourceError: If no nonce could be drawn.
        """
        if not isinstance(deadline, datetime):
            raise SerializationError(
                f"deadline must be a datetime, got {type(deadline).__name__}",
                stage="serialize",
            )
        if not isinstance(values, dict):
            raise SerializationError(
                f"values must be a dict, got {type(values).__name__}",
                stage="serialize",
            )
        record = {"deadline": deadline, "values": values}
        try:
            plaintext = self._serializer.dumps(record)
        except SerializationError as err:
            logger.debug("Session encode failed: %s (serialize)", type(err).__name__)
            raise
        try:
            return self.encrypt(plaintext)
        except CrypterError as err:
            logger.debug("Session encode failed: %s (encrypt)", type(err).__name__)
            raise err.with_stage(
                "encrypt", "failed to encrypt session data"
            ) from err

    def decode(self, data: bytes) -> tuple[datetime, dict[str, Any]]:
        """Decrypt and deserialize session data.

        Args:
            data: Encrypted session data produced by :meth:`encode`.

        Returns:
            Tuple of (deadline, values).

        Raises:
            NoCipherError: If the Crypter has no cipher.
            CiphertextTooShortError: If data is shorter than the nonce.
            AuthenticationError: If the envelope fails to open.
            DeserializationError: If the plaintext is not a session record.
        """
        try:
            plaintext = self.decrypt(data)
        except CrypterError as err:
            logger.debug("Session decode failed: %s (decrypt)", type(err).__name__)
            raise err.with_stage(
                "decrypt", "failed to decrypt session data"
            ) from err
        try:
            record = self._serializer.loads(plaintext)
        except DeserializationError as err:
            logger.debug("Session decode failed: %s (deserialize)", type(err).__name__)
            raise
        if (
            not isinstance(record, dict)
            or set(record) != {"deadline", "values"}
            or not isinstance(record["deadline"], datetime)
            or not isinstance(record["values"], dict)
        ):
            logger.debug("Session decode failed: unexpected record shape")
            raise DeserializationError(
                "failed to decode session data: unexpected record shape",
                stage="deserialize",
            )
        return record["deadline"], record["values"]

    # ------------------------------------------------------------------
    # AEAD envelope
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes) -> bytes:
        """Seal plaintext into a ``nonce || ciphertext`` envelope.

        Raises:
            NoCipherError: If the Crypter has no cipher.
            RandomSourceError: If the random source fails or returns short.
        """
        if self._cipher is None:
            raise NoCipherError(stage="encrypt")
        size = self._cipher.nonce_size
        try:
            nonce = self._random.read(size)
        except Exception as err:
            raise RandomSourceError(
                f"failed to generate random nonce: {err}", stage="encrypt"
            ) from err
        if not isinstance(nonce, bytes) or len(nonce) != size:
            raise RandomSourceError(
                f"failed to generate random nonce: expected {size} bytes",
                stage="encrypt",
            )
        return nonce + self._cipher.seal(nonce, plaintext, None)

    def decrypt(self, data: Optional[bytes]) -> bytes:
        """Open a ``nonce || ciphertext`` envelope.

        Any failure of the cipher is reported as ``AuthenticationError``.

        Raises:
            NoCipherError: If the Crypter has no cipher.
            CiphertextTooShortError: If data is shorter than the nonce.
            AuthenticationError: If the envelope cannot be opened.
        """
        if self._cipher is None:
            raise NoCipherError(stage="decrypt")
        size = self._cipher.nonce_size
        if not data or len(data) < size:
            raise CiphertextTooShortError(stage="decrypt")
        data = bytes(data)
        nonce, ciphertext = data[:size], data[size:]
        try:
            return self._cipher.open(nonce, ciphertext, None)
        except Exception:
            raise AuthenticationError(stage="decrypt") from None
