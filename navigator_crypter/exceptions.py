"""
Crypter Exceptions.

Every failure raised by the codec derives from ``CrypterError``. Each error
also subclasses the builtin exception that best matches it, so callers that
already catch ``ValueError`` or ``TypeError`` keep working.
"""
from typing import Optional


class CrypterError(Exception):
    """Base class for all session crypter errors.

    Attributes:
        stage: Pipeline stage that produced the error
            ("setup", "encrypt", "decrypt", "serialize", "deserialize").
    """

    def __init__(self, message: str = "", *, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        return self.message

    def with_stage(self, stage: str, context: str) -> "CrypterError":
        """Return a copy of this error tagged with the given stage.

        The class is preserved, so ``except NoCipherError`` still matches
        after the error went through ``encode``/``decode``.
        """
        return type(self)(f"{context}: {self.message}", stage=stage)


class KeySetupError(CrypterError, ValueError):
    """Block cipher key length is invalid."""


class AEADSetupError(CrypterError, ValueError):
    """AEAD primitive could not be built for the given key."""


class NoCipherError(CrypterError, RuntimeError):
    """Seal or open invoked without a cipher."""

    def __init__(self, message: str = "cipher is nil", *, stage: Optional[str] = None):
        super().__init__(message, stage=stage)


class RandomSourceError(CrypterError, RuntimeError):
    """Random source failed to produce a nonce."""


class CiphertextTooShortError(CrypterError, ValueError):
    """Envelope is shorter than the cipher nonce."""

    def __init__(
        self, message: str = "ciphertext too short", *, stage: Optional[str] = None
    ):
        super().__init__(message, stage=stage)


class AuthenticationError(CrypterError, ValueError):
    """Envelope could not be opened.

    Tag mismatch and any other failure of the AEAD primitive are reported
    with this same error and message.
    """

    def __init__(
        self, message: str = "message authentication failed", *, stage: Optional[str] = None
    ):
        super().__init__(message, stage=stage)


class SerializationError(CrypterError, TypeError):
    """Session values contain a type the serializer cannot encode."""


class DeserializationError(CrypterError, ValueError):
    """Decrypted bytes do not parse into a session record."""
