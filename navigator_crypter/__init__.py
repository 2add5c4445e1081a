"""Navigator Crypter: encrypted codec for session data.

Seals session records with an AEAD cipher (AES-GCM, ChaCha20-Poly1305 or
XChaCha20-Poly1305) before they reach the session storage.
"""
from .version import __version__
from .aead import (
    AEADCipher,
    AESGCMCipher,
    ChaCha20Poly1305Cipher,
    XChaCha20Poly1305Cipher,
    RandomSource,
    SystemRandomSource,
)
from .config import CrypterConfig, load_key, generate_key
from .crypter import Crypter
from .exceptions import (
    CrypterError,
    KeySetupError,
    AEADSetupError,
    NoCipherError,
    RandomSourceError,
    CiphertextTooShortError,
    AuthenticationError,
    SerializationError,
    DeserializationError,
)
from .serializers import JSONSerializer, PickleSerializer, get_serializer

__all__ = [
    "__version__",
    "Crypter",
    "CrypterConfig",
    "load_key",
    "generate_key",
    "AEADCipher",
    "AESGCMCipher",
    "ChaCha20Poly1305Cipher",
    "XChaCha20Poly1305Cipher",
    "RandomSource",
    "SystemRandomSource",
    "JSONSerializer",
    "PickleSerializer",
    "get_serializer",
    "CrypterError",
    "KeySetupError",
    "AEADSetupError",
    "NoCipherError",
    "RandomSourceError",
    "CiphertextTooShortError",
    "AuthenticationError",
    "SerializationError",
    "DeserializationError",
]
