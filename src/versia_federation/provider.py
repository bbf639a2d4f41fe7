"""Crypto provider backed by the `cryptography` package.

Signers and validators take a provider at construction instead of probing
the environment on every call. The provider checks Ed25519 support once.
"""

import hashlib
import logging
from typing import Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .types import UnsupportedEnvironmentError

logger = logging.getLogger(__name__)

ED25519_SIGNATURE_LENGTH = 64


class CryptoProvider:
    """Ed25519 signing and SHA-256 digests.

    Raises:
        UnsupportedEnvironmentError: If the linked OpenSSL lacks Ed25519.
    """

    def __init__(self):
        try:
            Ed25519PrivateKey.generate()
        except UnsupportedAlgorithm as e:
            raise UnsupportedEnvironmentError(
                f"Ed25519 is not supported by the crypto backend: {e}"
            ) from e
        logger.debug("Ed25519 crypto provider ready")

    def sha256(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()

    def sign(self, private_key: Ed25519PrivateKey, data: bytes) -> bytes:
        return private_key.sign(data)

    def verify(self, public_key: Ed25519PublicKey, signature: bytes, data: bytes) -> bool:
        """Return True if `signature` is valid for `data`. Never raises on mismatch."""
        if len(signature) != ED25519_SIGNATURE_LENGTH:
            return False
        try:
            public_key.verify(signature, data)
        except InvalidSignature:
            return False
        return True


_default_provider: Optional[CryptoProvider] = None


def default_provider() -> CryptoProvider:
    """Return the shared provider, creating it on first use."""
    global _default_provider
    if _default_provider is None:
        _default_provider = CryptoProvider()
    return _default_provider
