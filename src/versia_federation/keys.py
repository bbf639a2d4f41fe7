"""Ed25519 key import and export.

Versia exchanges keys as base64 of their standard DER encodings: SPKI for
public keys and PKCS8 for private keys.
"""

import base64
import binascii
from typing import Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .types import KeyImportError


def _b64decode(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyImportError(f"{what} is not valid base64") from e


def generate_keypair() -> Tuple[str, str]:
    """Generate a new Ed25519 keypair.

    Returns:
        Tuple of (private_key_b64, public_key_b64), PKCS8 and SPKI encoded.
    """
    private_key = Ed25519PrivateKey.generate()
    return export_private_key(private_key), export_public_key(private_key.public_key())


def export_private_key(private_key: Ed25519PrivateKey) -> str:
    """Encode a private key as base64 PKCS8 DER."""
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(private_bytes).decode()


def export_public_key(public_key: Ed25519PublicKey) -> str:
    """Encode a public key as base64 SPKI DER."""
    public_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(public_bytes).decode()


def load_private_key(private_key_b64: str) -> Ed25519PrivateKey:
    """Load an Ed25519 private key from base64 PKCS8 DER.

    Raises:
        KeyImportError: If the data is not a PKCS8 Ed25519 key.
    """
    der = _b64decode(private_key_b64, "Private key")
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyImportError("Private key is not a valid PKCS8 key") from e
    if not isinstance(key, Ed25519PrivateKey):
        raise KeyImportError(f"Expected an Ed25519 private key, got {type(key).__name__}")
    return key


def load_public_key(public_key_b64: str) -> Ed25519PublicKey:
    """Load an Ed25519 public key from base64 SPKI DER.

    Raises:
        KeyImportError: If the data is not an SPKI Ed25519 key.
    """
    der = _b64decode(public_key_b64, "Public key")
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyImportError("Public key is not a valid SPKI key") from e
    if not isinstance(key, Ed25519PublicKey):
        raise KeyImportError(f"Expected an Ed25519 public key, got {type(key).__name__}")
    return key


def load_raw_private_key(private_key_b64: str) -> Ed25519PrivateKey:
    """Load an Ed25519 private key from base64 of its raw 32-byte seed."""
    raw = _b64decode(private_key_b64, "Private key")
    try:
        return Ed25519PrivateKey.from_private_bytes(raw)
    except ValueError as e:
        raise KeyImportError("Raw private key must be 32 bytes") from e


def load_raw_public_key(public_key_b64: str) -> Ed25519PublicKey:
    """Load an Ed25519 public key from base64 of its raw 32 bytes."""
    raw = _b64decode(public_key_b64, "Public key")
    try:
        return Ed25519PublicKey.from_public_bytes(raw)
    except ValueError as e:
        raise KeyImportError("Raw public key must be 32 bytes") from e
