"""Versia request signatures using Ed25519.

Every federated request carries three headers:

    Versia-Signature: base64 Ed25519 signature over the signed string
    Versia-Signed-At: Unix timestamp (seconds) used in the signed string
    Versia-Signed-By: URI of the signing actor (not authenticated)

The signed string is built from the request as

    "<method lowercase> <encoded path> <timestamp> <base64(sha256(body))>"

See https://versia.pub/signatures
"""

import base64
import binascii
import logging
import math
import re
import time
from datetime import datetime
from typing import Optional, Union
from urllib.parse import quote

import httpx
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .keys import load_private_key, load_public_key
from .provider import CryptoProvider, default_provider
from .types import (
    SIGNATURE_HEADER,
    SIGNED_AT_HEADER,
    MalformedHeaderError,
    MalformedSignatureError,
    MissingHeaderError,
    SignedEnvelope,
    SignedHeaders,
    SignedRequest,
    SigningContext,
)

logger = logging.getLogger(__name__)

Timestamp = Union[int, float, datetime]
Body = Union[bytes, str, None]
URLTypes = Union[httpx.URL, str]

# Characters left alone by ECMAScript's encodeURI, on top of quote()'s own
# always-safe set (letters, digits and "_.-~").
_URI_SAFE = ";,/?:@&=+$!*'()#"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


# -----------------------------------------------------------------------------
# Signed string
# -----------------------------------------------------------------------------


def encode_path(path: str) -> str:
    """Percent-encode a request path for the signed string.

    Both signer and validator must go through this function. A "%" already
    present in the path is escaped again, as encodeURI does.
    """
    return quote(path, safe=_URI_SAFE)


def request_path(url: URLTypes) -> str:
    """Return the raw path of `url`, without query string."""
    if not isinstance(url, httpx.URL):
        url = httpx.URL(url)
    path = url.raw_path.decode("ascii").split("?", 1)[0]
    return path or "/"


def format_timestamp(timestamp: Timestamp) -> str:
    """Format a timestamp in seconds the way it appears on the wire."""
    if isinstance(timestamp, datetime):
        timestamp = timestamp.timestamp()
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise TypeError(f"timestamp must be a number or datetime, not {type(timestamp).__name__}")
    if not math.isfinite(timestamp):
        raise ValueError("timestamp must be finite")
    if float(timestamp).is_integer():
        return str(int(timestamp))
    return repr(float(timestamp))


def parse_timestamp(value: str) -> float:
    """Parse a Versia-Signed-At header value.

    Raises:
        MalformedHeaderError: If the value is not a finite number.
    """
    try:
        timestamp = float(value)
    except ValueError:
        raise MalformedHeaderError(f"{SIGNED_AT_HEADER} is not a number: {value!r}")
    if not math.isfinite(timestamp):
        raise MalformedHeaderError(f"{SIGNED_AT_HEADER} is not finite: {value!r}")
    return timestamp


def digest_body(body: Body, provider: Optional[CryptoProvider] = None) -> str:
    """Base64 SHA-256 of the raw body bytes. A missing body hashes as b""."""
    provider = provider or default_provider()
    if body is None:
        body = b""
    elif isinstance(body, str):
        body = body.encode("utf-8")
    return base64.b64encode(provider.sha256(body)).decode()


def build_signed_string(method: str, path: str, timestamp: Timestamp, body_digest: str) -> str:
    """Build the exact string that gets signed.

    Args:
        method: HTTP method, any case
        path: Raw request path (no query string)
        timestamp: Signature time in seconds since the epoch
        body_digest: Output of digest_body()
    """
    context = SigningContext(
        method=method,
        path=encode_path(path),
        timestamp=format_timestamp(timestamp),
        body_digest=body_digest,
    )
    return context.canonical_string()


def create_signing_context(
    method: str,
    url: URLTypes,
    timestamp: Timestamp,
    body: Body = None,
    provider: Optional[CryptoProvider] = None,
) -> SigningContext:
    """Collect the signed fields of a request into a SigningContext."""
    return SigningContext(
        method=method,
        path=encode_path(request_path(url)),
        timestamp=format_timestamp(timestamp),
        body_digest=digest_body(body, provider),
    )


def decode_signature(signature: str) -> bytes:
    """Decode a base64 signature. Missing padding is tolerated.

    Raises:
        MalformedSignatureError: If the value is empty or not base64.
    """
    value = signature.strip()
    if not value:
        raise MalformedSignatureError("Signature is empty")

    unpadded = value.rstrip("=")
    if not _BASE64_RE.match(value) or len(unpadded) % 4 == 1:
        raise MalformedSignatureError("Signature is not valid base64")

    try:
        return base64.b64decode(unpadded + "=" * (-len(unpadded) % 4), validate=True)
    except binascii.Error as e:
        raise MalformedSignatureError("Signature is not valid base64") from e


# -----------------------------------------------------------------------------
# Signing
# -----------------------------------------------------------------------------


class SignatureConstructor:
    """Signs outgoing requests on behalf of one actor.

    Usage:
        signer = SignatureConstructor.from_base64_key(
            private_key_b64,
            "https://example.com/users/6a18f2c3-120e-4949-bda4-2aa4c8264d51",
        )
        signed = signer.sign_components("POST", "https://bob.org/inbox", body)
        response = await client.post(url, content=body, headers=signed.headers)
    """

    def __init__(
        self,
        private_key: Ed25519PrivateKey,
        signed_by: Union[str, httpx.URL],
        provider: Optional[CryptoProvider] = None,
    ):
        """Initialize the signer.

        Args:
            private_key: Ed25519 private key
            signed_by: URI of the actor signing the requests
            provider: Crypto provider (default: shared provider)

        Raises:
            UnsupportedEnvironmentError: If Ed25519 is unavailable.
        """
        self._provider = provider or default_provider()
        self._private_key = private_key
        self.signed_by = str(signed_by)

    @classmethod
    def from_base64_key(
        cls,
        private_key_b64: str,
        signed_by: Union[str, httpx.URL],
        provider: Optional[CryptoProvider] = None,
    ) -> "SignatureConstructor":
        """Create a signer from a base64 PKCS8 private key.

        Raises:
            UnsupportedEnvironmentError: If Ed25519 is unavailable.
            KeyImportError: If the key is not a PKCS8 Ed25519 key.
        """
        provider = provider or default_provider()
        return cls(load_private_key(private_key_b64), signed_by, provider)

    def sign_components(
        self,
        method: str,
        url: URLTypes,
        body: Body = None,
        headers: Optional[Union[httpx.Headers, dict]] = None,
        timestamp: Optional[Timestamp] = None,
    ) -> SignedHeaders:
        """Sign a request given as its parts.

        Args:
            method: HTTP method
            url: Full URL or bare path
            body: Exact body bytes that will be sent (optional)
            headers: Existing headers; left untouched
            timestamp: Signature time, truncated to whole seconds (default: now)

        Returns:
            SignedHeaders with a copy of `headers` plus the Versia-* headers.
        """
        # Whole seconds only: JS peers rebuild the time through Date, which
        # cannot reproduce every fractional value byte for byte.
        if timestamp is None:
            timestamp = time.time()
        elif isinstance(timestamp, datetime):
            timestamp = timestamp.timestamp()
        if isinstance(timestamp, float) and math.isfinite(timestamp):
            timestamp = math.floor(timestamp)

        context = create_signing_context(method, url, timestamp, body, self._provider)
        signed_string = context.canonical_string()
        signature = self._provider.sign(self._private_key, signed_string.encode("utf-8"))

        envelope = SignedEnvelope(
            signature=base64.b64encode(signature).decode(),
            timestamp=context.timestamp,
            signed_by=self.signed_by,
        )

        signed_headers = httpx.Headers(headers or {})
        signed_headers.update(envelope.to_headers())

        logger.debug("Signed %r as %s", signed_string, self.signed_by)
        return SignedHeaders(headers=signed_headers, signed_string=signed_string, envelope=envelope)

    async def sign_request(self, request: httpx.Request) -> SignedRequest:
        """Sign a full request.

        The body is read without consuming it and the original request is
        not modified. An existing Versia-Signed-At header is reused as the
        signature time.

        Returns:
            SignedRequest holding a new, signed httpx.Request.
        """
        body = await request.aread()

        signed_at = request.headers.get(SIGNED_AT_HEADER)
        timestamp = parse_timestamp(signed_at) if signed_at else None

        signed = self.sign_components(
            request.method,
            request.url,
            body,
            request.headers,
            timestamp,
        )

        headers = signed.headers
        if "Transfer-Encoding" in headers:
            del headers["Transfer-Encoding"]

        signed_request = httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=body,
            extensions=dict(request.extensions),
        )
        return SignedRequest(
            request=signed_request,
            signed_string=signed.signed_string,
            envelope=signed.envelope,
        )


# -----------------------------------------------------------------------------
# Verification
# -----------------------------------------------------------------------------


class SignatureValidator:
    """Verifies incoming request signatures against one public key.

    Instances hold only the immutable key and can be shared between
    concurrent requests.
    """

    def __init__(
        self,
        public_key: Ed25519PublicKey,
        provider: Optional[CryptoProvider] = None,
        max_age: Optional[float] = None,
    ):
        """Initialize the validator.

        Args:
            public_key: Ed25519 public key of the remote actor
            provider: Crypto provider (default: shared provider)
            max_age: Reject signatures further than this many seconds from
                now, in either direction (default: no limit)

        Raises:
            UnsupportedEnvironmentError: If Ed25519 is unavailable.
            ValueError: If max_age is not a positive, finite number.
        """
        if max_age is not None and not (
            isinstance(max_age, (int, float))
            and not isinstance(max_age, bool)
            and math.isfinite(max_age)
            and max_age > 0
        ):
            raise ValueError(f"max_age must be a positive number of seconds, got {max_age!r}")

        self._provider = provider or default_provider()
        self._public_key = public_key
        self.max_age = max_age

    @classmethod
    def from_base64_key(
        cls,
        public_key_b64: str,
        provider: Optional[CryptoProvider] = None,
        max_age: Optional[float] = None,
    ) -> "SignatureValidator":
        """Create a validator from a base64 SPKI public key.

        Raises:
            UnsupportedEnvironmentError: If Ed25519 is unavailable.
            KeyImportError: If the key is not an SPKI Ed25519 key.
        """
        provider = provider or default_provider()
        return cls(load_public_key(public_key_b64), provider, max_age)

    async def validate_request(self, request: httpx.Request) -> bool:
        """Verify the signature of a request.

        Returns:
            True if the signature is valid, False otherwise.

        Raises:
            MissingHeaderError: If Versia-Signature or Versia-Signed-At is absent.
            MalformedSignatureError: If the signature is not base64.
            MalformedHeaderError: If Versia-Signed-At is not a number.
        """
        signature = request.headers.get(SIGNATURE_HEADER)
        signed_at = request.headers.get(SIGNED_AT_HEADER)

        missing = [
            name
            for name, value in ((SIGNATURE_HEADER, signature), (SIGNED_AT_HEADER, signed_at))
            if not value
        ]
        if missing:
            raise MissingHeaderError(missing)

        body = await request.aread()
        return self.validate_components(signature, signed_at, request.method, request.url, body)

    def validate_components(
        self,
        signature: str,
        timestamp: Union[str, Timestamp],
        method: str,
        url: URLTypes,
        body: Body = None,
    ) -> bool:
        """Verify a signature from already-extracted request parts.

        Args:
            signature: Base64 signature (Versia-Signature)
            timestamp: Signature time, as header text or a number
            method: HTTP method
            url: Full URL or bare path
            body: Raw request body

        Returns:
            True if the signature is valid, False otherwise.
        """
        signature_bytes = decode_signature(signature)

        if isinstance(timestamp, str):
            timestamp = parse_timestamp(timestamp)

        if not self._is_fresh(timestamp):
            return False

        context = create_signing_context(method, url, timestamp, body, self._provider)
        valid = self._provider.verify(
            self._public_key,
            signature_bytes,
            context.canonical_string().encode("utf-8"),
        )
        if not valid:
            logger.info("Signature verification failed for %s %s", method.upper(), context.path)
        return valid

    def _is_fresh(self, timestamp: Timestamp) -> bool:
        if self.max_age is None:
            return True
        if isinstance(timestamp, datetime):
            timestamp = timestamp.timestamp()

        age = time.time() - timestamp
        if abs(age) > self.max_age:
            logger.warning(
                "Rejecting signature outside the %ss window (age: %.0fs)", self.max_age, age
            )
            return False
        return True
