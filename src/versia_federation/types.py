"""Type definitions for the Versia federation SDK."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import httpx

SIGNATURE_HEADER = "Versia-Signature"
SIGNED_AT_HEADER = "Versia-Signed-At"
SIGNED_BY_HEADER = "Versia-Signed-By"


@dataclass(frozen=True)
class SigningContext:
    """Everything that goes into a canonical signed string.

    Two contexts with equal fields always produce byte-identical strings.
    """

    method: str
    path: str
    timestamp: str  # Already formatted, see signing.format_timestamp
    body_digest: str  # base64(sha256(body))

    def canonical_string(self) -> str:
        return f"{self.method.lower()} {self.path} {self.timestamp} {self.body_digest}"


@dataclass(frozen=True)
class SignedEnvelope:
    """Signature material attached to an outgoing request."""

    signature: str  # base64 of the raw Ed25519 signature
    timestamp: str
    signed_by: str  # Actor URI, informational only

    def to_headers(self) -> Dict[str, str]:
        return {
            SIGNATURE_HEADER: self.signature,
            SIGNED_AT_HEADER: self.timestamp,
            SIGNED_BY_HEADER: self.signed_by,
        }


@dataclass
class SignedHeaders:
    """Result of signing a request from its components."""

    headers: httpx.Headers
    signed_string: str
    envelope: Optional[SignedEnvelope] = None


@dataclass
class SignedRequest:
    """Result of signing a full request. `request` is a new object."""

    request: httpx.Request
    signed_string: str
    envelope: Optional[SignedEnvelope] = None


@dataclass
class Output:
    """Output of a federation request."""

    data: Any
    ok: bool
    raw: httpx.Response
    request: httpx.Request


class FederationError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnsupportedEnvironmentError(FederationError):
    """The crypto backend cannot do Ed25519."""

    def __str__(self) -> str:
        return f"UnsupportedEnvironmentError: {self.message}"


class KeyImportError(FederationError, ValueError):
    """Key bytes are not valid base64 or not the expected Ed25519 encoding."""

    def __str__(self) -> str:
        return f"KeyImportError: {self.message}"


class SignatureError(FederationError, TypeError):
    """A signature could not be evaluated because the input is malformed.

    This is never raised for a signature that simply does not verify.
    """

    def __str__(self) -> str:
        return f"SignatureError: {self.message}"


class MissingHeaderError(SignatureError):
    """Required signature headers are absent from a request."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Headers are missing in request: {', '.join(self.missing)}")


class MalformedHeaderError(SignatureError):
    """A signature header is present but unparseable."""


class MalformedSignatureError(SignatureError):
    """The signature value is not valid base64."""


class MissingTypeError(FederationError, ValueError):
    """An entity body has no `type` discriminator."""

    def __str__(self) -> str:
        return f"MissingTypeError: {self.message}"


class ResponseError(FederationError):
    """A federation request returned a non-2xx response."""

    def __init__(self, output: Output, message: str):
        self.output = output
        self.status_code = output.raw.status_code
        super().__init__(message)

    def __str__(self) -> str:
        return f"ResponseError({self.status_code}): {self.message}"
