"""versia_federation - Federation SDK for the Versia protocol.

Signs outgoing requests and verifies incoming ones with Ed25519, and routes
validated federation entities to handlers by type.
"""

from .client import FederationRequester
from .config import FederationConfig, load_config
from .dispatch import (
    EntityKind,
    EntityValidator,
    HandlerTable,
    RequestParser,
    parse_body,
)
from .keys import (
    export_private_key,
    export_public_key,
    generate_keypair,
    load_private_key,
    load_public_key,
    load_raw_private_key,
    load_raw_public_key,
)
from .provider import CryptoProvider, default_provider
from .signing import (
    SignatureConstructor,
    SignatureValidator,
    build_signed_string,
    digest_body,
    encode_path,
)
from .types import (
    SIGNATURE_HEADER,
    SIGNED_AT_HEADER,
    SIGNED_BY_HEADER,
    FederationError,
    KeyImportError,
    MalformedHeaderError,
    MalformedSignatureError,
    MissingHeaderError,
    MissingTypeError,
    Output,
    ResponseError,
    SignatureError,
    SignedEnvelope,
    SignedHeaders,
    SignedRequest,
    SigningContext,
    UnsupportedEnvironmentError,
)

__version__ = "0.1.0"
__all__ = [
    # Signing
    "SignatureConstructor",
    "SignatureValidator",
    "build_signed_string",
    "digest_body",
    "encode_path",
    "SIGNATURE_HEADER",
    "SIGNED_AT_HEADER",
    "SIGNED_BY_HEADER",
    # Keys
    "CryptoProvider",
    "default_provider",
    "generate_keypair",
    "load_private_key",
    "load_public_key",
    "load_raw_private_key",
    "load_raw_public_key",
    "export_private_key",
    "export_public_key",
    # Dispatch
    "EntityKind",
    "EntityValidator",
    "HandlerTable",
    "RequestParser",
    "parse_body",
    # Client
    "FederationRequester",
    "FederationConfig",
    "load_config",
    # Types
    "SigningContext",
    "SignedEnvelope",
    "SignedHeaders",
    "SignedRequest",
    "Output",
    "FederationError",
    "UnsupportedEnvironmentError",
    "KeyImportError",
    "SignatureError",
    "MissingHeaderError",
    "MalformedHeaderError",
    "MalformedSignatureError",
    "MissingTypeError",
    "ResponseError",
]
