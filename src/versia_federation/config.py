"""Configuration for federation clients.

Settings are loaded from VERSIA_* environment variables with Pydantic Settings.
"""

from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .provider import CryptoProvider
from .signing import SignatureConstructor, SignatureValidator

DEFAULT_USER_AGENT = "versia-federation/0.1.0 (+https://versia.pub)"


class FederationConfig(BaseSettings):
    """Settings shared by signers, validators and requesters."""

    model_config = SettingsConfigDict(
        env_prefix="VERSIA_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="forbid",
    )

    base_url: Optional[str] = Field(None, description="Base URL of the remote server")
    signed_by: Optional[str] = Field(None, description="URI of the signing actor")
    private_key: Optional[SecretStr] = Field(
        None, description="Ed25519 PKCS8 private key, base64 - KEEP SECRET"
    )
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User-Agent for outgoing requests")
    max_signature_age: Optional[float] = Field(
        None,
        gt=0,
        allow_inf_nan=False,
        description="Replay window in seconds, None disables the check",
    )
    timeout: float = Field(10.0, gt=0, allow_inf_nan=False, description="Request timeout in seconds")

    def signature_constructor(
        self, provider: Optional[CryptoProvider] = None
    ) -> Optional[SignatureConstructor]:
        """Build a signer from the configured key, or None if unset."""
        if self.private_key is None or not self.private_key.get_secret_value():
            return None
        if not self.signed_by:
            raise ValueError("signed_by is required when private_key is set")
        return SignatureConstructor.from_base64_key(
            self.private_key.get_secret_value(), self.signed_by, provider
        )

    def signature_validator(
        self, public_key: str, provider: Optional[CryptoProvider] = None
    ) -> SignatureValidator:
        """Build a validator for a remote actor's base64 SPKI key."""
        return SignatureValidator.from_base64_key(
            public_key, provider, max_age=self.max_signature_age
        )


def load_config(**overrides) -> FederationConfig:
    """Load configuration from VERSIA_* environment variables.

    Keyword arguments take precedence over the environment.

    Raises:
        pydantic.ValidationError: On unknown options or invalid values.
    """
    return FederationConfig(**overrides)
