"""Client configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars.
A builder seeded from :class:`PeppolClientConfig` still accepts explicit
setter calls afterwards.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

from .models import SigningAlgorithm

DEFAULT_AS2_SUBJECT = "OpenPEPPOL AS2 message"
DEFAULT_SIGNING_ALGORITHM = SigningAlgorithm.SHA256
DEFAULT_AS2_MESSAGE_ID_FORMAT = (
    "OpenPEPPOL-$date.ddMMyyyyHHmmssZ$-$rand.1234$@$msg.sender.as2_id$_$msg.receiver.as2_id$"
)


class AS2Config(BaseSettings):
    """AS2 message defaults and HTTP transport settings."""

    model_config = {"env_prefix": "AS2_"}

    subject: str = Field(default=DEFAULT_AS2_SUBJECT, description="AS2 message subject")
    message_id_format: str = Field(
        default=DEFAULT_AS2_MESSAGE_ID_FORMAT,
        description="Template for outgoing AS2 Message-IDs",
    )
    signing_algorithm: SigningAlgorithm = Field(
        default=DEFAULT_SIGNING_ALGORITHM,
        description="Digest used for the S/MIME signature and the requested MDN MIC",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    user_agent: str = Field(default="peppol-as2-client", description="HTTP User-Agent header")


class SMPConfig(BaseSettings):
    """SMP directory lookup settings.

    Set ``base_url`` to always query one SMP, or ``sml_zone`` to derive the
    SMP host from the receiver participant ID via DNS.  With neither set, no
    lookup is performed.
    """

    model_config = {"env_prefix": "SMP_"}

    base_url: str | None = Field(default=None, description="Fixed SMP base URL")
    sml_zone: str | None = Field(
        default=None,
        description="SML DNS zone (e.g. edelivery.tech.ec.europa.eu)",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")

    @property
    def enabled(self) -> bool:
        return bool(self.base_url or self.sml_zone)


class SenderConfig(BaseSettings):
    """Identity and key material of the sending access point."""

    model_config = {"env_prefix": "AS2_SENDER_"}

    keystore_path: Path | None = Field(default=None, description="PKCS#12 key store file")
    keystore_password: SecretStr | None = Field(
        default=None,
        description="Key store password (may be empty, must be set)",
    )
    as2_id: str | None = Field(default=None, description="AS2-From ID, usually APP_...")
    email: str | None = Field(default=None, description="Sender email address")
    key_alias: str | None = Field(default=None, description="Key alias inside the key store")
    participant_id: str | None = Field(
        default=None,
        description="PEPPOL sender participant ID, URI-encoded (scheme::value)",
    )


class PeppolClientConfig(BaseSettings):
    """Root configuration.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {"env_prefix": "PEPPOL_"}

    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")

    as2: AS2Config = Field(default_factory=AS2Config)
    smp: SMPConfig = Field(default_factory=SMPConfig)
    sender: SenderConfig = Field(default_factory=SenderConfig)
