"""Data models shared by the builder, the SMP client and the AS2 client."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import ClassVar

from cryptography import x509
from pydantic import BaseModel, ConfigDict, Field, SecretStr


class SigningAlgorithm(str, Enum):
    """MIC / signature digest algorithms, named as in AS2 ``micalg`` parameters."""

    SHA256 = "sha-256"
    SHA384 = "sha-384"
    SHA512 = "sha-512"


class TransportProfile(str, Enum):
    """SMP transport profile identifiers."""

    AS2 = "busdox-transport-as2-ver1p0"
    AS2_V2 = "busdox-transport-as2-ver2p0"


class EndpointDescriptor(BaseModel):
    """One endpoint entry from an SMP service metadata response."""

    model_config = ConfigDict(frozen=True)

    transport_profile: str = Field(description="Transport profile the endpoint supports")
    address: str = Field(description="Endpoint URL")
    certificate: str = Field(description="Endpoint certificate as found in the SMP response")
    service_description: str | None = Field(default=None)
    technical_contact_url: str | None = Field(default=None)
    service_activation_date: datetime | None = Field(default=None)
    service_expiration_date: datetime | None = Field(default=None)


class DispositionOptions(BaseModel):
    """Value of the ``Disposition-Notification-Options`` header."""

    model_config = ConfigDict(frozen=True)

    IMPORTANCE_REQUIRED: ClassVar[str] = "required"
    IMPORTANCE_OPTIONAL: ClassVar[str] = "optional"
    PROTOCOL_PKCS7_SIGNATURE: ClassVar[str] = "pkcs7-signature"

    protocol: str | None = Field(default=None, description="signed-receipt-protocol value")
    protocol_importance: str | None = Field(default=None)
    mic_algorithm: SigningAlgorithm | None = Field(default=None, description="signed-receipt-micalg value")
    mic_algorithm_importance: str | None = Field(default=None)

    def as_header_value(self) -> str:
        parts: list[str] = []
        if self.protocol:
            importance = self.protocol_importance or self.IMPORTANCE_OPTIONAL
            parts.append(f"signed-receipt-protocol={importance}, {self.protocol}")
        if self.mic_algorithm:
            importance = self.mic_algorithm_importance or self.IMPORTANCE_OPTIONAL
            parts.append(f"signed-receipt-micalg={importance}, {self.mic_algorithm.value}")
        return "; ".join(parts)


class AS2ClientSettings(BaseModel):
    """Everything the AS2 client needs to address, sign and send one message."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key_store_path: Path
    key_store_password: SecretStr
    sender_as2_id: str
    sender_email: str
    sender_key_alias: str
    receiver_as2_id: str
    receiver_key_alias: str
    destination_url: str
    receiver_certificate: x509.Certificate | None = None
    partnership_name: str
    mdn_options: DispositionOptions
    encrypt_algorithm: None = Field(default=None, description="PEPPOL AS2 forbids payload encryption")
    signing_algorithm: SigningAlgorithm
    message_id_format: str
    timeout_seconds: float = 30.0
    user_agent: str | None = None


class AS2ClientRequest(BaseModel):
    subject: str
    data: bytes = b""
    content_type: str = "application/xml"


class MDN(BaseModel):
    """Parsed message disposition notification (the AS2 receipt)."""

    disposition: str | None = None
    received_content_mic: str | None = None
    original_message_id: str | None = None
    final_recipient: str | None = None
    text: str | None = None
    raw: bytes = b""

    @property
    def is_processed(self) -> bool:
        """``automatic-action/MDN-sent-automatically; processed`` without error or warning modifiers."""
        if not self.disposition:
            return False
        _, _, state = self.disposition.partition(";")
        return state.strip().lower() == "processed"


class AS2ClientResponse(BaseModel):
    """Outcome of one AS2 send.

    HTTP-level failures are stored in ``exception`` rather than raised so the
    caller always gets the original message ID back.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    original_message_id: str
    original_mic: str | None = None
    http_status: int | None = None
    mdn: MDN | None = None
    exception: Exception | None = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def has_exception(self) -> bool:
        return self.exception is not None

    @property
    def has_mdn(self) -> bool:
        return self.mdn is not None

    @property
    def is_success(self) -> bool:
        return self.exception is None and self.mdn is not None and self.mdn.is_processed

    @property
    def mic_matches(self) -> bool | None:
        """Whether the MDN echoes the MIC computed on send. ``None`` if either is missing."""
        if self.mdn is None or not self.mdn.received_content_mic or not self.original_mic:
            return None
        return _normalize_mic(self.mdn.received_content_mic) == _normalize_mic(self.original_mic)


def _normalize_mic(mic: str) -> tuple[str, str]:
    digest, _, algorithm = mic.partition(",")
    return digest.strip(), algorithm.strip().lower()
