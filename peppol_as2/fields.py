"""The mutable field record behind :class:`~peppol_as2.builder.AS2ClientBuilder`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509

from .config import DEFAULT_AS2_MESSAGE_ID_FORMAT, DEFAULT_AS2_SUBJECT, DEFAULT_SIGNING_ALGORITHM
from .identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from .models import SigningAlgorithm
from .resources import ReadableResource

if TYPE_CHECKING:
    from .smp import EndpointProvider


@dataclass
class BuilderFields:
    """Configuration of one send.

    ``None`` means "not set".  The receiver fields (``receiver_as2_id``,
    ``receiver_key_alias``, ``receiver_url``, ``receiver_certificate``) may
    be left ``None`` for the SMP lookup and the defaulting step to fill;
    neither step overwrites a value that is already set.
    """

    key_store_path: Path | None = None
    key_store_password: str | None = None

    subject: str | None = DEFAULT_AS2_SUBJECT
    message_id_format: str | None = DEFAULT_AS2_MESSAGE_ID_FORMAT
    signing_algorithm: SigningAlgorithm | None = DEFAULT_SIGNING_ALGORITHM

    sender_as2_id: str | None = None
    sender_email: str | None = None
    sender_key_alias: str | None = None

    receiver_as2_id: str | None = None
    receiver_key_alias: str | None = None
    receiver_url: str | None = None
    receiver_certificate: x509.Certificate | None = None

    sender_participant_id: ParticipantIdentifier | None = None
    receiver_participant_id: ParticipantIdentifier | None = None
    document_type_id: DocumentTypeIdentifier | None = None
    process_id: ProcessIdentifier | None = None

    business_document: ReadableResource | None = None

    smp_client: EndpointProvider | None = None
