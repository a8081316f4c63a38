"""Fluent builder that resolves, verifies, wraps and sends one PEPPOL document.

Typical use::

    response = (
        AS2ClientBuilder()
        .set_pkcs12_key_store(Path("ap.p12"), "secret")
        .set_sender_as2_id("APP_1000000001")
        .set_sender_as2_email("ap@example.com")
        .set_sender_as2_key_alias("APP_1000000001")
        .set_peppol_sender_id(ParticipantIdentifier.with_default_scheme("9915:sender"))
        .set_peppol_receiver_id(ParticipantIdentifier.with_default_scheme("9915:receiver"))
        .set_peppol_document_type_id(doc_type)
        .set_peppol_process_id(process)
        .set_business_document(Path("invoice.xml"))
        .set_smp_client(SMPClient("https://smp.example.com"))
        .send_synchronous()
    )

Every setter only assigns; nothing is checked until
:meth:`AS2ClientBuilder.send_synchronous` runs lookup, defaulting and
verification.  A builder is not thread safe.
"""

from __future__ import annotations

from pathlib import Path

import structlog
from cryptography import x509
from lxml import etree
from pydantic import SecretStr

from .as2 import AS2Client, AS2Sender
from .config import PeppolClientConfig, SMPConfig
from .defaults import apply_default_derived_values
from .exceptions import AS2ClientBuilderError
from .fields import BuilderFields
from .identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from .issues import IssueSink, MessageHandler
from .models import (
    AS2ClientRequest,
    AS2ClientResponse,
    AS2ClientSettings,
    DispositionOptions,
    SigningAlgorithm,
    TransportProfile,
)
from .resources import ReadableResource, as_resource
from .resolver import perform_smp_lookup
from .sbdh import PeppolSBDHDocument, create_standard_business_document, read_xml_document, serialize
from .smp import EndpointProvider, SMPClient
from .validation import verify_fields

logger = structlog.get_logger()


class AS2ClientBuilder:
    """Collects everything needed to send a business document to a PEPPOL participant."""

    TRANSPORT_PROFILE: TransportProfile = TransportProfile.AS2

    def __init__(self) -> None:
        self.fields = BuilderFields()
        self._message_handler: MessageHandler | None = None
        self._as2_client: AS2Sender = AS2Client()
        self._timeout_seconds = 30.0
        self._user_agent: str | None = None
        self._sml_config: SMPConfig | None = None

    @classmethod
    def from_config(cls, config: PeppolClientConfig) -> AS2ClientBuilder:
        """Seed a builder from environment-driven configuration."""
        builder = cls()
        builder.set_as2_subject(config.as2.subject)
        builder.set_as2_message_id_format(config.as2.message_id_format)
        builder.set_as2_signing_algorithm(config.as2.signing_algorithm)
        builder._timeout_seconds = config.as2.timeout_seconds
        builder._user_agent = config.as2.user_agent

        sender = config.sender
        password = sender.keystore_password.get_secret_value() if sender.keystore_password is not None else None
        builder.set_pkcs12_key_store(sender.keystore_path, password)
        builder.set_sender_as2_id(sender.as2_id)
        builder.set_sender_as2_email(sender.email)
        builder.set_sender_as2_key_alias(sender.key_alias)
        if sender.participant_id:
            builder.set_peppol_sender_id(ParticipantIdentifier.from_uri(sender.participant_id))

        # A DNS-derived SMP needs the receiver, which is only known later.
        if config.smp.base_url:
            builder.set_smp_client(SMPClient.from_config(config.smp))
        elif config.smp.sml_zone:
            builder._sml_config = config.smp
        return builder

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_message_handler(self, handler: MessageHandler | None) -> AS2ClientBuilder:
        """Policy for warnings/errors; ``None`` restores the fail-fast default."""
        self._message_handler = handler
        return self

    def set_as2_client(self, client: AS2Sender) -> AS2ClientBuilder:
        self._as2_client = client
        return self

    def set_pkcs12_key_store(self, key_store: str | Path | None, password: str | None) -> AS2ClientBuilder:
        """PKCS#12 file holding the sender key. An empty password is allowed, ``None`` is not."""
        self.fields.key_store_path = Path(key_store) if key_store is not None else None
        self.fields.key_store_password = password
        return self

    def set_as2_subject(self, subject: str | None) -> AS2ClientBuilder:
        self.fields.subject = subject
        return self

    def set_sender_as2_id(self, as2_id: str | None) -> AS2ClientBuilder:
        """Your AS2 ID (``AS2-From``): the CN of your AP certificate, usually ``APP_...``."""
        self.fields.sender_as2_id = as2_id
        return self

    def set_sender_as2_email(self, address: str | None) -> AS2ClientBuilder:
        self.fields.sender_email = address
        return self

    def set_sender_as2_key_alias(self, alias: str | None) -> AS2ClientBuilder:
        self.fields.sender_key_alias = alias
        return self

    def set_receiver_as2_id(self, as2_id: str | None) -> AS2ClientBuilder:
        """Receiver AS2 ID (``AS2-To``). Resolved from the SMP certificate when unset."""
        self.fields.receiver_as2_id = as2_id
        return self

    def set_receiver_as2_key_alias(self, alias: str | None) -> AS2ClientBuilder:
        """Defaults to the receiver AS2 ID when unset."""
        self.fields.receiver_key_alias = alias
        return self

    def set_receiver_as2_url(self, url: str | None) -> AS2ClientBuilder:
        self.fields.receiver_url = url
        return self

    def set_receiver_certificate(self, certificate: x509.Certificate | None) -> AS2ClientBuilder:
        self.fields.receiver_certificate = certificate
        return self

    def set_as2_signing_algorithm(self, algorithm: SigningAlgorithm | None) -> AS2ClientBuilder:
        """There is no encryption counterpart: PEPPOL AS2 messages are never encrypted."""
        self.fields.signing_algorithm = algorithm
        return self

    def set_as2_message_id_format(self, message_id_format: str | None) -> AS2ClientBuilder:
        self.fields.message_id_format = message_id_format
        return self

    def set_business_document(self, document: ReadableResource | str | Path | bytes | None) -> AS2ClientBuilder:
        """The bare XML business document (not an SBD; the envelope is added on send)."""
        self.fields.business_document = as_resource(document)
        return self

    def set_peppol_sender_id(self, identifier: ParticipantIdentifier | None) -> AS2ClientBuilder:
        self.fields.sender_participant_id = identifier
        return self

    def set_peppol_receiver_id(self, identifier: ParticipantIdentifier | None) -> AS2ClientBuilder:
        self.fields.receiver_participant_id = identifier
        return self

    def set_peppol_document_type_id(self, identifier: DocumentTypeIdentifier | None) -> AS2ClientBuilder:
        self.fields.document_type_id = identifier
        return self

    def set_peppol_process_id(self, identifier: ProcessIdentifier | None) -> AS2ClientBuilder:
        self.fields.process_id = identifier
        return self

    def set_smp_client(self, smp_client: EndpointProvider | None) -> AS2ClientBuilder:
        """Enables the lookup of receiver URL, certificate and AS2 ID. ``None`` disables it."""
        self.fields.smp_client = smp_client
        return self

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def new_issue_sink(self) -> IssueSink:
        return IssueSink(self._message_handler)

    def perform_smp_client_lookup(self, sink: IssueSink) -> None:
        # An SML-derived client depends on the current receiver, so it is built per send.
        derived = self.fields.smp_client is None and self._sml_config is not None
        if derived:
            self.fields.smp_client = SMPClient.from_config(self._sml_config, self.fields.receiver_participant_id)
            if self.fields.smp_client is None:
                sink.warn("Cannot perform SMP lookup because the PEPPOL receiver ID is missing")
                return
        try:
            perform_smp_lookup(self.fields, sink, self.TRANSPORT_PROFILE)
        finally:
            if derived:
                self.fields.smp_client = None

    def set_default_derived_values(self) -> None:
        """Fill fields derivable by convention. Overrides must call ``super()`` and only assign ``None`` fields."""
        apply_default_derived_values(self.fields)

    def verify_content(self, sink: IssueSink | None = None) -> IssueSink:
        """Check every field and return the sink holding the issues found."""
        sink = sink if sink is not None else self.new_issue_sink()
        verify_fields(self.fields, sink)
        return sink

    def build_envelope(self) -> bytes:
        """Read the business document, wrap it in an SBDH and serialize it."""
        fields = self.fields
        try:
            business_message = read_xml_document(fields.business_document)
        except (etree.XMLSyntaxError, OSError) as exc:
            raise AS2ClientBuilderError(
                f"Failed to read business document '{fields.business_document.path}' as XML"
            ) from exc

        document = PeppolSBDHDocument(
            sender=fields.sender_participant_id,
            receiver=fields.receiver_participant_id,
            document_type=fields.document_type_id,
            process=fields.process_id,
            business_message=business_message,
        )
        try:
            return serialize(create_standard_business_document(document))
        except (TypeError, ValueError) as exc:
            raise AS2ClientBuilderError("Failed to serialize SBD!") from exc

    def build_client_settings(self) -> AS2ClientSettings:
        fields = self.fields
        return AS2ClientSettings(
            key_store_path=fields.key_store_path,
            key_store_password=SecretStr(fields.key_store_password),
            sender_as2_id=fields.sender_as2_id,
            sender_email=fields.sender_email,
            sender_key_alias=fields.sender_key_alias,
            receiver_as2_id=fields.receiver_as2_id,
            receiver_key_alias=fields.receiver_key_alias,
            destination_url=fields.receiver_url,
            receiver_certificate=fields.receiver_certificate,
            partnership_name=f"{fields.sender_as2_id}-{fields.receiver_as2_id}",
            mdn_options=DispositionOptions(
                mic_algorithm=fields.signing_algorithm,
                mic_algorithm_importance=DispositionOptions.IMPORTANCE_REQUIRED,
                protocol=DispositionOptions.PROTOCOL_PKCS7_SIGNATURE,
                protocol_importance=DispositionOptions.IMPORTANCE_REQUIRED,
            ),
            encrypt_algorithm=None,
            signing_algorithm=fields.signing_algorithm,
            message_id_format=fields.message_id_format,
            timeout_seconds=self._timeout_seconds,
            user_agent=self._user_agent,
        )

    def send_synchronous(self) -> AS2ClientResponse:
        """Look up, default, verify, wrap and send; return the AS2 response unchanged.

        Raises :class:`AS2ClientBuilderError` if the message handler aborts on
        an error, if verification recorded any error, or if the business
        document cannot be read or wrapped.  Transport failures come from the
        AS2 client as is.
        """
        sink = self.new_issue_sink()
        self.perform_smp_client_lookup(sink)
        self.set_default_derived_values()
        self.verify_content(sink)
        sink.raise_for_errors()

        data = self.build_envelope()
        settings = self.build_client_settings()
        request = AS2ClientRequest(subject=self.fields.subject, data=data)

        logger.info(
            "as2_send_prepared",
            partnership=settings.partnership_name,
            receiver=self.fields.receiver_participant_id.uri_encoded,
            warnings=len(sink.warnings),
            size=len(data),
        )
        return self._as2_client.send_synchronous(settings, request)
