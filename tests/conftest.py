"""Shared test fixtures for the peppol_as2 test suite."""

from __future__ import annotations

import base64
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from peppol_as2.as2 import AS2Client
from peppol_as2.builder import AS2ClientBuilder
from peppol_as2.identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from peppol_as2.issues import CollectingMessageHandler, IssueSink
from peppol_as2.models import AS2ClientResponse, EndpointDescriptor

INVOICE_DOC_TYPE = (
    "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2::Invoice"
    "##urn:www.cenbii.eu:transaction:biitrns010:ver2.0"
    ":extended:urn:www.peppol.eu:bis:peppol4a:ver2.0::2.1"
)
INVOICE_PROCESS = "urn:www.cenbii.eu:profile:bii04:ver2.0"
CBC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

INVOICE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
         xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">
  <cbc:ID>INV-0001</cbc:ID>
  <cbc:IssueDate>2026-10-19</cbc:IssueDate>
</Invoice>
"""


def make_certificate(common_name: str | None, key: rsa.RSAPrivateKey | None = None):
    """Self-signed certificate (and its key) with the given subject CN."""
    key = key or rsa.generate_private_key(public_exponent=65537, key_size=2048)
    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Access Point")]
    if common_name is not None:
        attributes.insert(0, x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    name = x509.Name(attributes)
    now = datetime.now(UTC)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return certificate, key


def certificate_base64(certificate: x509.Certificate) -> str:
    """Certificate as an SMP would publish it: base64 DER."""
    return base64.b64encode(certificate.public_bytes(serialization.Encoding.DER)).decode("ascii")


@pytest.fixture(scope="session")
def sender_key_material():
    return make_certificate("APP_0001")


@pytest.fixture(scope="session")
def receiver_key_material():
    return make_certificate("APP_0002")


@pytest.fixture(scope="session")
def receiver_certificate(receiver_key_material) -> x509.Certificate:
    return receiver_key_material[0]


@pytest.fixture
def keystore_file(tmp_path: Path, sender_key_material) -> Path:
    certificate, key = sender_key_material
    data = pkcs12.serialize_key_and_certificates(
        b"APP_0001",
        key,
        certificate,
        None,
        serialization.BestAvailableEncryption(b"secret"),
    )
    path = tmp_path / "sender.p12"
    path.write_bytes(data)
    return path


@pytest.fixture
def invoice_file(tmp_path: Path) -> Path:
    path = tmp_path / "invoice.xml"
    path.write_bytes(INVOICE_XML)
    return path


@pytest.fixture
def sender_id() -> ParticipantIdentifier:
    return ParticipantIdentifier.with_default_scheme("9915:sender")


@pytest.fixture
def receiver_id() -> ParticipantIdentifier:
    return ParticipantIdentifier.with_default_scheme("9915:receiver")


@pytest.fixture
def document_type_id() -> DocumentTypeIdentifier:
    return DocumentTypeIdentifier.with_default_scheme(INVOICE_DOC_TYPE)


@pytest.fixture
def process_id() -> ProcessIdentifier:
    return ProcessIdentifier.with_default_scheme(INVOICE_PROCESS)


@pytest.fixture
def mock_as2_client() -> MagicMock:
    client = MagicMock(spec=AS2Client)
    client.send_synchronous.return_value = AS2ClientResponse(original_message_id="<test@example>")
    return client


@pytest.fixture
def valid_builder(
    keystore_file: Path,
    invoice_file: Path,
    receiver_certificate: x509.Certificate,
    sender_id: ParticipantIdentifier,
    receiver_id: ParticipantIdentifier,
    document_type_id: DocumentTypeIdentifier,
    process_id: ProcessIdentifier,
    mock_as2_client: MagicMock,
) -> AS2ClientBuilder:
    """A builder with every required field set and no SMP client."""
    return (
        AS2ClientBuilder()
        .set_pkcs12_key_store(keystore_file, "secret")
        .set_sender_as2_id("APP_0001")
        .set_sender_as2_email("ap@sender.example.com")
        .set_sender_as2_key_alias("APP_0001")
        .set_receiver_as2_id("APP_0002")
        .set_receiver_as2_url("https://ap.receiver.example.com/as2")
        .set_receiver_certificate(receiver_certificate)
        .set_peppol_sender_id(sender_id)
        .set_peppol_receiver_id(receiver_id)
        .set_peppol_document_type_id(document_type_id)
        .set_peppol_process_id(process_id)
        .set_business_document(invoice_file)
        .set_as2_client(mock_as2_client)
    )


@pytest.fixture
def collecting_sink() -> IssueSink:
    """A sink that never raises, so every issue of a scan is visible."""
    return IssueSink(CollectingMessageHandler())


@pytest.fixture
def endpoint(receiver_certificate: x509.Certificate) -> EndpointDescriptor:
    return EndpointDescriptor(
        transport_profile="busdox-transport-as2-ver1p0",
        address="https://smp-resolved.example.com/as2",
        certificate=certificate_base64(receiver_certificate),
    )


class FakeSMPClient:
    """Records lookups and answers with a fixed endpoint (or None / an exception)."""

    def __init__(self, result: EndpointDescriptor | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    def get_endpoint(self, participant_id, document_type_id, process_id, transport_profile):
        self.calls.append((participant_id, document_type_id, process_id, transport_profile))
        if self.error is not None:
            raise self.error
        return self.result
