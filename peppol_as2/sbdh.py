"""Standard Business Document Header (SBDH) envelope for PEPPOL.

The business document is wrapped, unchanged, in a
``StandardBusinessDocument`` whose header carries the sender, receiver,
document type and process identifiers used for routing.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from lxml import etree

from .identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from .resources import ReadableResource

SBDH_NS = "http://www.unece.org/cefact/namespaces/StandardBusinessDocumentHeader"
HEADER_VERSION = "1.0"
SCOPE_DOCUMENT_ID = "DOCUMENTID"
SCOPE_PROCESS_ID = "PROCESSID"
DEFAULT_TYPE_VERSION = "2.1"

_NSMAP = {"sh": SBDH_NS}


def _q(name: str) -> str:
    return f"{{{SBDH_NS}}}{name}"


def xml_parser() -> etree.XMLParser:
    """Parser for untrusted input: no entity expansion, no network access."""
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def read_xml_document(resource: ReadableResource) -> etree._Element:
    """Parse *resource* and return its root element. Raises ``etree.XMLSyntaxError``."""
    with resource.open() as stream:
        return etree.parse(stream, xml_parser()).getroot()


@dataclass
class PeppolSBDHDocument:
    """Header data plus the business document it wraps."""

    sender: ParticipantIdentifier
    receiver: ParticipantIdentifier
    document_type: DocumentTypeIdentifier
    process: ProcessIdentifier
    business_message: etree._Element
    instance_identifier: str = field(default_factory=lambda: str(uuid.uuid4()))
    creation_date_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    standard: str | None = None
    type_version: str | None = None
    type: str | None = None

    def __post_init__(self) -> None:
        qname = etree.QName(self.business_message)
        if self.standard is None:
            self.standard = qname.namespace or self.document_type.root_namespace or ""
        if self.type is None:
            self.type = qname.localname
        if self.type_version is None:
            self.type_version = self.document_type.version or DEFAULT_TYPE_VERSION


def create_standard_business_document(document: PeppolSBDHDocument) -> etree._Element:
    """Build the ``StandardBusinessDocument`` element tree.

    The business message element is moved into the new tree.
    """
    root = etree.Element(_q("StandardBusinessDocument"), nsmap=_NSMAP)
    header = etree.SubElement(root, _q("StandardBusinessDocumentHeader"))
    etree.SubElement(header, _q("HeaderVersion")).text = HEADER_VERSION

    for tag, participant in (("Sender", document.sender), ("Receiver", document.receiver)):
        party = etree.SubElement(header, _q(tag))
        identifier = etree.SubElement(party, _q("Identifier"), {"Authority": participant.scheme})
        identifier.text = participant.value

    identification = etree.SubElement(header, _q("DocumentIdentification"))
    etree.SubElement(identification, _q("Standard")).text = document.standard
    etree.SubElement(identification, _q("TypeVersion")).text = document.type_version
    etree.SubElement(identification, _q("InstanceIdentifier")).text = document.instance_identifier
    etree.SubElement(identification, _q("Type")).text = document.type
    etree.SubElement(identification, _q("CreationDateAndTime")).text = document.creation_date_time.isoformat(
        timespec="seconds"
    )

    scope_list = etree.SubElement(header, _q("BusinessScope"))
    for scope_type, identifier in (
        (SCOPE_DOCUMENT_ID, document.document_type),
        (SCOPE_PROCESS_ID, document.process),
    ):
        scope = etree.SubElement(scope_list, _q("Scope"))
        etree.SubElement(scope, _q("Type")).text = scope_type
        etree.SubElement(scope, _q("InstanceIdentifier")).text = identifier.value
        etree.SubElement(scope, _q("Identifier")).text = identifier.scheme

    root.append(document.business_message)
    return root


def serialize(element: etree._Element) -> bytes:
    return etree.tostring(element, encoding="UTF-8", xml_declaration=True)


def parse_standard_business_document(data: bytes) -> PeppolSBDHDocument:
    """Read serialized SBDH bytes back into a :class:`PeppolSBDHDocument`.

    Raises ``ValueError`` if the bytes are not a PEPPOL SBD.
    """
    try:
        root = etree.fromstring(data, xml_parser())
    except etree.XMLSyntaxError as exc:
        raise ValueError(f"Not well-formed XML: {exc}") from exc
    if root.tag != _q("StandardBusinessDocument"):
        raise ValueError(f"Unexpected root element {root.tag}")

    header = root.find(_q("StandardBusinessDocumentHeader"))
    if header is None:
        raise ValueError("StandardBusinessDocumentHeader is missing")
    payload = [child for child in root if isinstance(child.tag, str) and child.tag != header.tag]
    if len(payload) != 1:
        raise ValueError(f"Expected exactly one business message, found {len(payload)}")

    def party(tag: str) -> ParticipantIdentifier:
        identifier = header.find(f"{_q(tag)}/{_q('Identifier')}")
        if identifier is None:
            raise ValueError(f"{tag} identifier is missing")
        return ParticipantIdentifier(scheme=identifier.get("Authority", ""), value=identifier.text or "")

    scopes: dict[str, tuple[str, str]] = {}
    for scope in header.iterfind(f"{_q('BusinessScope')}/{_q('Scope')}"):
        scopes[scope.findtext(_q("Type"), "")] = (
            scope.findtext(_q("Identifier"), ""),
            scope.findtext(_q("InstanceIdentifier"), ""),
        )
    if SCOPE_DOCUMENT_ID not in scopes or SCOPE_PROCESS_ID not in scopes:
        raise ValueError("DOCUMENTID and PROCESSID scopes are required")

    identification = header.find(_q("DocumentIdentification"))
    if identification is None:
        raise ValueError("DocumentIdentification is missing")
    created = identification.findtext(_q("CreationDateAndTime"))

    doc_scheme, doc_value = scopes[SCOPE_DOCUMENT_ID]
    proc_scheme, proc_value = scopes[SCOPE_PROCESS_ID]
    return PeppolSBDHDocument(
        sender=party("Sender"),
        receiver=party("Receiver"),
        document_type=DocumentTypeIdentifier(scheme=doc_scheme, value=doc_value),
        process=ProcessIdentifier(scheme=proc_scheme, value=proc_value),
        business_message=payload[0],
        instance_identifier=identification.findtext(_q("InstanceIdentifier"), ""),
        creation_date_time=datetime.fromisoformat(created) if created else datetime.now(UTC),
        standard=identification.findtext(_q("Standard")),
        type_version=identification.findtext(_q("TypeVersion")),
        type=identification.findtext(_q("Type")),
    )
