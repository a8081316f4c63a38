"""Read-only SMP (Service Metadata Publisher) client over HTTP.

The SMP maps a receiver participant + document type to the service
metadata holding, per process and transport profile, the endpoint URL and
certificate of the receiving access point.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx
import structlog
from lxml import etree

from .config import SMPConfig
from .exceptions import SMPClientError, SMPClientNotFoundError
from .identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from .models import EndpointDescriptor, TransportProfile
from .sbdh import xml_parser

logger = structlog.get_logger()

SMP_NS = "http://busdox.org/serviceMetadata/publishing/1.0/"
IDS_NS = "http://busdox.org/transport/identifiers/1.0/"
WSA_NS = "http://www.w3.org/2005/08/addressing"
_NS = {"smp": SMP_NS, "ids": IDS_NS, "wsa": WSA_NS}

MAX_REDIRECTS = 1


@runtime_checkable
class EndpointProvider(Protocol):
    """Anything that can answer an endpoint query (the SMP client, a cache, a test double)."""

    def get_endpoint(
        self,
        participant_id: ParticipantIdentifier,
        document_type_id: DocumentTypeIdentifier,
        process_id: ProcessIdentifier,
        transport_profile: TransportProfile | str,
    ) -> EndpointDescriptor | None: ...


def sml_host_name(participant_id: ParticipantIdentifier, sml_zone: str) -> str:
    """DNS name of the SMP for *participant_id*: ``B-<md5(value)>.<scheme>.<zone>``."""
    digest = hashlib.md5(participant_id.value.lower().encode("utf-8")).hexdigest()
    return f"B-{digest}.{participant_id.scheme}.{sml_zone.strip('.')}"


class SMPClient:
    """Queries one SMP for service metadata.

    Construct with a fixed ``base_url`` or use :meth:`for_participant` to
    derive it from the receiver ID via the SML DNS zone.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def for_participant(
        cls,
        participant_id: ParticipantIdentifier,
        sml_zone: str,
        **kwargs,
    ) -> SMPClient:
        return cls(f"http://{sml_host_name(participant_id, sml_zone)}", **kwargs)

    @classmethod
    def from_config(cls, config: SMPConfig, receiver_id: ParticipantIdentifier | None = None) -> SMPClient | None:
        """Build a client from *config*, or ``None`` if lookups are disabled.

        DNS derivation needs the receiver ID; without it only ``base_url`` works.
        """
        if not config.enabled:
            return None
        if config.base_url:
            return cls(config.base_url, timeout_seconds=config.timeout_seconds)
        if config.sml_zone and receiver_id is not None:
            return cls.for_participant(receiver_id, config.sml_zone, timeout_seconds=config.timeout_seconds)
        return None

    @property
    def base_url(self) -> str:
        return self._base_url

    def service_metadata_url(
        self,
        participant_id: ParticipantIdentifier,
        document_type_id: DocumentTypeIdentifier,
    ) -> str:
        return (
            f"{self._base_url}/{quote(participant_id.uri_encoded, safe='')}"
            f"/services/{quote(document_type_id.uri_encoded, safe='')}"
        )

    def get_service_metadata(
        self,
        participant_id: ParticipantIdentifier,
        document_type_id: DocumentTypeIdentifier,
    ) -> etree._Element:
        """Fetch the ``ServiceMetadata`` element, following at most one redirect.

        Raises :class:`SMPClientNotFoundError` on HTTP 404 and
        :class:`SMPClientError` on any other failure.
        """
        url = self.service_metadata_url(participant_id, document_type_id)
        with httpx.Client(timeout=httpx.Timeout(self._timeout), transport=self._transport) as client:
            for _ in range(MAX_REDIRECTS + 1):
                root = self._fetch(client, url)
                service_metadata = root
                if etree.QName(root).localname != "ServiceMetadata":
                    service_metadata = root.find("smp:ServiceMetadata", _NS)
                if service_metadata is None:
                    raise SMPClientError(f"No ServiceMetadata element in SMP response from {url}")
                redirect = service_metadata.find("smp:Redirect", _NS)
                if redirect is None:
                    return service_metadata
                url = redirect.get("href") or ""
                if not url:
                    raise SMPClientError("SMP redirect without href")
                logger.debug("smp_redirect", target=url)
        raise SMPClientError(f"Too many SMP redirects for {participant_id.uri_encoded}")

    def get_endpoint(
        self,
        participant_id: ParticipantIdentifier,
        document_type_id: DocumentTypeIdentifier,
        process_id: ProcessIdentifier,
        transport_profile: TransportProfile | str,
    ) -> EndpointDescriptor | None:
        """Return the endpoint for the process + transport profile, or ``None`` if absent."""
        profile = transport_profile.value if isinstance(transport_profile, TransportProfile) else transport_profile
        service_metadata = self.get_service_metadata(participant_id, document_type_id)

        for process in service_metadata.iterfind(".//smp:ProcessList/smp:Process", _NS):
            identifier = process.find("ids:ProcessIdentifier", _NS)
            if identifier is None or not _same_process(identifier, process_id):
                continue
            for endpoint in process.iterfind("smp:ServiceEndpointList/smp:Endpoint", _NS):
                if endpoint.get("transportProfile") == profile:
                    return _parse_endpoint(endpoint, profile)
        return None

    def _fetch(self, client: httpx.Client, url: str) -> etree._Element:
        try:
            response = client.get(url)
        except httpx.HTTPError as exc:
            raise SMPClientError(f"Failed to query SMP at {url}: {exc}") from exc
        if response.status_code == 404:
            raise SMPClientNotFoundError(f"SMP has no entry at {url}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SMPClientError(f"SMP returned HTTP {response.status_code} for {url}") from exc
        try:
            return etree.fromstring(response.content, xml_parser())
        except etree.XMLSyntaxError as exc:
            raise SMPClientError(f"SMP response from {url} is not valid XML: {exc}") from exc


def _same_process(element: etree._Element, process_id: ProcessIdentifier) -> bool:
    return (element.text or "").strip() == process_id.value and element.get("scheme", "") == process_id.scheme


def _text(element: etree._Element, path: str) -> str | None:
    found = element.find(path, _NS)
    if found is None or found.text is None:
        return None
    return found.text.strip() or None


def _datetime(element: etree._Element, path: str) -> datetime | None:
    value = _text(element, path)
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_endpoint(endpoint: etree._Element, profile: str) -> EndpointDescriptor:
    address = _text(endpoint, "wsa:EndpointReference/wsa:Address")
    certificate = _text(endpoint, "smp:Certificate")
    if address is None or certificate is None:
        raise SMPClientError(f"SMP endpoint for transport profile {profile} lacks address or certificate")
    return EndpointDescriptor(
        transport_profile=profile,
        address=address,
        certificate=certificate,
        service_description=_text(endpoint, "smp:ServiceDescription"),
        technical_contact_url=_text(endpoint, "smp:TechnicalContactUrl"),
        service_activation_date=_datetime(endpoint, "smp:ServiceActivationDate"),
        service_expiration_date=_datetime(endpoint, "smp:ServiceExpirationDate"),
    )
