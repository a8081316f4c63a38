"""Fill unset receiver fields from an SMP lookup."""

from __future__ import annotations

import structlog

from .certificates import get_subject_common_name, load_certificate
from .exceptions import CertificateError, SMPClientError
from .fields import BuilderFields
from .issues import IssueSink
from .models import EndpointDescriptor, TransportProfile

logger = structlog.get_logger()


def perform_smp_lookup(
    fields: BuilderFields,
    sink: IssueSink,
    transport_profile: TransportProfile | str = TransportProfile.AS2,
) -> bool:
    """Resolve the receiver URL, certificate and AS2 ID via ``fields.smp_client``.

    Nothing happens without an SMP client.  A missing lookup prerequisite or
    a failed lookup is reported as a warning and leaves every field as is.
    Fields that are already set are never overwritten.

    Returns ``True`` if a lookup was performed and returned an endpoint.
    """
    if fields.smp_client is None:
        return False

    if fields.receiver_participant_id is None:
        sink.warn("Cannot perform SMP lookup because the PEPPOL receiver ID is missing")
        return False
    if fields.document_type_id is None:
        sink.warn("Cannot perform SMP lookup because the PEPPOL document type ID is missing")
        return False
    if fields.process_id is None:
        sink.warn("Cannot perform SMP lookup because the PEPPOL process ID is missing")
        return False

    if (
        fields.receiver_url is not None
        and fields.receiver_certificate is not None
        and fields.receiver_as2_id is not None
    ):
        logger.debug("smp_lookup_skipped", reason="all_target_fields_set")
        return False

    profile = transport_profile.value if isinstance(transport_profile, TransportProfile) else transport_profile
    query = (
        f"receiver '{fields.receiver_participant_id.uri_encoded}' on document type "
        f"'{fields.document_type_id.uri_encoded}' and process ID '{fields.process_id.uri_encoded}' "
        f"using transport profile '{profile}'"
    )
    logger.debug(
        "smp_lookup_started",
        receiver=fields.receiver_participant_id.uri_encoded,
        document_type=fields.document_type_id.uri_encoded,
        process=fields.process_id.uri_encoded,
        transport_profile=profile,
    )

    endpoint: EndpointDescriptor | None = None
    try:
        endpoint = fields.smp_client.get_endpoint(
            fields.receiver_participant_id,
            fields.document_type_id,
            fields.process_id,
            profile,
        )
    except SMPClientError as exc:
        logger.debug("smp_lookup_error", error=str(exc), exc_info=True)

    if endpoint is None:
        sink.warn(f"Failed to perform SMP lookup for {query}")
        return False

    _merge_endpoint(fields, endpoint, sink)
    return True


def _merge_endpoint(fields: BuilderFields, endpoint: EndpointDescriptor, sink: IssueSink) -> None:
    if fields.receiver_url is None:
        fields.receiver_url = endpoint.address

    if fields.receiver_certificate is None:
        try:
            fields.receiver_certificate = load_certificate(endpoint.certificate)
        except CertificateError as exc:
            sink.error("Failed to build X.509 certificate from SMP client response", exc)

    if fields.receiver_as2_id is None:
        try:
            fields.receiver_as2_id = get_subject_common_name(fields.receiver_certificate)
        except CertificateError as exc:
            sink.error("Failed to get the receiver AS2 ID from the provided certificate", exc)

    logger.info(
        "smp_lookup_resolved",
        receiver_url=fields.receiver_url,
        receiver_as2_id=fields.receiver_as2_id,
    )
