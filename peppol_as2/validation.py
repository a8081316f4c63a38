"""Full-scan verification of the builder fields.

Every field is checked once, in a fixed order, whether or not an earlier
check failed.  Missing required values are errors; deviations from PEPPOL
conventions are warnings.  Whether the first error aborts the scan is up
to the message handler behind the sink.
"""

from __future__ import annotations

import re

import httpx

from .fields import BuilderFields
from .identifiers import Identifier
from .issues import IssueSink

APP_PREFIX = "APP_"

# Pragmatic RFC 5322 subset: local@domain.tld without spaces or consecutive dots.
_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?\.)+[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$"
)


def is_valid_email(address: str) -> bool:
    return _EMAIL_RE.match(address) is not None


def is_valid_url(url: str) -> bool:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


def _has_no_text(value: str | None) -> bool:
    return value is None or value == ""


def verify_fields(fields: BuilderFields, sink: IssueSink) -> None:
    """Report every problem with *fields* to *sink*."""
    _verify_key_store(fields, sink)

    if fields.key_store_password is None:
        sink.error("No key store password provided. If you need an empty password, please provide an empty string!")

    if _has_no_text(fields.subject):
        sink.error("The AS2 message subject is missing")

    _verify_as2_id(fields.sender_as2_id, "sender", sink)

    if _has_no_text(fields.sender_email):
        sink.error("The AS2 sender email address is missing")
    elif not is_valid_email(fields.sender_email):
        sink.warn(f"The AS2 sender email address '{fields.sender_email}' seems to be an invalid email address.")

    _verify_key_alias(fields.sender_key_alias, fields.sender_as2_id, "sender", sink)

    _verify_as2_id(fields.receiver_as2_id, "receiver", sink)
    _verify_key_alias(fields.receiver_key_alias, fields.receiver_as2_id, "receiver", sink)

    if _has_no_text(fields.receiver_url):
        sink.error("The AS2 receiver URL (AS2 endpoint URL) is missing")
    elif not is_valid_url(fields.receiver_url):
        sink.warn(f"The provided AS2 receiver URL '{fields.receiver_url}' seems to be an invalid URL")

    if fields.receiver_certificate is None:
        sink.error("The receiver X.509 certificate is missing. Usually this is extracted from the SMP response")

    if fields.signing_algorithm is None:
        sink.error("The signing algorithm for the AS2 message is missing")

    if _has_no_text(fields.message_id_format):
        sink.error("The AS2 message ID format is missing.")

    if fields.business_document is None:
        sink.error("The XML business document to be sent is missing.")
    elif not fields.business_document.exists():
        sink.error(f"The XML business document to be sent '{fields.business_document.path}' does not exist.")

    _verify_identifier(fields.sender_participant_id, "PEPPOL sender participant ID", sink)
    _verify_identifier(fields.receiver_participant_id, "PEPPOL receiver participant ID", sink)
    _verify_identifier(fields.document_type_id, "PEPPOL document type ID", sink)
    _verify_identifier(fields.process_id, "PEPPOL process ID", sink)


def _verify_key_store(fields: BuilderFields, sink: IssueSink) -> None:
    if fields.key_store_path is None:
        sink.error("No AS2 key store is defined")
        return
    location = fields.key_store_path.absolute()
    if not location.exists():
        sink.error(f"The provided AS2 key store '{location}' does not exist.")
    elif not location.is_file():
        sink.error(f"The provided AS2 key store '{location}' is not a file but potentially a directory.")


def _verify_as2_id(as2_id: str | None, role: str, sink: IssueSink) -> None:
    if _has_no_text(as2_id):
        sink.error(f"The AS2 {role} ID is missing")
    elif not as2_id.startswith(APP_PREFIX):
        sink.warn(
            f"The AS2 {role} ID '{as2_id}' should start with '{APP_PREFIX}' as required by the PEPPOL specification"
        )


def _verify_key_alias(alias: str | None, as2_id: str | None, role: str, sink: IssueSink) -> None:
    if _has_no_text(alias):
        sink.error(f"The AS2 {role} key alias is missing")
    elif not alias.startswith(APP_PREFIX):
        sink.warn(
            f"The AS2 {role} key alias '{alias}' should start with '{APP_PREFIX}' "
            "for the use with the dynamic AS2 partnerships"
        )
    elif as2_id is not None and as2_id != alias:
        sink.warn(f"The AS2 {role} key alias ('{alias}') should match the AS2 {role} ID ('{as2_id}')")


def _verify_identifier(identifier: Identifier | None, label: str, sink: IssueSink) -> None:
    if identifier is None:
        sink.error(f"The {label} is missing")
    elif not identifier.has_default_scheme():
        sink.warn(f"The {label} '{identifier.uri_encoded}' is using a non-standard scheme!")
