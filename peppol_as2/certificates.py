"""X.509 helpers: parse certificate material and read the subject CN."""

from __future__ import annotations

import base64
import binascii

from cryptography import x509
from cryptography.x509.oid import NameOID

from .exceptions import CertificateError

_PEM_MARKER = b"-----BEGIN CERTIFICATE-----"


def load_certificate(material: str | bytes) -> x509.Certificate:
    """Build a certificate from PEM text, base64-encoded DER, or raw DER.

    SMP responses carry the endpoint certificate as base64 DER, possibly
    wrapped over several lines.
    """
    data = material.encode("ascii", errors="replace") if isinstance(material, str) else material
    data = data.strip()
    if not data:
        raise CertificateError("Certificate material is empty")

    try:
        if _PEM_MARKER in data:
            return x509.load_pem_x509_certificate(data)
        try:
            der = base64.b64decode(b"".join(data.split()), validate=True)
        except (binascii.Error, ValueError):
            der = data
        return x509.load_der_x509_certificate(der)
    except ValueError as exc:
        raise CertificateError(f"Failed to parse X.509 certificate: {exc}") from exc


def get_subject_common_name(certificate: x509.Certificate | None) -> str:
    """Return the CN of the certificate subject (the AS2 ID in PEPPOL)."""
    if certificate is None:
        raise CertificateError("No certificate present")
    attributes = certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        raise CertificateError(
            f"Certificate subject '{certificate.subject.rfc4514_string()}' has no common name"
        )
    value = attributes[0].value
    return value.decode("utf-8") if isinstance(value, bytes) else value
