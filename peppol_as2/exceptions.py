"""Exception hierarchy for the PEPPOL AS2 client."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .issues import Issue


class AS2ClientBuilderError(Exception):
    """Raised when a send cannot proceed (configuration, document or envelope failure)."""


class AS2ClientBuilderValidationError(AS2ClientBuilderError):
    """Raised after a full verification scan that recorded one or more errors.

    Carries every issue recorded during the scan (warnings included) so the
    caller can fix the whole configuration in one go.
    """

    def __init__(self, issues: list[Issue]) -> None:
        self.issues = list(issues)
        errors = [issue for issue in self.issues if issue.is_error]
        lines = [f"{len(errors)} configuration error(s):"]
        lines.extend(f"  - [{issue.level.value}] {issue.message}" for issue in self.issues)
        super().__init__("\n".join(lines))


class SMPClientError(Exception):
    """Raised when the SMP directory cannot be queried or returns garbage."""


class SMPClientNotFoundError(SMPClientError):
    """Raised when the SMP has no service metadata for the participant/document type."""


class CertificateError(ValueError):
    """Raised when certificate material cannot be parsed or lacks a subject CN."""


class AS2TransportError(Exception):
    """Raised when the AS2 client cannot build or sign the outgoing message."""
