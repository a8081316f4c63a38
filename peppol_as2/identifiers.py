"""PEPPOL routing identifiers (scheme + value pairs).

Identifiers are written in their URI-encoded form ``scheme::value`` in
logs, SMP URLs and messages, e.g.
``iso6523-actorid-upis::0088:5798000000001``.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PARTICIPANT_IDENTIFIER_SCHEME = "iso6523-actorid-upis"
DEFAULT_DOCUMENT_TYPE_IDENTIFIER_SCHEME = "busdox-docid-qns"
DEFAULT_PROCESS_IDENTIFIER_SCHEME = "cenbii-procid-ubl"

URL_SCHEME_VALUE_SEPARATOR = "::"


class Identifier(BaseModel):
    """A scheme + value pair. Subclasses fix the default scheme."""

    model_config = ConfigDict(frozen=True)

    DEFAULT_SCHEME: ClassVar[str] = ""

    scheme: str = Field(description="Identifier scheme (e.g. iso6523-actorid-upis)")
    value: str = Field(description="Identifier value within the scheme")

    @classmethod
    def with_default_scheme(cls, value: str):
        return cls(scheme=cls.DEFAULT_SCHEME, value=value)

    @classmethod
    def from_uri(cls, uri: str):
        """Parse ``scheme::value``. Raises ``ValueError`` if the separator is missing."""
        scheme, sep, value = uri.partition(URL_SCHEME_VALUE_SEPARATOR)
        if not sep or not scheme or not value:
            raise ValueError(f"'{uri}' is not a URI-encoded identifier (scheme::value)")
        return cls(scheme=scheme, value=value)

    @property
    def uri_encoded(self) -> str:
        return f"{self.scheme}{URL_SCHEME_VALUE_SEPARATOR}{self.value}"

    def has_default_scheme(self) -> bool:
        return self.scheme == self.DEFAULT_SCHEME

    def __str__(self) -> str:
        return self.uri_encoded


class ParticipantIdentifier(Identifier):
    """Identifies a sender or receiver in the PEPPOL network.

    Participant identifier values are case insensitive.
    """

    DEFAULT_SCHEME: ClassVar[str] = DEFAULT_PARTICIPANT_IDENTIFIER_SCHEME


class DocumentTypeIdentifier(Identifier):
    """Identifies the business document type.

    PEPPOL values follow
    ``<root namespace>::<local name>##<customization>::<version>``.
    """

    DEFAULT_SCHEME: ClassVar[str] = DEFAULT_DOCUMENT_TYPE_IDENTIFIER_SCHEME

    @property
    def root_namespace(self) -> str | None:
        head, sep, _ = self.value.partition(URL_SCHEME_VALUE_SEPARATOR)
        return head if sep else None

    @property
    def version(self) -> str | None:
        _, sep, rest = self.value.partition("##")
        if not sep or URL_SCHEME_VALUE_SEPARATOR not in rest:
            return None
        return rest.rsplit(URL_SCHEME_VALUE_SEPARATOR, 1)[1] or None


class ProcessIdentifier(Identifier):
    """Identifies the business process the document belongs to."""

    DEFAULT_SCHEME: ClassVar[str] = DEFAULT_PROCESS_IDENTIFIER_SCHEME
