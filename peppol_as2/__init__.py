"""PEPPOL AS2 client.

Public API re-exported here for convenience::

    from peppol_as2 import AS2ClientBuilder, ParticipantIdentifier, SMPClient
"""

from .as2 import AS2Client, AS2Sender
from .builder import AS2ClientBuilder
from .certificates import get_subject_common_name, load_certificate
from .config import AS2Config, PeppolClientConfig, SenderConfig, SMPConfig
from .exceptions import (
    AS2ClientBuilderError,
    AS2ClientBuilderValidationError,
    AS2TransportError,
    CertificateError,
    SMPClientError,
    SMPClientNotFoundError,
)
from .fields import BuilderFields
from .identifiers import DocumentTypeIdentifier, ParticipantIdentifier, ProcessIdentifier
from .issues import (
    CollectingMessageHandler,
    DefaultMessageHandler,
    Issue,
    IssueLevel,
    IssueSink,
    LoggingMessageHandler,
    MessageHandler,
)
from .logging import setup_logging, setup_logging_from_config
from .models import (
    MDN,
    AS2ClientRequest,
    AS2ClientResponse,
    AS2ClientSettings,
    DispositionOptions,
    EndpointDescriptor,
    SigningAlgorithm,
    TransportProfile,
)
from .resources import ByteArrayResource, FileSystemResource, ReadableResource
from .smp import EndpointProvider, SMPClient

__all__ = [
    "AS2Client",
    "AS2ClientBuilder",
    "AS2ClientBuilderError",
    "AS2ClientBuilderValidationError",
    "AS2ClientRequest",
    "AS2ClientResponse",
    "AS2ClientSettings",
    "AS2Config",
    "AS2Sender",
    "AS2TransportError",
    "BuilderFields",
    "ByteArrayResource",
    "CertificateError",
    "CollectingMessageHandler",
    "DefaultMessageHandler",
    "DispositionOptions",
    "DocumentTypeIdentifier",
    "EndpointDescriptor",
    "EndpointProvider",
    "FileSystemResource",
    "Issue",
    "IssueLevel",
    "IssueSink",
    "LoggingMessageHandler",
    "MDN",
    "MessageHandler",
    "ParticipantIdentifier",
    "PeppolClientConfig",
    "ProcessIdentifier",
    "ReadableResource",
    "SMPClient",
    "SMPClientError",
    "SMPClientNotFoundError",
    "SMPConfig",
    "SenderConfig",
    "SigningAlgorithm",
    "TransportProfile",
    "get_subject_common_name",
    "load_certificate",
    "setup_logging",
    "setup_logging_from_config",
]
