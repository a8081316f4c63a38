"""Issue collection and the pluggable policies that decide what blocks a send.

Every problem found while resolving or verifying the builder fields goes
through an :class:`IssueSink`.  The sink records the issue in order and
then hands it to the configured :class:`MessageHandler`, which decides
whether an error is fatal right away.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import AS2ClientBuilderError, AS2ClientBuilderValidationError

logger = structlog.get_logger()


class IssueLevel(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class Issue(BaseModel):
    """A single warning or error raised during resolution or verification."""

    model_config = ConfigDict(frozen=True)

    level: IssueLevel = Field(description="Severity of the issue")
    message: str = Field(description="Human-readable description")

    @property
    def is_error(self) -> bool:
        return self.level is IssueLevel.ERROR


@runtime_checkable
class MessageHandler(Protocol):
    """Policy invoked for every reported issue.

    ``error`` may raise to abort the pipeline immediately.  A handler that
    returns normally lets the scan continue; the builder then fails after
    verification with every recorded issue.
    """

    def warn(self, message: str, cause: BaseException | None = None) -> None: ...

    def error(self, message: str, cause: BaseException | None = None) -> None: ...


class DefaultMessageHandler:
    """Logs warnings and fails fast on the first error."""

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        logger.warning("as2_builder_warning", message=message, cause=_describe(cause))

    def error(self, message: str, cause: BaseException | None = None) -> None:
        logger.error("as2_builder_error", message=message, cause=_describe(cause))
        raise AS2ClientBuilderError(message) from cause


class LoggingMessageHandler:
    """Logs everything and never raises, so the full scan is always reported."""

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        logger.warning("as2_builder_warning", message=message, cause=_describe(cause))

    def error(self, message: str, cause: BaseException | None = None) -> None:
        logger.error("as2_builder_error", message=message, cause=_describe(cause))


class CollectingMessageHandler:
    """Keeps every issue in memory for later inspection (audits, UIs, tests)."""

    def __init__(self) -> None:
        self.issues: list[Issue] = []

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        self.issues.append(Issue(level=IssueLevel.WARNING, message=message))

    def error(self, message: str, cause: BaseException | None = None) -> None:
        self.issues.append(Issue(level=IssueLevel.ERROR, message=message))


class IssueSink:
    """Ordered record of issues for one send, forwarding each to a policy."""

    def __init__(self, handler: MessageHandler | None = None) -> None:
        self.handler: MessageHandler = handler if handler is not None else DefaultMessageHandler()
        self.issues: list[Issue] = []

    def warn(self, message: str, cause: BaseException | None = None) -> None:
        self.issues.append(Issue(level=IssueLevel.WARNING, message=message))
        self.handler.warn(message, cause)

    def error(self, message: str, cause: BaseException | None = None) -> None:
        # Recorded before the handler runs so a raising policy still leaves a trace.
        self.issues.append(Issue(level=IssueLevel.ERROR, message=message))
        self.handler.error(message, cause)

    @property
    def warnings(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.level is IssueLevel.WARNING]

    @property
    def errors(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def has_errors(self) -> bool:
        return any(issue.is_error for issue in self.issues)

    def raise_for_errors(self) -> None:
        """Raise :class:`AS2ClientBuilderValidationError` if any error was recorded."""
        if self.has_errors:
            raise AS2ClientBuilderValidationError(self.issues)


def _describe(cause: BaseException | None) -> str | None:
    if cause is None:
        return None
    return f"{type(cause).__name__}: {cause}"
