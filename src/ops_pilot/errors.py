"""Exception types shared across the pipeline, ingestion and API layers."""

from __future__ import annotations


class OpsPilotError(Exception):
    """Base class for all OpsPilot errors."""


class BackendError(OpsPilotError):
    """A reasoning backend call failed or returned unusable data."""


class BackendTimeoutError(BackendError):
    """A reasoning backend call did not finish within the configured timeout."""


class MailboxError(OpsPilotError):
    """The external mailbox could not be read."""


class MailboxAuthError(MailboxError):
    """The mailbox rejected the credential (HTTP 401)."""


class InvalidTransitionError(OpsPilotError):
    """A task status change that the state machine does not allow."""


class FieldRegressionError(OpsPilotError):
    """A replacement record would clear a field that a stage already set."""


class DuplicateTaskError(OpsPilotError):
    """A task with the same identifier is already stored."""


class UnknownConnectorError(OpsPilotError, KeyError):
    """The connector id is not one of the known sources."""


class ConnectorStateError(OpsPilotError):
    """The requested connector change conflicts with its current state."""
