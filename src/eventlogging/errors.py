"""Exception and warning taxonomy for eventlogging.

Hard failures derive from ``EventLoggingError``. Conditions that are logged
and then recovered from locally derive from ``EventLoggingWarning`` and are
emitted through :mod:`warnings`, so callers can filter or escalate them.
Validation outcomes are data (see ``eventlogging.validator``), not exceptions.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional


class EventLoggingError(Exception):
    """Base class for all eventlogging failures."""


class SchemaAlreadyExists(EventLoggingError):
    def __init__(self, name: str):
        super().__init__(f'Schema "{name}" already exists; pass overwrite=True to merge over it')
        self.name = name


class DispatchError(EventLoggingError):
    """A dispatch attempt rejected before anything was transmitted.

    Carries the composed event and the built payload for diagnostics.
    """

    reason = "dispatch rejected"

    def __init__(self, schema_name: str, event: Mapping[str, Any], payload: str):
        super().__init__(f'{self.reason}: schema "{schema_name}"')
        self.schema_name = schema_name
        self.event = event
        self.payload = payload


class PayloadTooLong(DispatchError):
    reason = "Request URI too long"

    def __init__(self, schema_name: str, event: Mapping[str, Any], payload: str, limit: int = 0, length: int = 0):
        super().__init__(schema_name, event, payload)
        self.limit = limit
        self.length = length

    def __str__(self) -> str:
        return f'{self.reason}: schema "{self.schema_name}" payload is {self.length} bytes (limit {self.limit})'


class NoDestinationConfigured(DispatchError):
    reason = "EVENTLOGGING_BASE_URI is not set"


class RemoteFetchFailure(EventLoggingError):
    def __init__(self, model: str, uri: str, reason: str):
        super().__init__(f'Failed to retrieve model "{model}" from {uri}: {reason}')
        self.model = model
        self.uri = uri
        self.reason = reason


class EventValidationError(EventLoggingError):
    """Raised by ``assert_valid``; dispatch never raises it."""

    def __init__(self, issue: Any, issues: Optional[tuple] = None):
        super().__init__(issue.message)
        self.issue = issue
        self.issues = issues or (issue,)


class EventLoggingWarning(UserWarning):
    pass


class ClobberWarning(EventLoggingWarning):
    pass


class UnknownSchemaWarning(EventLoggingWarning):
    pass
