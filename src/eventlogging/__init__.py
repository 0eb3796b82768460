"""Schema-validated event logging.

Producers declare schemas in a ``SchemaRegistry`` and send events through an
``EventDispatcher``; schema-serving workers resolve documents through a
stampede-protected ``ModelCache``.
"""

__version__ = "0.3.0"

from eventlogging.errors import (
    ClobberWarning,
    DispatchError,
    EventLoggingError,
    EventValidationError,
    NoDestinationConfigured,
    PayloadTooLong,
    RemoteFetchFailure,
    SchemaAlreadyExists,
    UnknownSchemaWarning,
)
from eventlogging.registry import SchemaRegistry
from eventlogging.schemas import Schema
from eventlogging.validator import ValidationKind, ValidationResult, assert_valid, validate
from eventlogging.dispatch import EventDispatcher
from eventlogging.cache import ModelCache

__all__ = [
    "ClobberWarning",
    "DispatchError",
    "EventDispatcher",
    "EventLoggingError",
    "EventValidationError",
    "ModelCache",
    "NoDestinationConfigured",
    "PayloadTooLong",
    "RemoteFetchFailure",
    "Schema",
    "SchemaAlreadyExists",
    "SchemaRegistry",
    "UnknownSchemaWarning",
    "ValidationKind",
    "ValidationResult",
    "assert_valid",
    "validate",
]
