"""Checks event instances against a Schema.

Validation never raises during dispatch: every problem becomes a
``ValidationIssue`` and is logged as a warning. The first issue found is the
result's ``reason``. Unknown keys are reported first, then missing required
fields, then per-field type and enum problems in schema field order.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from eventlogging.errors import EventValidationError
from eventlogging.schemas.schema import Schema
from eventlogging.utils.logger_util import get_logger, logging

logger = get_logger(__name__, logging.DEBUG)


class ValidationKind(str, Enum):
    UNRECOGNIZED_FIELD = "UnrecognizedField"
    MISSING_FIELD = "MissingField"
    TYPE_MISMATCH = "TypeMismatch"
    ENUM_VIOLATION = "EnumViolation"


@dataclass(frozen=True)
class ValidationIssue:
    kind: ValidationKind
    field: str
    value: Any = None
    message: str = ""


@dataclass(frozen=True)
class ValidationResult:
    issues: Tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def invalid(cls, *issues: ValidationIssue) -> "ValidationResult":
        return cls(issues=tuple(issues))

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def reason(self) -> Optional[ValidationIssue]:
        return self.issues[0] if self.issues else None

    def __bool__(self) -> bool:
        return self.valid


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def validate(event: Mapping[str, Any], schema: Schema) -> ValidationResult:
    issues = []

    for key in event:
        if key not in schema.fields:
            issues.append(ValidationIssue(
                ValidationKind.UNRECOGNIZED_FIELD, key, event[key], f'Unrecognized field "{key}"'))

    for name, spec in schema.fields.items():
        if name not in event:
            if spec.required:
                issues.append(ValidationIssue(ValidationKind.MISSING_FIELD, name, None, f'Missing "{name}" field'))

    for name, spec in schema.fields.items():
        if name not in event:
            continue
        val = event[name]
        # None is never a valid value, whatever the declared type
        if val is None or not spec.is_instance(val):
            issues.append(ValidationIssue(
                ValidationKind.TYPE_MISMATCH, name, val,
                f"Wrong type for field: {name} {_dump(val)} (expected {spec.type})"))
            continue
        if not spec.allows(val):
            issues.append(ValidationIssue(
                ValidationKind.ENUM_VIOLATION, name, val,
                f"Value not in enum: {_dump(val)} , {_dump(list(spec.enum or ()))}"))

    for issue in issues:
        logger.warning("%s [schema=%s]", issue.message, schema.name)

    return ValidationResult(issues=tuple(issues))


def assert_valid(event: Mapping[str, Any], schema: Schema) -> bool:
    """Like ``validate`` but raises ``EventValidationError`` on the first issue."""
    result = validate(event, schema)
    if not result.valid:
        raise EventValidationError(result.reason, result.issues)
    return True
