from __future__ import annotations

import datetime
from abc import abstractmethod
import math
import numbers
from typing import Any, Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


FieldType = Literal["string", "boolean", "integer", "number", "timestamp"]


def _is_real(value: Any) -> bool:
    # bool is an int subclass, but True/False are never numbers here
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    if not _is_real(value):
        return False
    if isinstance(value, int):
        return True
    try:
        return math.isfinite(value)
    except (OverflowError, ValueError):
        return False


def _is_integral(value: Any) -> bool:
    if not _is_finite_number(value):
        return False
    if isinstance(value, int):
        return True
    return value % 1 == 0


class BaseFieldSpec(BaseModel):
    """Typed contract for one event field.

    ``optional`` is informational only: when a declaration gives ``optional``
    but not ``required``, ``required`` is derived from it, and afterwards the
    two always agree.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: FieldType
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = Field(None, description="Allowed values, in declaration order")
    optional: bool = True
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _sync_required_optional(cls, data: Any):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "required" not in data and data.get("optional") is not None:
            data["required"] = not bool(data["optional"])
        data["optional"] = not bool(data.get("required", False))
        return data

    @abstractmethod
    def is_instance(self, value: Any) -> bool:
        """Type predicate for this field's ``type``."""

    def allows(self, value: Any) -> bool:
        """Enum check. Fields without an enum allow any well-typed value."""
        if self.enum is None:
            return True
        return any(strict_equals(value, member) for member in self.enum)


class StringField(BaseFieldSpec):
    type: Literal["string"] = "string"

    def is_instance(self, value: Any) -> bool:
        return isinstance(value, str)


class BooleanField(BaseFieldSpec):
    type: Literal["boolean"] = "boolean"

    def is_instance(self, value: Any) -> bool:
        return isinstance(value, bool)


class IntegerField(BaseFieldSpec):
    type: Literal["integer"] = "integer"

    def is_instance(self, value: Any) -> bool:
        return _is_integral(value)


class NumberField(BaseFieldSpec):
    type: Literal["number"] = "number"

    def is_instance(self, value: Any) -> bool:
        return _is_finite_number(value)


class TimestampField(BaseFieldSpec):
    type: Literal["timestamp"] = "timestamp"

    def is_instance(self, value: Any) -> bool:
        # datetime.datetime is a subclass of datetime.date
        if isinstance(value, datetime.date):
            return True
        return _is_integral(value) and value >= 0


FieldSpec = Annotated[
    Union[StringField, BooleanField, IntegerField, NumberField, TimestampField],
    Field(discriminator="type"),
]

FIELD_TYPES = {
    "string": StringField,
    "boolean": BooleanField,
    "integer": IntegerField,
    "number": NumberField,
    "timestamp": TimestampField,
}

_field_spec_adapter: TypeAdapter = TypeAdapter(FieldSpec)


def parse_field_spec(data: Any) -> BaseFieldSpec:
    """Build a FieldSpec variant from a plain declaration such as ``{"type": "number"}``."""
    if isinstance(data, BaseFieldSpec):
        return data
    return _field_spec_adapter.validate_python(data)


def strict_equals(a: Any, b: Any) -> bool:
    """Equality without cross-type coercion (``True`` is not ``1``, ``"1"`` is not ``1``)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if _is_real(a) and _is_real(b):
        return a == b
    return type(a) is type(b) and a == b


def is_instance(value: Any, type_name: str) -> bool:
    """Check a value against a bare type tag. Unknown tags never match."""
    spec_cls = FIELD_TYPES.get(type_name)
    if spec_cls is None or value is None:
        return False
    return spec_cls().is_instance(value)
