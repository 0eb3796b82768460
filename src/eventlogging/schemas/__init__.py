"""Schema package: typed field declarations and the Schema model events validate against."""

from .fields import (
    BaseFieldSpec,
    BooleanField,
    FieldSpec,
    IntegerField,
    NumberField,
    StringField,
    TimestampField,
    is_instance,
    parse_field_spec,
)
from .schema import UNKNOWN_REVISION, Schema

__all__ = [
    "BaseFieldSpec",
    "BooleanField",
    "FieldSpec",
    "IntegerField",
    "NumberField",
    "Schema",
    "StringField",
    "TimestampField",
    "UNKNOWN_REVISION",
    "is_instance",
    "parse_field_spec",
]
