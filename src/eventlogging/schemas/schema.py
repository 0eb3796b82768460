from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .fields import FieldSpec, parse_field_spec


UNKNOWN_REVISION = "UNKNOWN"


class Schema(BaseModel):
    """Named, versioned set of field specifications an event must satisfy.

    ``fields`` keys are the only keys a conforming event may carry. ``defaults``
    are overlaid beneath caller values at dispatch time and are not validated
    until then. ``log`` is the append-only audit trail of dispatched events.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    revision: Any = UNKNOWN_REVISION
    fields: Dict[str, FieldSpec] = Field(default_factory=dict)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    log: List[Mapping[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _accept_schema_key(cls, data: Any):
        # JSON-Schema-shaped documents keep the field map under "schema"
        if isinstance(data, dict) and "fields" not in data and isinstance(data.get("schema"), dict):
            data = dict(data)
            data["fields"] = data.pop("schema")
        return data

    @field_validator("fields", mode="before")
    @classmethod
    def _parse_fields(cls, v: Any):
        if v is None:
            return {}
        return {str(k): parse_field_spec(spec) for k, spec in dict(v).items()}

    @field_validator("defaults", mode="before")
    @classmethod
    def _defaults_mapping(cls, v: Any):
        return {} if v is None else dict(v)

    def field_order(self) -> List[str]:
        return list(self.fields)

    def required_fields(self) -> List[str]:
        return [name for name, spec in self.fields.items() if spec.required]

    def describe(self) -> Dict[str, Any]:
        """JSON-friendly view without the audit log."""
        return {
            "name": self.name,
            "revision": self.revision,
            "fields": {k: v.model_dump(exclude_none=True) for k, v in self.fields.items()},
            "defaults": dict(self.defaults),
        }
