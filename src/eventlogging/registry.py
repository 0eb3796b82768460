from __future__ import annotations

import warnings
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from eventlogging.errors import ClobberWarning, SchemaAlreadyExists, UnknownSchemaWarning
from eventlogging.schemas.schema import Schema
from eventlogging.utils.logger_util import get_logger, logging
from eventlogging.validator import ValidationResult, validate

logger = get_logger(__name__, logging.DEBUG)

SchemaBody = Union[Schema, Mapping[str, Any], None]


def _body_dict(body: SchemaBody) -> Dict[str, Any]:
    if body is None:
        return {}
    if isinstance(body, Schema):
        # keep FieldSpec instances, they are re-accepted as-is
        data = {
            "revision": body.revision,
            "fields": dict(body.fields),
            "defaults": dict(body.defaults),
        }
        if body.log:
            data["log"] = list(body.log)
        return data
    data = dict(body)
    if "fields" not in data and isinstance(data.get("schema"), Mapping):
        data["fields"] = data.pop("schema")
    return data


def _merge_field(previous: Any, update: Any) -> Any:
    if previous is None or not isinstance(update, Mapping):
        return update
    merged = previous.model_dump()
    if "optional" in update and "required" not in update:
        # let the new ``optional`` decide ``required`` again
        merged.pop("required")
    merged.update(update)
    return merged


def _merge(previous: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``update`` on ``previous``, keeping every sub-field it leaves out.

    Field declarations are merged attribute by attribute, defaults key by
    key. ``log`` is only replaced when ``update`` supplies one.
    """
    merged = dict(previous)
    for key, value in update.items():
        if key == "fields" and isinstance(value, Mapping):
            fields = dict(merged.get("fields", {}))
            for field_name, spec in value.items():
                fields[field_name] = _merge_field(fields.get(field_name), spec)
            merged["fields"] = fields
        elif key == "defaults" and isinstance(value, Mapping):
            merged["defaults"] = {**merged.get("defaults", {}), **dict(value)}
        elif key == "log":
            merged["log"] = list(value or [])
        else:
            merged[key] = value
    return merged


class SchemaRegistry:
    """In-memory mapping of schema name -> Schema.

    One instance is created by the application and handed to dispatchers;
    there is no process-wide registry. Schemas are only mutated through the
    methods here, plus the dispatcher appending to ``Schema.log``.
    """

    def __init__(self):
        self._schemas: Dict[str, Schema] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __iter__(self) -> Iterator[Schema]:
        return iter(list(self._schemas.values()))

    def names(self) -> List[str]:
        return list(self._schemas)

    def lookup(self, name: str) -> Optional[Schema]:
        return self._schemas.get(name)

    def register(self, name: str, body: SchemaBody = None, overwrite: Optional[bool] = None) -> Schema:
        """Declare a schema.

        ``body`` is deep-merged over any existing entry, so sub-fields it
        leaves out are kept, including the entry's ``log``. With
        ``overwrite=None`` the merge comes with a ``ClobberWarning``;
        ``overwrite=True`` merges silently and ``overwrite=False`` refuses
        with ``SchemaAlreadyExists``.
        """
        data = _body_dict(body)
        data.pop("name", None)
        previous = self._schemas.get(name)

        if previous is not None and overwrite is False:
            raise SchemaAlreadyExists(name)

        if previous is None:
            schema = Schema(name=name, **data)
        else:
            if overwrite is None:
                message = f'Clobbering existing "{name}" schema'
                logger.warning(message)
                warnings.warn(message, ClobberWarning, stacklevel=2)
            schema = Schema(name=name, **_merge(_body_dict(previous), data))

        self._schemas[name] = schema
        logger.debug("registered schema %s revision=%s fields=%s", name, schema.revision, schema.field_order())
        return schema

    def resolve(self, name: str, action: str = "Using") -> Schema:
        """Return the named schema, auto-registering an empty one (with a warning) if unknown."""
        schema = self._schemas.get(name)
        if schema is None:
            message = f'{action} unknown schema "{name}"'
            logger.warning(message)
            warnings.warn(message, UnknownSchemaWarning, stacklevel=3)
            schema = self.register(name)
        return schema

    def set_defaults(self, name: str, defaults: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Set default values applied beneath every subsequent event of a schema.

        Defaults are not validated here; the composed event is validated at
        dispatch. Passing ``None`` clears all defaults.
        """
        schema = self.resolve(name, action="Setting defaults on")
        if defaults is None:
            schema.defaults = {}
        else:
            schema.defaults.update(dict(defaults))
        return schema.defaults

    def validate(self, name: str, event: Mapping[str, Any]) -> ValidationResult:
        return validate(event, self.resolve(name, action="Validating against"))
