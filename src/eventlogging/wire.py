"""Event wire format.

An event travels as a flat, percent-encoded ``key=value`` query string. The
reserved provenance keys come first, then the event's own fields. The string
ends with ``;`` so a receiver can tell whether it was truncated in transit::

    _db=enwiki&_id=earthquake&_rv=42&_ok=true&epicenter=Valdivia&magnitude=9.5;
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

# Query strings are terminated with a semicolon to help identify
# URIs that were truncated in transmit.
QS_TERMINATOR = ";"

# Legacy request-URI budget for a beacon payload, in bytes.
MAX_PAYLOAD_LENGTH = 255

ORIGIN_KEY = "_db"
SCHEMA_KEY = "_id"
REVISION_KEY = "_rv"
VALID_KEY = "_ok"
RESERVED_KEYS = (ORIGIN_KEY, SCHEMA_KEY, REVISION_KEY, VALID_KEY)


def encode_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return str(value)


def _ordered_items(event: Mapping[str, Any], field_order: Iterable[str]) -> List[Tuple[str, str]]:
    seen = set()
    items = []
    for key in field_order:
        if key in event:
            items.append((key, encode_value(event[key])))
            seen.add(key)
    for key, value in event.items():
        if key not in seen:
            items.append((key, encode_value(value)))
    return items


def build_query(pairs: Iterable[Tuple[str, Any]]) -> str:
    return urlencode([(k, encode_value(v)) for k, v in pairs])


def build_payload(
    origin: Optional[str],
    schema_name: str,
    revision: Any,
    valid: bool,
    event: Mapping[str, Any],
    field_order: Iterable[str] = (),
) -> str:
    provenance = build_query([
        (ORIGIN_KEY, origin),
        (SCHEMA_KEY, schema_name),
        (REVISION_KEY, revision),
        (VALID_KEY, bool(valid)),
    ])
    body = urlencode(_ordered_items(event, field_order))
    return "&".join(part for part in (provenance, body) if part) + QS_TERMINATOR


def payload_length(payload: str) -> int:
    return len(payload.encode("utf-8"))


def beacon_url(base_uri: str, payload: str) -> str:
    return f"{base_uri}?{payload}"


@dataclass
class ParsedPayload:
    provenance: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, str] = field(default_factory=dict)
    truncated: bool = False

    @property
    def schema_name(self) -> Optional[str]:
        return self.provenance.get(SCHEMA_KEY)

    @property
    def valid(self) -> Optional[bool]:
        flag = self.provenance.get(VALID_KEY)
        if flag is None:
            return None
        return flag == "true"


def parse_payload(payload: str) -> ParsedPayload:
    """Split a received query string into provenance and event fields.

    Values stay strings: the wire format carries no type information.
    """
    raw = payload[1:] if payload.startswith("?") else payload
    truncated = not raw.endswith(QS_TERMINATOR)
    if not truncated:
        raw = raw[: -len(QS_TERMINATOR)]
    parsed = ParsedPayload(truncated=truncated)
    for key, value in parse_qsl(raw, keep_blank_values=True):
        if key in RESERVED_KEYS:
            parsed.provenance[key] = value
        else:
            parsed.fields[key] = value
    return parsed
