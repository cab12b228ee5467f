"""
Hashing for the payables audit chain.

An audit payload is reduced to one canonical JSON text before hashing:
sorted keys, compact separators, and a single textual form for the values
invoice snapshots carry (money, dates, ids, statuses).  Two snapshots of
the same invoice therefore hash alike no matter how the database returned
the amounts.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"


def _encode_value(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # 17700.00 and 17700.000000000 are the same amount
        return format(obj.normalize(), "f")
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return sorted(obj) if isinstance(obj, (set, frozenset)) else list(obj)
    raise TypeError(f"Cannot encode {type(obj).__name__} in an audit payload")


def canonicalize_json(data: Any) -> str:
    """Canonical JSON text of ``data``."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_value)


def to_json_safe(data: Any) -> Any:
    """``data`` reduced to plain JSON types, ready for a JSON column."""
    return json.loads(canonicalize_json(data))


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Link hash of one audit event.

    Covers the subject (``entity_type``/``entity_id``), the action, the
    payload hash and the predecessor's hash, so editing or removing any
    earlier event breaks every later link.
    """
    link = [entity_type, str(entity_id), action, payload_hash, prev_hash or GENESIS_MARKER]
    return _sha256(canonicalize_json(link))
