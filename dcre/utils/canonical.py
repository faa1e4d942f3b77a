"""Canonical JSON utilities for audit snapshots."""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def canonical_value(obj: Any) -> Any:
    """Convert value into a JSON-safe canonical representation."""
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return canonical_value(obj.value)
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float, Decimal)):
        return float(obj) if isinstance(obj, (float, Decimal)) else int(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): canonical_value(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = [canonical_value(v) for v in obj]
        return sorted(items, key=str) if isinstance(obj, (set, frozenset)) else items
    if isinstance(obj, str):
        return obj
    return str(obj)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON string (sorted keys, consistent formatting)."""
    return json.dumps(canonical_value(obj), sort_keys=True, separators=(",", ":"))
