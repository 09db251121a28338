"""Shared serialization utilities for sinks."""

from collections import Counter
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from reco_engine.models.rule import Match


def to_dict(obj: Any) -> dict:
    """Convert object to dictionary."""
    if is_dataclass(obj):
        return dataclass_to_dict(obj)
    elif isinstance(obj, dict):
        return {k: serialize_value(v) for k, v in obj.items()}
    else:
        return {"value": str(obj)}


def dataclass_to_dict(obj: Any) -> dict:
    """Convert a dataclass, nested records included, to a JSON-ready dict.

    Transactions carry their workflow state and grouping KPIs as nested
    dataclasses; both are serialized recursively. Derived properties are
    not included.
    """
    return {f.name: serialize_value(getattr(obj, f.name)) for f in fields(obj) if not f.name.startswith("_")}


def serialize_value(value: Any) -> Any:
    """Serialize a value for JSON output."""
    if value is Match.ANY:
        return "*"
    elif value is Match.NULL:
        return None
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, date):
        return value.isoformat()
    elif is_dataclass(value) and not isinstance(value, type):
        return dataclass_to_dict(value)
    elif isinstance(value, Counter):
        return {str(k): v for k, v in value.items()}
    elif isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    elif isinstance(value, (frozenset, set)):
        return sorted(serialize_value(v) for v in value)
    elif isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value
