"""
Base utilities for record transformation.

Provides tolerant value coercion for JSON records returned by the API:
- Nested lookups through optional sub-objects
- Date parsing
- Numeric parsing
- Boolean parsing
"""
from __future__ import annotations
from datetime import datetime, date
from typing import Any, Optional
from loguru import logger


def nested(record: dict | None, *path: str, default: Any = None) -> Any:
    """
    Walk ``path`` through nested dicts, returning ``default`` on any gap.

    ``nested(invoice, "customer", "customerNumber")`` is None when the
    invoice has no customer sub-object.
    """
    current: Any = record
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def parse_date(value: Any) -> Optional[date]:
    """
    Parse an API date to a Python date.

    The API uses ``YYYY-MM-DD``; some resources return full ISO timestamps.
    Returns None for empty or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    formats = [
        "%Y-%m-%d",            # 2024-04-01
        "%Y-%m-%dT%H:%M:%SZ",  # 2024-04-01T10:00:00Z
        "%Y-%m-%dT%H:%M:%S",   # 2024-04-01T10:00:00
    ]
    for fmt in formats:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        logger.warning(f"Could not parse date: {s}")
        return None


def parse_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Parse a numeric value to float, returning ``default`` when absent."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Could not parse float: {value}")
        return default


def parse_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Parse an integer value; ``"12.0"`` style strings are accepted."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning(f"Could not parse int: {value}")
        return default


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean; accepts real booleans and yes/no/true/false/1/0 strings."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value

    s = str(value).strip().lower()
    if s in ("yes", "true", "1", "y"):
        return True
    elif s in ("no", "false", "0", "n", ""):
        return False

    return default


def parse_text(value: Any, max_length: Optional[int] = None) -> Optional[str]:
    """Strip a string value; empty strings become None."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length is not None:
        s = s[:max_length]
    return s
