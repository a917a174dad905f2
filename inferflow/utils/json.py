"""Lenient JSON parsing for values read back from the persisted store.

The store is treated as returning absent-or-parseable text: anything else is
reported as None so callers can fall back to their defaults.
"""

import json
from typing import Any


def parse_json_or_none(raw: str | dict | list | None) -> dict | list | None:
    """Parse a JSON string or return structured value as-is, None on failure.

    Accepts dicts and lists as-is without re-parsing.
    Returns None for: None, empty string, invalid JSON, JSON scalars.
    """
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        return raw
    if isinstance(raw, str):
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except (ValueError, TypeError):
            return None
        if isinstance(parsed, (dict, list)):
            return parsed
    return None


def parse_json_list(raw: str | list | None) -> list | None:
    """Parse a JSON array, returning None on failure or non-list JSON."""
    parsed = parse_json_or_none(raw)
    if isinstance(parsed, list):
        return parsed
    return None


def dump_json(value: Any, *, pretty: bool = False) -> str:
    """Serialize for storage (compact) or export (indented)."""
    if pretty:
        return json.dumps(value, indent=2, ensure_ascii=False)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
