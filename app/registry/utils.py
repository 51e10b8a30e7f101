from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from flask import g, jsonify, request

from app.registry.models import User

_WHITESPACE_RE = re.compile(r"\s+")

# Largest value a signed 64-bit INTEGER column holds.
MAX_ID = 2**63 - 1


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def json_error(message: str, status: int, details: Any = None):
    """Uniform JSON error body: {"error": ..., "details": ...}."""
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def request_json_object() -> dict | None:
    """Parsed JSON body if it is an object, else None (bad JSON included)."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None
    return payload


def clean_str(value: Any) -> str | None:
    """Trimmed string or None for blanks and non-strings."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def slugify_filename(name: str | None) -> str:
    """Lower-case and replace whitespace runs with '_' ("Buenos Aires" -> "buenos_aires")."""
    return _WHITESPACE_RE.sub("_", (name or "").strip()).lower()


def parse_id(value: Any) -> int:
    """
    A row id from an int or a digit string, within 1..MAX_ID.
    Floats and bools are rejected rather than truncated. Raises ValueError.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid id: {value!r}")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or not 1 <= value <= MAX_ID:
        raise ValueError(f"Invalid id: {value!r}")
    return value


def parse_id_list(raw: Iterable[Any] | None) -> list[int]:
    """
    Parse ids from query values or JSON lists.
    Accepts ints, numeric strings and comma-separated strings ("1,2", ["3", 4]).
    Order is kept, duplicates collapsed. Raises ValueError on anything else.
    """
    ids: list[int] = []
    for item in raw or []:
        if isinstance(item, str):
            parts: list[Any] = [p.strip() for p in item.split(",") if p.strip()]
        else:
            parts = [item]
        for part in parts:
            value = parse_id(part)
            if value not in ids:
                ids.append(value)
    return ids
