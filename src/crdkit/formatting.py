"""Value and label formatting for generated views.

Display values follow the console conventions: missing values render as an
em dash, dates as ``Feb 1, 2026, 11:58 AM`` (UTC), booleans as Yes/No.
"""

import json
import re
from datetime import UTC, date, datetime
from typing import Any

EMPTY_DISPLAY = "—"

_UPPER = re.compile(r"([A-Z])")


def stringify(value: Any) -> str:
    """Convert a scalar to text the way the console's path filters compare it.

    Booleans are ``true``/``false``, None is ``null`` and integral floats drop
    their fractional part, so ``@.ready=="true"`` matches a YAML boolean.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join("" if item is None else stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), default=str)
    if isinstance(value, datetime):
        return _iso(value)
    return str(value)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp (string or datetime) into an aware datetime.

    YAML loaders turn unquoted timestamps into ``datetime`` objects, so both
    forms are accepted. Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def format_date(value: Any) -> str:
    """Format a timestamp for display.

    Args:
        value: ISO string, datetime or None.

    Returns:
        ``Feb 1, 2026, 11:58 AM`` style text in UTC, an em dash for empty
        input, or the original text when it is not a timestamp.
    """
    if value is None or value == "":
        return EMPTY_DISPLAY
    parsed = parse_timestamp(value)
    if parsed is None:
        return str(value)
    parsed = parsed.astimezone(UTC)
    return f"{parsed:%b} {parsed.day}, {parsed.year}, {parsed:%I:%M %p}"


def format_column_value(value: Any, column_type: str) -> str:
    """Format a list cell according to its printer column type."""
    if value is None:
        return EMPTY_DISPLAY

    match column_type:
        case "date":
            return format_date(value)
        case "boolean":
            return "Yes" if value else "No"
        case "integer":
            return stringify(value)
        case _:
            return stringify(value)


def format_simple_value(value: Any) -> str:
    """Format a detail value: objects as compact JSON, scalars as text."""
    if value is None:
        return EMPTY_DISPLAY
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"), default=stringify)
    return stringify(value)


def pluralize(word: str) -> str:
    """Pluralize an English word using the common suffix rules."""
    if len(word) > 1 and word.endswith("y") and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z")):
        return word + "es"
    return word + "s"


def _split_kind(kind: str) -> list[str]:
    return _UPPER.sub(r" \1", kind).strip().split()


def kind_to_label(kind: str) -> str:
    """Convert a PascalCase kind to a plural sentence-case label.

    ``Certificate`` becomes ``Certificates``, ``ClusterIssuer`` becomes
    ``Cluster issuers``.
    """
    words = _split_kind(kind)
    if not words:
        return kind
    words[-1] = pluralize(words[-1])
    return " ".join(w if i == 0 else w.lower() for i, w in enumerate(words))


def kind_to_singular_label(kind: str) -> str:
    """Convert a PascalCase kind to a singular sentence-case label."""
    words = _split_kind(kind)
    if not words:
        return kind
    return " ".join(w if i == 0 else w.lower() for i, w in enumerate(words))


def field_name_to_label(name: str) -> str:
    """Convert a camelCase property name to a title label (``dnsNames`` -> ``Dns Names``)."""
    spaced = _UPPER.sub(r" \1", name)
    return (spaced[:1].upper() + spaced[1:]).strip()
