"""Shared parsing helpers for config, environment and snapshot value normalization."""

from __future__ import annotations

from collections.abc import Sequence


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def parse_required_boolean(value: object, field_name: str) -> bool:
    """Parse a required boolean value from accepted textual tokens.

    Raises:
        ValueError: If the token is not one of the accepted boolean values.
    """

    parsed = parse_permissive_boolean(value)
    if parsed is not None:
        return parsed

    raise ValueError(
        f"`{field_name}` must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)."
    )


def parse_positive_int(value: object, field_name: str) -> int:
    """Parse a strictly positive integer, rejecting booleans and fractions."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive integer.")
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`{field_name}` must be a positive integer.") from exc
    if parsed <= 0:
        raise ValueError(f"`{field_name}` must be a positive integer.")
    return parsed


def parse_non_negative_float(value: object, field_name: str) -> float:
    """Parse a float that must be zero or greater."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`{field_name}` must be a non-negative number.") from exc
    if parsed < 0.0:
        raise ValueError(f"`{field_name}` must be a non-negative number.")
    return parsed


def parse_delay_schedule(value: object, field_name: str) -> tuple[float, ...]:
    """Parse a retry delay schedule from a list or a comma-separated string.

    Raises:
        ValueError: If the schedule is empty or contains negative entries.
    """

    if isinstance(value, str):
        raw_items: Sequence[object] = [item for item in value.split(",") if item.strip()]
    elif isinstance(value, Sequence):
        raw_items = value
    else:
        raise ValueError(f"`{field_name}` must be a list of delays in seconds.")

    delays = tuple(parse_non_negative_float(item, field_name) for item in raw_items)
    if not delays:
        raise ValueError(f"`{field_name}` must contain at least one delay.")
    return delays


def parse_status_codes(value: object, field_name: str) -> frozenset[int]:
    """Parse HTTP status codes from a list or a comma-separated string."""

    if isinstance(value, str):
        raw_items: Sequence[object] = [item for item in value.split(",") if item.strip()]
    elif isinstance(value, Sequence):
        raw_items = value
    else:
        raise ValueError(f"`{field_name}` must be a list of HTTP status codes.")

    codes = frozenset(parse_positive_int(item, field_name) for item in raw_items)
    if any(code < 100 or code > 599 for code in codes):
        raise ValueError(f"`{field_name}` entries must be HTTP status codes (100-599).")
    return codes
