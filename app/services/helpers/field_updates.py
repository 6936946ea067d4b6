"""
Enumerated field maps for create / partial-update payloads.

Every writable resource declares an explicit ``{wire_key: Field}`` map.
``apply_fields`` copies only those keys onto the model, parsing each value
with its field's parser, and rejects any other key with a ValidationError
that lists the offenders. Nothing is ever copied by name from a request
body.

Usage:
    PROJECT_FIELDS = {
        "name": Field("name", text(max_len=200, required=True)),
        "businessImpact": Field("business_impact", int_range(1, 10)),
    }
    changes = apply_fields(project, data, PROJECT_FIELDS)
"""

import logging
from typing import Any, Callable, NamedTuple
from urllib.parse import urlparse

from app.core.exceptions import ValidationError
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


class Field(NamedTuple):
    attr: str
    parse: Callable[[str, Any], Any]


# ── Parsers ──────────────────────────────────────────────────────────────────
# Each factory returns parse(wire_key, value) -> python value.

def text(max_len=None, required=False):
    def parse(key, value):
        if value is None:
            if required:
                raise ValidationError(f"{key} is required", details={key: "required"})
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string", details={key: "invalid type"})
        value = value.strip()
        if required and not value:
            raise ValidationError(f"{key} is required", details={key: "required"})
        if max_len and len(value) > max_len:
            raise ValidationError(
                f"{key} must be at most {max_len} characters", details={key: "too long"},
            )
        return value or None
    return parse


def enum(allowed, required=True):
    def parse(key, value):
        if value is None and not required:
            return None
        normalised = str(value or "").upper()
        if normalised not in allowed:
            raise ValidationError(
                f"Invalid {key}: {value}",
                details={key: f"must be one of: {', '.join(allowed)}"},
            )
        return normalised
    return parse


def int_range(low, high):
    def parse(key, value):
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be an integer", details={key: "invalid type"})
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be an integer", details={key: "invalid type"})
        if number != value and str(number) != str(value).strip():
            raise ValidationError(f"{key} must be an integer", details={key: "invalid type"})
        if not low <= number <= high:
            raise ValidationError(
                f"{key} must be between {low} and {high}", details={key: f"range {low}-{high}"},
            )
        return number
    return parse


def number():
    def parse(key, value):
        if value in (None, ""):
            return None
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number", details={key: "invalid type"})
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be a number", details={key: "invalid type"})
    return parse


def non_negative_number():
    def parse(key, value):
        if value in (None, ""):
            return None
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number", details={key: "invalid type"})
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{key} must be a number", details={key: "invalid type"})
        if number < 0:
            raise ValidationError(f"{key} must be >= 0", details={key: "negative"})
        return number
    return parse


def url():
    def parse(key, value):
        if value in (None, ""):
            return None
        parsed = urlparse(str(value).strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"{key} must be a valid URL", details={key: "invalid url"})
        return str(value).strip()
    return parse


def date_field():
    def parse(key, value):
        return parse_date_input(value, field=key)
    return parse


def foreign_key(resolver):
    """Parser delegating to ``resolver(value, key)``, e.g. ``user_service.require_user``."""
    def parse(key, value):
        return resolver(value, key)
    return parse


# ── Application ──────────────────────────────────────────────────────────────

def reject_unknown_fields(data, field_map, extra_allowed=()):
    unknown = sorted(set(data) - set(field_map) - set(extra_allowed))
    if unknown:
        raise ValidationError(
            f"Unknown fields: {', '.join(unknown)}",
            details={k: "unknown field" for k in unknown},
        )


def apply_fields(obj, data, field_map, extra_allowed=()):
    """Copy the enumerated fields in ``data`` onto ``obj``.

    Args:
        obj: model instance to mutate.
        data: request payload (wire keys).
        field_map: ``{wire_key: Field}``.
        extra_allowed: wire keys the caller handles itself (not copied).

    Returns:
        list of (wire_key, old_value, new_value) for fields whose value changed.

    Raises:
        ValidationError: unknown keys or unparsable values. ``obj`` is left
            untouched when any key fails, since all values are parsed first.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    reject_unknown_fields(data, field_map, extra_allowed)

    parsed = {}
    for key, value in data.items():
        if key in field_map:
            parsed[key] = field_map[key].parse(key, value)

    changes = []
    for key, value in parsed.items():
        attr = field_map[key].attr
        old = getattr(obj, attr)
        if old != value:
            setattr(obj, attr, value)
            changes.append((key, old, value))
    return changes
