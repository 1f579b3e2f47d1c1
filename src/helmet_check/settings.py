"""Sanitize loosely-typed request settings and metadata."""

import json
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any

from helmet_check.models import ProjectSettings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9_\- ]")
_UNSAFE_LOCATION_CHARS_RE = re.compile(r"[^a-zA-Z0-9_\- ,./]")

SUPPORTED_OUTPUT_FORMATS = frozenset({"pdf"})

# attribute -> (payload key, min, max, integral)
_NUMERIC_FIELDS: dict[str, tuple[str, float, float, bool]] = {
    "confidence": ("confidence", 0.05, 1.0, False),
    "gemini_weight": ("geminiWeight", 0.0, 1.0, False),
    "grok_weight": ("grokWeight", 0.0, 1.0, False),
    "max_file_size": ("maxFileSize", 50, 15000, True),
    "max_width": ("maxWidth", 300, 15000, True),
    "max_height": ("maxHeight", 200, 15000, True),
}

# attribute -> payload key
_STRING_FIELDS: dict[str, str] = {
    "project_tag": "projectTag",
    "gemini_prompt": "geminiPrompt",
    "grok_prompt": "grokPrompt",
    "output_format": "outputFormat",
}


def sanitize_settings(payload: Any, defaults: ProjectSettings) -> ProjectSettings:
    """Validate a settings payload field by field.

    ``payload`` may be a JSON string, a mapping or anything else. A field that is
    missing, of the wrong type or out of range takes the value from ``defaults``;
    it is never clamped to the nearest bound. This function does not raise.
    """
    raw = _load_payload(payload)
    if not raw:
        return defaults

    updates: dict[str, Any] = {}
    for attr, (key, low, high, integral) in _NUMERIC_FIELDS.items():
        value = _sanitize_number(raw.get(key), low, high, integral)
        if value is not None:
            updates[attr] = value
    for attr, key in _STRING_FIELDS.items():
        value = _sanitize_string(raw.get(key))
        if value is not None:
            updates[attr] = value

    if updates.get("output_format") not in SUPPORTED_OUTPUT_FORMATS:
        updates.pop("output_format", None)

    return replace(defaults, **updates)


def sanitize_optional_date(value: Any) -> float | None:
    """Parse an epoch-millisecond timestamp; anything else becomes None."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        num = float(value)
    except ValueError:
        return None
    if not math.isfinite(num) or num < 0:
        return None
    return num


def sanitize_optional_location(value: Any) -> str | None:
    """Strip a free-text location down to a safe character set."""
    if not isinstance(value, str):
        return None
    sanitized = _UNSAFE_LOCATION_CHARS_RE.sub("", value).strip()
    return sanitized or None


def generate_project_name(project_tag: str, now: datetime | None = None) -> str:
    """Build a project name of the form ``YYMMDD-HHMMSS-<tag>``.

    Example:
        generate_project_name("API") -> "241214-153045-API"
    """
    now = now or datetime.now()
    return f"{now:%y%m%d-%H%M%S}-{project_tag}"


def _load_payload(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, Mapping):
        return payload
    if not isinstance(payload, (str, bytes)):
        return {}
    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError):
        logger.warning("Failed to parse settings payload, using defaults")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _sanitize_number(value: Any, low: float, high: float, integral: bool) -> float | int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if not math.isfinite(value) or not low <= value <= high:
        return None
    if integral:
        if value != int(value):
            return None
        return int(value)
    return float(value)


def _sanitize_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    sanitized = _UNSAFE_CHARS_RE.sub("", value).strip()
    return sanitized or None
