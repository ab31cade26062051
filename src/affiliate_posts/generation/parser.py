from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..logging import get_logger


LOG = get_logger("generation-parser")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)

_DEFAULTS = {"STRING": "", "ARRAY": list}


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing a provider reply: either `value` or `error` is set."""

    ok: bool
    value: Any = None
    error: Optional[str] = None
    raw: str = ""

    @classmethod
    def success(cls, value: Any, raw: str = "") -> "ParseResult":
        return cls(ok=True, value=value, raw=raw)

    @classmethod
    def failure(cls, error: str, raw: str = "") -> "ParseResult":
        return cls(ok=False, error=error, raw=raw)


def _extract_fenced_json(text: str) -> Optional[str]:
    """If the model wrapped JSON in ``` or ```json fences, return the inner content."""
    match = _FENCE_RE.search(text)
    if match and match.group(1):
        return match.group(1).strip()
    return None


def _first_json_value(text: str) -> Optional[Any]:
    """Decode the first well-formed JSON object or array embedded in `text`."""
    decoder = json.JSONDecoder()
    for index, ch in enumerate(text):
        if ch not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value
    return None


def extract_json(text: str) -> Optional[Any]:
    """Return the JSON carried by a reply, tolerating fences and surrounding prose."""
    if not text or not text.strip():
        return None
    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    fenced = _extract_fenced_json(stripped)
    if fenced:
        try:
            return json.loads(fenced)
        except json.JSONDecodeError:
            value = _first_json_value(fenced)
            if value is not None:
                return value

    return _first_json_value(stripped)


def _check_kind(value: Any, field_schema: Dict[str, Any], path: str) -> Optional[str]:
    kind = (field_schema.get("type") or "").upper()
    if kind == "STRING":
        if not isinstance(value, str):
            return f"{path} must be a string"
    elif kind == "ARRAY":
        if not isinstance(value, list):
            return f"{path} must be an array"
        item_schema = field_schema.get("items") or {}
        for idx, item in enumerate(value):
            problem = _check_kind(item, item_schema, f"{path}[{idx}]")
            if problem:
                return problem
    elif kind == "OBJECT":
        if not isinstance(value, dict):
            return f"{path} must be an object"
    return None


def validate(value: Any, schema: Dict[str, Any]) -> ParseResult:
    """Validate `value` against a reply schema.

    Objects: every required key must be present (and non-blank for strings);
    known keys must have the declared kind; absent optional keys get empty
    defaults. Arrays: every item must match `items`.
    """
    kind = (schema.get("type") or "").upper()
    if kind == "ARRAY":
        problem = _check_kind(value, schema, "reply")
        if problem:
            return ParseResult.failure(problem)
        return ParseResult.success(list(value))

    if not isinstance(value, dict):
        return ParseResult.failure("reply must be a JSON object")

    properties: Dict[str, Any] = schema.get("properties") or {}
    required: List[str] = list(schema.get("required") or [])
    missing = [
        key
        for key in required
        if key not in value or value[key] is None or (isinstance(value[key], str) and not value[key].strip())
    ]
    if missing:
        return ParseResult.failure(f"reply is missing required key(s): {', '.join(missing)}")

    normalized: Dict[str, Any] = {}
    for key, field_schema in properties.items():
        if key not in value or value[key] is None:
            default = _DEFAULTS.get((field_schema.get("type") or "").upper(), None)
            normalized[key] = default() if callable(default) else default
            continue
        problem = _check_kind(value[key], field_schema, key)
        if problem:
            return ParseResult.failure(problem)
        normalized[key] = value[key]
    return ParseResult.success(normalized)


def parse_reply(text: Optional[str], schema: Dict[str, Any]) -> ParseResult:
    """Parse a raw provider reply and validate it; never raises."""
    raw = text or ""
    data = extract_json(raw)
    if data is None:
        LOG.debug("Reply is not JSON (first 500 chars: %r)", raw[:500])
        return ParseResult.failure("reply is not valid JSON", raw=raw)
    result = validate(data, schema)
    if not result.ok:
        return ParseResult.failure(result.error or "invalid reply", raw=raw)
    return ParseResult.success(result.value, raw=raw)
