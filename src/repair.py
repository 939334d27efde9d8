"""
JSON repair and safe parsing for model output.

Models emit near-valid JSON: truncated objects, trailing commas, comments,
single quotes, unquoted keys. Heuristic repair is delegated to json_repair;
this module validates its output and wraps it in a parse-with-fallback service.
"""

import json
from typing import Any, Optional, Tuple

from json_repair import repair_json

from diagnostics import NullLogger, truncate_for_log


def repair_json_text(text: str) -> Tuple[str, bool]:
    """Repair near-valid JSON. Returns (repaired, True) or (text, False)."""
    if not text or not text.strip():
        return text, False
    try:
        repaired = repair_json(text)
    except Exception:
        return text, False
    if not isinstance(repaired, str) or not repaired.strip():
        return text, False
    try:
        value = json.loads(repaired)
    except (ValueError, RecursionError):
        return text, False
    # json_repair collapses unrecoverable input to an empty string
    if value == "" and text.strip() not in ('""', "''"):
        return text, False
    return repaired, True


def is_complete_json(text: str) -> bool:
    """True when text is an object/array with balanced braces, brackets and strings."""
    text = (text or "").strip()
    if not text or text[0] not in "{[":
        return False
    brace_depth = 0
    bracket_depth = 0
    in_string = False
    escape = False
    for c in text:
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == '"':
                in_string = False
            continue
        if c == '"':
            in_string = True
        elif c == "{":
            brace_depth += 1
        elif c == "}":
            brace_depth -= 1
        elif c == "[":
            bracket_depth += 1
        elif c == "]":
            bracket_depth -= 1
    return brace_depth == 0 and bracket_depth == 0 and not in_string


def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first top-level {...} in text, or the unterminated remainder.

    Braces inside quoted strings are ignored and backslash escapes are honored.
    Returns None when text has no '{' at all.
    """
    if not text:
        return None
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        c = text[i]
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == '"':
                in_string = False
            continue
        if c == '"':
            in_string = True
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    # Still open: hand back what we have (in-progress stream)
    return text[start:]


def _matches_shape(value: Any, expected_type) -> bool:
    if expected_type is None or expected_type is object:
        return True
    return isinstance(value, expected_type)


class JsonRepairService:
    """Parse JSON with a repair-then-retry fallback. Never raises for bad input."""

    def __init__(self, logger=None):
        self.logger = logger or NullLogger()

    def try_parse_strict(self, text: str, expected_type=dict) -> Tuple[Any, bool]:
        """Parse without repair. Returns (value, True) or (None, False)."""
        if not isinstance(text, str) or not text.strip():
            return None, False
        try:
            value = json.loads(text)
        except (ValueError, RecursionError) as e:
            # ValueError also covers integer literals past the digit limit
            self.logger.debug(f"JSON parse failed without repair: {e}")
            return None, False
        if not _matches_shape(value, expected_type):
            self.logger.debug(
                f"JSON parsed to {type(value).__name__}, expected {expected_type.__name__}"
            )
            return None, False
        return value, True

    def try_repair(self, text: str) -> Tuple[str, bool]:
        repaired, ok = repair_json_text(text)
        if ok:
            self.logger.debug("Successfully repaired JSON")
        else:
            self.logger.debug(f"Failed to repair JSON: {truncate_for_log(text)}")
        return repaired, ok

    def safe_parse(self, text: str, fallback: Any = None, expected_type=dict) -> Any:
        """Parse text into expected_type, repairing it if needed; fallback on failure."""
        if not isinstance(text, str) or not text.strip():
            self.logger.debug("Empty JSON string, returning fallback")
            return fallback

        value, ok = self.try_parse_strict(text, expected_type)
        if ok:
            return value

        repaired, ok = self.try_repair(text)
        if not ok:
            self.logger.warning(
                f"Failed to parse JSON even after repair attempt: {truncate_for_log(text)}"
            )
            return fallback
        if repaired != text:
            self.logger.debug(
                f"JSON was repaired (original length {len(text)}, repaired length {len(repaired)})"
            )

        value, ok = self.try_parse_strict(repaired, expected_type)
        if ok:
            return value
        self.logger.warning(
            f"Repaired JSON has the wrong shape: {truncate_for_log(repaired)}"
        )
        return fallback
