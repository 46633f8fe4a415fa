"""Locate and decode the JSON object embedded in raw model output."""

from __future__ import annotations

import json
from typing import Any, Dict, cast

EXCERPT_LIMIT = 500


class ExtractionError(ValueError):
    """Raised when model output does not hold a usable JSON object."""

    def __init__(self, reason: str, raw_text: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw_text = raw_text

    @property
    def excerpt(self) -> str:
        if len(self.raw_text) <= EXCERPT_LIMIT:
            return self.raw_text
        return self.raw_text[:EXCERPT_LIMIT] + "..."

    def __str__(self) -> str:
        return self.reason


def extract_json_object(raw: str) -> Dict[str, Any]:
    """Return the JSON object found between the first ``{`` and last ``}``.

    Models wrap JSON in prose or markdown fences even when asked not to, so
    the slice between the outermost braces is decoded. When no such slice
    exists the whole text is decoded instead.
    """
    candidate = raw
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end != -1 and end > start:
        candidate = raw[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"JSON parse failed: {exc.msg}", raw) from exc
    if not isinstance(payload, dict):
        raise ExtractionError(
            f"Expected a JSON object, got {type(payload).__name__}", raw
        )
    return cast(Dict[str, Any], payload)
