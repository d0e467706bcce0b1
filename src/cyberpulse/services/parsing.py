"""Parsing of free-form AI completions into structured fields."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping

logger = logging.getLogger(__name__)

__all__ = ["ParseKind", "ParsedResponse", "extract_json_object", "parse_ai_response"]

_FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCED_RE = re.compile(r"```\s*([\s\S]*?)\s*```")


class ParseKind(str, Enum):
    STRUCTURED = "structured"
    HEURISTIC = "heuristic"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ParsedResponse:
    kind: ParseKind
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return self.kind is ParseKind.DEGRADED


def _loads_object(candidate: str) -> Dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: str) -> Dict[str, Any] | None:
    """Return the JSON object embedded in ``text`` or ``None``.

    Tries a fenced block first, then the whole text, then the slice between the
    first ``{`` and the last ``}``.
    """

    if not text:
        return None

    match = _FENCED_JSON_RE.search(text) or _FENCED_RE.search(text)
    if match:
        parsed = _loads_object(match.group(1))
        if parsed is not None:
            return parsed

    parsed = _loads_object(text.strip())
    if parsed is not None:
        return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return _loads_object(text[start : end + 1])
    return None


def parse_ai_response(
    text: str | None,
    heuristic: Callable[[str], Dict[str, Any]],
    defaults: Mapping[str, Any],
) -> ParsedResponse:
    """Turn an AI completion into a :class:`ParsedResponse`; never raises.

    ``heuristic`` scans the raw text when no JSON object can be recovered. When
    there is no text at all, or the heuristic itself fails, ``defaults`` are
    returned with :attr:`ParseKind.DEGRADED`.
    """

    if not text or not text.strip():
        return ParsedResponse(ParseKind.DEGRADED, dict(defaults))

    structured = extract_json_object(text)
    if structured is not None:
        return ParsedResponse(ParseKind.STRUCTURED, structured)

    logger.warning("Failed to parse JSON from AI response, using fallback parsing")
    try:
        return ParsedResponse(ParseKind.HEURISTIC, dict(heuristic(text)))
    except Exception as exc:  # noqa: BLE001 - the fallback must never escape
        logger.warning("Heuristic parsing of AI response failed: %s", exc)
        return ParsedResponse(ParseKind.DEGRADED, dict(defaults))
