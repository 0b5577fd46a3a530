"""
normalizer.py — SamvidhanAI
Turns raw model output into a (response, citations, disclaimer) triple.

The model is asked for a JSON object but may wrap it in a ```json fence, add
prose, or return something else entirely. normalize() never raises: it yields
either Parsed or Fallback, and the Fallback triple is always usable.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from legal_catalog import MatchResult

logger = logging.getLogger("samvidhan.normalizer")

GENERIC_DISCLAIMER = "Disclaimer: AI generated advice. Consult a lawyer."
PLACEHOLDER_CITATIONS = ("Indian Law",)
EMPTY_OUTPUT_TEXT = "The AI service returned an empty answer. Please rephrase your question or try again."

_FENCE_OPEN = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```\s*$")


@dataclass(frozen=True)
class NormalizedResponse:
    response_text: str
    citations: list[str] = field(default_factory=list)
    disclaimer: str = GENERIC_DISCLAIMER


@dataclass(frozen=True)
class Parsed:
    result: NormalizedResponse


@dataclass(frozen=True)
class Fallback:
    raw_text: str
    reason: str
    result: NormalizedResponse


Normalized = Union[Parsed, Fallback]


def strip_code_fence(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` if present."""
    if text is None:
        return ""
    stripped = _FENCE_OPEN.sub("", text, count=1)
    stripped = _FENCE_CLOSE.sub("", stripped, count=1)
    return stripped.strip()


def _parse_payload(text: str) -> tuple[Optional[NormalizedResponse], str]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError, RecursionError) as exc:
        return None, f"invalid JSON: {exc}"

    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"

    response = data.get("response")
    if not isinstance(response, str) or not response.strip():
        return None, "missing or empty 'response'"

    citations = data.get("citations")
    if citations is None:
        citations = []
    elif not isinstance(citations, list):
        return None, "'citations' is not a list"

    disclaimer = data.get("disclaimer")
    if not isinstance(disclaimer, str) or not disclaimer.strip():
        disclaimer = GENERIC_DISCLAIMER

    return NormalizedResponse(
        response_text=response,
        citations=[c if isinstance(c, str) else json.dumps(c) for c in citations],
        disclaimer=disclaimer,
    ), ""


def fallback_for(raw_text: str, match: Optional[MatchResult], reason: str) -> Fallback:
    if match is not None and match.matched:
        citations = list(match.topic.citations)
    else:
        citations = list(PLACEHOLDER_CITATIONS)
    text = raw_text if raw_text and raw_text.strip() else EMPTY_OUTPUT_TEXT
    return Fallback(
        raw_text=raw_text or "",
        reason=reason,
        result=NormalizedResponse(response_text=text, citations=citations, disclaimer=GENERIC_DISCLAIMER),
    )


def normalize(raw_text: Optional[str], match: Optional[MatchResult] = None) -> Normalized:
    cleaned = strip_code_fence(raw_text or "")
    parsed, reason = _parse_payload(cleaned)
    if parsed is not None:
        return Parsed(parsed)

    logger.warning("Model output not in expected shape (%s); using fallback", reason)
    return fallback_for(raw_text or "", match, reason)
