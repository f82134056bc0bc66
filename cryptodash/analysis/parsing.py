from __future__ import annotations

import json
import math
import re
from typing import Any

from cryptodash.data.models import Decision, ParsedRecommendation

DEFAULT_CONFIDENCE = 50
MAX_EXPLANATION_CHARS = 400

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def normalize_decision(raw: str) -> Decision:
    upper = raw.upper()
    if "BUY" in upper and "NOT" not in upper:
        return Decision.BUY
    return Decision.DO_NOT_BUY


def clamp_confidence(raw: Any) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if math.isnan(value) or value == 0:
        return DEFAULT_CONFIDENCE
    return int(round(min(100.0, max(1.0, value))))


def _extract_json(content: str) -> dict[str, Any] | None:
    candidates = [content.strip()]
    match = _JSON_OBJECT_RE.search(content)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def keyword_decision(content: str) -> Decision:
    lower = content.lower()
    if "buy" in lower and "do not" not in lower and "don't" not in lower:
        return Decision.BUY
    return Decision.DO_NOT_BUY


def parse_recommendation(content: str) -> ParsedRecommendation:
    """Parse a completion reply into a recommendation. Never raises.

    A JSON object carrying ``decision`` and ``explanation`` is used as-is
    after normalizing. Anything else falls back to keyword detection with
    the default confidence and the reply text, cut to 400 characters, as
    the explanation.
    """
    parsed = _extract_json(content)
    if parsed is not None:
        decision = parsed.get("decision")
        explanation = parsed.get("explanation")
        if isinstance(decision, str) and decision.strip() and isinstance(explanation, str) and explanation.strip():
            return ParsedRecommendation(
                decision=normalize_decision(decision),
                confidence=clamp_confidence(parsed.get("confidence")),
                explanation=explanation.strip(),
            )
    return ParsedRecommendation(
        decision=keyword_decision(content),
        confidence=DEFAULT_CONFIDENCE,
        explanation=content[:MAX_EXPLANATION_CHARS],
    )
