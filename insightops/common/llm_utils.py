"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Tuple

from .errors import ParseError

DEFAULT_CONFIDENCE = 0.5


def parse_llm_json(raw: str) -> dict:
    """Parse JSON from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict
    """
    if not raw:
        return {}

    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            parsed = json.loads(raw[start:end])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return {}


def _coerce_confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def parse_structured_answer(raw: str) -> Tuple[str, float]:
    """Strict decode of a ``{"answer": ..., "confidence": ...}`` reply.

    Raises:
        ParseError: If the reply carries no string ``answer`` field
    """
    data = parse_llm_json(raw)
    answer = data.get("answer")
    if not isinstance(answer, str):
        raise ParseError("Reply has no structured answer")
    return answer.strip(), _coerce_confidence(data.get("confidence", DEFAULT_CONFIDENCE))


def decode_answer(raw: str) -> Tuple[str, float]:
    """Decode a provider reply into (answer, confidence).

    Falls back to the raw text with confidence 0.5 when the reply is not
    structured; decoding never raises.
    """
    try:
        return parse_structured_answer(raw)
    except ParseError:
        return (raw or "").strip(), DEFAULT_CONFIDENCE
