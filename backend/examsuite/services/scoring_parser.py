"""
Parsing helpers for scorer output.

Pure functions only: they turn whatever text the model returned into a
validated `(score_100, review)` pair or raise `ScoreParseError`. Keeping them
free of I/O lets them be exercised against malformed and truncated text
without touching the network.
"""

import json
import math
import re
from typing import Any, Tuple

MAX_REVIEW_SENTENCES = 3
DEFAULT_REVIEW = "No review provided"

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SCORE_TEXT = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:/\s*100)?\s*%?\s*$")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class ScoreParseError(ValueError):
    """The scorer answered, but not with something we can use."""


def coerce_raw_output(payload: Any) -> str:
    """
    Flatten the response shapes text-generation endpoints commonly return
    into a single string: plain text, `[{"generated_text": ...}]`,
    `{"generated_text": ...}`, chat-completion `choices[0].message.content`,
    or a direct `{"score": ..., "review": ...}` object.
    """
    if payload is None:
        raise ScoreParseError("Empty response from scorer")
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        if not payload:
            raise ScoreParseError("Empty response list from scorer")
        return coerce_raw_output(payload[0])
    if isinstance(payload, dict):
        if isinstance(payload.get("generated_text"), str):
            return payload["generated_text"]
        choices = payload.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0] or {}
            message = first.get("message") or {}
            if isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(first.get("text"), str):
                return first["text"]
        return json.dumps(payload)
    raise ScoreParseError(f"Unexpected response type from scorer: {type(payload).__name__}")


def find_json_object(raw: str) -> str:
    """Return the first balanced `{...}` span in `raw`, ignoring braces inside strings."""
    start = raw.find("{")
    if start == -1:
        raise ScoreParseError("No JSON object found in scorer response")

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(raw)):
        ch = raw[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return raw[start:pos + 1]

    raise ScoreParseError("Unbalanced JSON object in scorer response (truncated?)")


def extract_json(raw: str) -> dict:
    """Parse the first JSON object embedded in free-form model text."""
    if not isinstance(raw, str):
        raise ScoreParseError("Scorer response is not text")
    span = _TRAILING_COMMA.sub(r"\1", find_json_object(raw))
    try:
        parsed = json.loads(span)
    except json.JSONDecodeError as e:
        raise ScoreParseError(f"Invalid JSON in scorer response: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise ScoreParseError("Scorer JSON is not an object")
    return parsed


def normalize_score(value: Any) -> int:
    """Accept `72`, `72.5`, `"72"` or `"72/100"`; clamp to 0..100 and round half up."""
    if isinstance(value, bool) or value is None:
        raise ScoreParseError(f"Missing or non-numeric score: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _SCORE_TEXT.match(value)
        if not match:
            raise ScoreParseError(f"Unrecognised score format: {value!r}")
        number = float(match.group(1))
    else:
        raise ScoreParseError(f"Unrecognised score type: {type(value).__name__}")

    if math.isnan(number) or math.isinf(number):
        raise ScoreParseError("Score is not a finite number")
    number = max(0.0, min(100.0, number))
    return int(math.floor(number + 0.5))


def truncate_sentences(text: str, limit: int = MAX_REVIEW_SENTENCES) -> str:
    sentences = [s for s in _SENTENCE_END.split(text.strip()) if s]
    return " ".join(sentences[:limit])


def parse_scorer_output(raw: str) -> Tuple[int, str]:
    """Raw model text -> (score 0..100, review of at most three sentences)."""
    parsed = extract_json(raw)
    score = normalize_score(parsed.get("score"))
    review = parsed.get("review")
    if isinstance(review, str) and review.strip():
        review = truncate_sentences(" ".join(review.split()))
    else:
        review = DEFAULT_REVIEW
    return score, review
