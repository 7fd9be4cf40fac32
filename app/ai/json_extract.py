"""Recover a JSON value from free-form model output.

Models wrap JSON in code fences, prepend chatter, or leave trailing commas.
``extract_json`` tries a fixed sequence of candidates and reports which one
parsed instead of raising, so callers can branch on ``ok``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_FENCED_RE = re.compile(r"```(?:json)?([\s\S]*?)```", re.IGNORECASE)
_FENCE_TOKEN_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_TAG_RE = re.compile(r"</?json>", re.IGNORECASE)
_LEADING_LABEL_RE = re.compile(r"^\s*json\s*:?\s*(?=[\[{])", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


@dataclass(frozen=True)
class JsonExtraction:
    ok: bool
    value: Any = None
    stage: str | None = None
    error: str | None = None


def _try_parse(candidate: str) -> tuple[bool, Any, str | None]:
    if not candidate:
        return False, None, "empty candidate"
    try:
        return True, json.loads(candidate), None
    except (json.JSONDecodeError, ValueError) as exc:
        return False, None, str(exc)


def _span(text: str, opener: str, closer: str) -> str | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def _primary_candidate(text: str) -> tuple[str, str]:
    fenced = _FENCED_RE.search(text)
    if fenced:
        return "fenced", fenced.group(1).strip()
    stripped = text.strip()
    # a bare array must not collapse into its first object
    if stripped.startswith("["):
        return "whole_text", stripped
    braces = _span(text, "{", "}")
    if braces is not None:
        return "brace_span", braces.strip()
    return "whole_text", stripped


def _clean(text: str) -> str:
    cleaned = _FENCE_TOKEN_RE.sub("", text)
    cleaned = _JSON_TAG_RE.sub("", cleaned)
    cleaned = _LEADING_LABEL_RE.sub("", cleaned)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return cleaned.strip()


def extract_json(text: str | None) -> JsonExtraction:
    if text is None or not text.strip():
        return JsonExtraction(ok=False, error="empty response")

    stage, candidate = _primary_candidate(text)
    ok, value, error = _try_parse(candidate)
    if ok:
        return JsonExtraction(ok=True, value=value, stage=stage)

    logger.info("json_extract_primary_failed stage=%s error=%s", stage, error)

    cleaned = _clean(text)
    retries = [("cleanup_whole", cleaned)]
    array_span = _span(cleaned, "[", "]")
    if array_span is not None:
        retries.append(("cleanup_array", array_span))
    object_span = _span(cleaned, "{", "}")
    if object_span is not None:
        retries.append(("cleanup_object", object_span))

    for retry_stage, retry_candidate in retries:
        ok, value, retry_error = _try_parse(retry_candidate)
        if ok:
            return JsonExtraction(ok=True, value=value, stage=retry_stage)
        error = retry_error or error

    logger.warning("json_extract_failed text_len=%s error=%s", len(text), error)
    return JsonExtraction(ok=False, error=error)
