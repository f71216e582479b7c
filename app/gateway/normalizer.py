"""Response Normalizer — turns raw completion text into stable JSON objects.

Applies, in order:
  - HTML detection (proxy/error pages) → fixed "temporarily unavailable" structure
  - Fenced code block extraction (```json ... ```)
  - Raw object match (non-greedy, widened to outermost braces on failure)
  - Plain-text wrap into the research shape

Agent-specific shaping on top of that:
  - Matrix field repair (missing headline / tagline / key_messages ...)
  - Maven field coercion (capitalized aliases, grounding citations as sources)

Everything here is pure and deterministic: the same text always yields the
same object.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_HTML_PATTERN = re.compile(r"<!doctype|<html", re.IGNORECASE)
_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*?\}")

DEFAULT_RESEARCH_TITLE = "Research Results"
DEFAULT_RESEARCH_SUMMARY = "Summary of research findings on the requested topic."

MATRIX_PLACEHOLDERS = {
    "headline": "Compelling Headline",
    "tagline": "Engaging Tagline",
    "value_proposition": "Value proposition highlighting benefits.",
    "call_to_action": "Take action now.",
}

# canonical field → accepted source keys, in priority order
_MATRIX_ALIASES: dict[str, tuple[str, ...]] = {
    "headline": ("headline", "title"),
    "tagline": ("tagline", "subheadline", "subtitle"),
    "value_proposition": ("value_proposition", "valueProposition"),
    "call_to_action": ("call_to_action", "callToAction"),
}

_RESEARCH_TEXT_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "Title"),
    "summary": ("summary", "Summary"),
    "analysis": ("analysis", "Analysis"),
}

_RESEARCH_LIST_ALIASES: dict[str, tuple[str, ...]] = {
    "key_findings": ("key_findings", "Key Findings", "keyFindings"),
    "trends": ("trends", "Trends", "Market Trends", "market_trends"),
    "recommendations": ("recommendations", "Recommendations"),
    "sources": ("sources", "Sources"),
}

_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class ResponseValidationError(ValueError):
    """Content is unusable without substitution or repair (strict mode)."""


@dataclass
class NormalizedContent:
    """Result of normalizing one completion text."""

    data: dict[str, Any]
    degraded: bool = False  # wrapped, repaired or substituted
    html: bool = False  # upstream answered with an HTML page


# ---------------------------------------------------------------------------
# Generic extraction
# ---------------------------------------------------------------------------


def is_html(text: str) -> bool:
    """True if the text looks like an HTML document (proxy or error page)."""
    return bool(text) and _HTML_PATTERN.search(text) is not None


def _try_parse(candidate: str) -> Any | None:
    try:
        return json.loads(candidate)
    except ValueError:
        return None


def extract_json_payload(text: str) -> Any | None:
    """Find the JSON value embedded in completion text.

    Returns the parsed value (usually a dict) or None if nothing parses.
    """
    if not text or not text.strip():
        return None

    for match in _FENCE_PATTERN.finditer(text):
        parsed = _try_parse(match.group(1))
        if parsed is not None:
            return parsed

    stripped = text.strip()
    parsed = _try_parse(stripped)
    if parsed is not None:
        return parsed

    match = _OBJECT_PATTERN.search(stripped)
    if match is None:
        return None
    parsed = _try_parse(match.group(0))
    if parsed is not None:
        return parsed

    # Nested objects: the non-greedy match stops at the first inner brace
    start, end = stripped.find("{"), stripped.rfind("}")
    if start != -1 and end > start:
        return _try_parse(stripped[start : end + 1])
    return None


def wrap_plain_text(text: str) -> dict[str, Any]:
    """Wrap non-JSON text into the research shape; the raw text becomes ``analysis``."""
    return {
        "title": DEFAULT_RESEARCH_TITLE,
        "summary": DEFAULT_RESEARCH_SUMMARY,
        "key_findings": [],
        "trends": [],
        "analysis": text,
        "recommendations": [],
        "sources": [],
    }


def unavailable_research_result(prompt: str) -> dict[str, Any]:
    """Fixed structure returned when the upstream answers with an HTML page."""
    return {
        "title": f"Research: {prompt[:40]}...",
        "summary": "Our research system is experiencing temporary issues.",
        "key_findings": [
            "The research service received HTML instead of structured data",
            "This is usually a temporary issue with the upstream service",
            "Please try your research query again in a few minutes",
        ],
        "trends": [],
        "analysis": (
            "The research system is currently unable to provide detailed analysis "
            "due to a temporary service disruption. Please try again shortly."
        ),
        "recommendations": [
            "Try again in a few minutes",
            "Use a more specific research query",
            "Contact support if the issue persists",
        ],
        "sources": [],
    }


def normalize_content(text: str, prompt: str = "", strict: bool = False) -> NormalizedContent:
    """Turn completion text into a JSON object.

    In strict mode HTML pages and non-JSON text raise ResponseValidationError
    instead of being substituted or wrapped.
    """
    if is_html(text):
        if strict:
            raise ResponseValidationError("Upstream returned an HTML page instead of JSON")
        logger.warning("HTML content received from upstream — substituting unavailable structure")
        return NormalizedContent(data=unavailable_research_result(prompt), degraded=True, html=True)

    payload = extract_json_payload(text)
    if isinstance(payload, dict):
        return NormalizedContent(data=payload)

    if strict:
        raise ResponseValidationError("Upstream content is not a JSON object")
    logger.info("Non-JSON content received (%d chars) — wrapping as plain text", len(text or ""))
    return NormalizedContent(data=wrap_plain_text(text or ""), degraded=True)


# ---------------------------------------------------------------------------
# Agent-specific shaping
# ---------------------------------------------------------------------------


def _first_text(obj: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _split_lines(text: str) -> list[str]:
    items = []
    for line in text.splitlines():
        cleaned = _BULLET_PREFIX.sub("", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


def repair_matrix_response(obj: dict[str, Any], strict: bool = False) -> tuple[dict[str, Any], bool]:
    """Fill in missing messaging fields.

    Returns (repaired object, degraded). ``headline`` is always a non-empty
    string and ``key_messages`` is always a list afterwards.
    """
    result = dict(obj)
    degraded = False
    invented: list[str] = []

    for field, aliases in _MATRIX_ALIASES.items():
        value = _first_text(obj, aliases)
        if value is None:
            value = MATRIX_PLACEHOLDERS[field]
            invented.append(field)
        result[field] = value

    raw_messages = obj.get("key_messages", obj.get("keyMessages"))
    if isinstance(raw_messages, list):
        result["key_messages"] = raw_messages
    elif isinstance(raw_messages, str):
        result["key_messages"] = _split_lines(raw_messages)
        degraded = True
    else:
        result["key_messages"] = []
        invented.append("key_messages")

    if invented:
        if strict:
            raise ResponseValidationError(f"Messaging response missing fields: {', '.join(invented)}")
        logger.info("Matrix response repaired, filled: %s", ", ".join(invented))
        degraded = True

    result.pop("keyMessages", None)
    return result, degraded


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return _split_lines(value)
    return [value]


def _normalize_source(source: Any) -> Any:
    if isinstance(source, str) and source.startswith(("http://", "https://")):
        return {"title": source, "url": source}
    return source


def coerce_research_result(obj: dict[str, Any], citations: list[dict[str, str]] | None = None) -> dict[str, Any]:
    """Coerce a research object to the fixed research shape.

    Sources missing from the model output are taken from grounding citations.
    """
    result: dict[str, Any] = {
        "title": _first_text(obj, _RESEARCH_TEXT_ALIASES["title"]) or DEFAULT_RESEARCH_TITLE,
        "summary": _first_text(obj, _RESEARCH_TEXT_ALIASES["summary"]) or DEFAULT_RESEARCH_SUMMARY,
    }

    for field, aliases in _RESEARCH_LIST_ALIASES.items():
        value = None
        for key in aliases:
            if key in obj:
                value = obj[key]
                break
        result[field] = _as_list(value)

    result["analysis"] = _first_text(obj, _RESEARCH_TEXT_ALIASES["analysis"]) or ""
    result["sources"] = [_normalize_source(s) for s in result["sources"]]
    if not result["sources"] and citations:
        result["sources"] = [dict(c) for c in citations]

    # Keep the documented key order stable for serialization
    ordered = ("title", "summary", "key_findings", "trends", "analysis", "recommendations", "sources")
    return {key: result[key] for key in ordered}
