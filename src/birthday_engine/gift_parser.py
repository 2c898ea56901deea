from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from birthday_engine.gift_prompt import build_search_url
from birthday_engine.models import GiftSuggestion

LOGGER = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


class SuggestionParseError(ValueError):
    pass


def _load_array(text: str) -> list[Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


def extract_direct(text: str) -> list[Any] | None:
    return _load_array(text.strip())


def extract_fenced(text: str) -> list[Any] | None:
    match = _FENCE_RE.search(text)
    if match is None:
        return None
    return _load_array(match.group(1).strip())


def _first_bracket_span(text: str) -> str | None:
    start = text.find("[")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_bracket_span(text: str) -> list[Any] | None:
    span = _first_bracket_span(text)
    if span is None:
        return None
    return _load_array(span)


EXTRACTORS: tuple[Callable[[str], list[Any] | None], ...] = (
    extract_direct,
    extract_fenced,
    extract_bracket_span,
)


def extract_suggestion_items(text: str) -> list[Any]:
    for extractor in EXTRACTORS:
        items = extractor(text)
        if items is not None:
            return items
    raise SuggestionParseError("Could not parse gift suggestions from AI response")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def sanitize_suggestions(items: list[Any], country: str | None) -> list[GiftSuggestion]:
    suggestions: list[GiftSuggestion] = []
    for item in items:
        if not isinstance(item, dict):
            LOGGER.warning("Dropping non-object gift suggestion: %.200r", item)
            continue

        name = _as_text(item.get("name"))
        # Model-supplied links are never trusted.
        suggestions.append(
            GiftSuggestion(
                name=name,
                description=_as_text(item.get("description")),
                estimated_price=_as_text(item.get("estimatedPrice")),
                purchase_url=build_search_url(name, country),
            )
        )
    return suggestions


def parse_gift_response(text: str, country: str | None) -> list[GiftSuggestion]:
    return sanitize_suggestions(extract_suggestion_items(text), country)
