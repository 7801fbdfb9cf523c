"""Helpers for turning raw LLM output into plain JSON data.

Chat models wrap JSON in markdown fences, surround it with prose, leave
trailing commas and answer in camelCase. ``parse_llm_json_response`` accepts
all of that; ``normalize_keys`` maps the keys back onto the snake_case
schemas.
"""

import json
import re
from collections.abc import Iterator
from typing import Any

from studypath.core.logging import get_logger

logger = get_logger(__name__)

JSONData = dict[str, Any] | list[Any]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_FENCE = re.compile(r"```(?:json|javascript|js|text)?\s*\n(.*?)\n\s*```", re.DOTALL | re.IGNORECASE)
_CONTAINER_START = re.compile(r"[{\[]")
_decoder = json.JSONDecoder()


def _candidates(content: str) -> Iterator[tuple[str, str]]:
    """(source, text) pairs to decode whole, most literal first."""
    yield "response", content
    fence = _FENCE.search(content)
    if fence:
        yield "code block", fence.group(1)


def _decode_embedded(text: str) -> JSONData | None:
    """The first JSON object or array that decodes from inside ``text``."""
    for start in _CONTAINER_START.finditer(text):
        try:
            value, _ = _decoder.raw_decode(text, start.start())
        except json.JSONDecodeError:
            continue
        return value
    return None


def parse_llm_json_response(content: str | None) -> JSONData:
    """Parse an LLM response that should contain a JSON object or array.

    Raises:
        ValueError: If the content is empty or holds no decodable JSON.
    """
    if not content:
        raise ValueError("Empty LLM response")

    cleaned = _TRAILING_COMMA.sub(r"\1", content)
    for source, text in _candidates(cleaned):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, (dict, list)):
            if source != "response":
                logger.debug("Parsed JSON", source=source)
            return data

    data = _decode_embedded(cleaned)
    if data is not None:
        logger.debug("Parsed JSON", source="prose")
        return data

    logger.error("Failed to parse LLM JSON response", content_preview=content[:200])
    raise ValueError("Failed to parse LLM JSON response: no valid JSON found")


def to_snake_case(key: str) -> str:
    """``weeklyFocuses`` -> ``weekly_focuses``; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def normalize_keys(data: Any) -> Any:
    """Recursively convert camelCase mapping keys to snake_case.

    Models frequently answer with camelCase field names even when the prompt
    asks for snake_case.
    """
    if isinstance(data, dict):
        return {to_snake_case(str(k)): normalize_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [normalize_keys(v) for v in data]
    return data
