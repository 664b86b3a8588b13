import json
import re
from typing import Any, Dict, List, Optional, Union

from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")


def parse_json_safely(text: Optional[str]) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from completion output, tolerating common formatting noise.

    Handles:
    - Markdown code fences (```json ... ```)
    - Leading/trailing whitespace
    - Prose before or after the first JSON object/array

    Args:
        text: Raw text returned by the completion service

    Returns:
        Parsed JSON value, or None when nothing parseable is found
    """
    if not text:
        return None

    cleaned_text = _CODE_FENCE.sub("", text.strip()).strip()
    if not cleaned_text:
        return None

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting recovery...")

    recovered = _decode_first_value(cleaned_text)
    if recovered is not None:
        LOGGER.info("Recovered JSON value embedded in surrounding text")
        return recovered

    LOGGER.error(
        "Failed to parse JSON from completion output",
        extra={"preview": cleaned_text[:200]},
    )
    return None


def _decode_first_value(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Decode the first complete JSON object or array found in text."""
    decoder = json.JSONDecoder()

    for idx, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value

    return None
