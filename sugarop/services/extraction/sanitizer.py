"""Best-effort isolation of a JSON object inside free-form model output."""

import re
from typing import Optional

from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

_JSON_FENCE = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE = re.compile(r"```\s*")


def clean_json(raw_text: Optional[str]) -> Optional[str]:
    """Return the substring from the first ``{`` to the last ``}``.

    Markdown code fences are stripped first. Only brace bounding is checked;
    whether the result actually parses is left to the caller.

    Args:
        raw_text: Raw model response text

    Returns:
        The brace-bounded substring, or None if no object braces were found
    """
    if not raw_text:
        return None

    cleaned = _FENCE.sub("", _JSON_FENCE.sub("", raw_text)).strip()

    first_brace = cleaned.find("{")
    last_brace = cleaned.rfind("}")

    if first_brace == -1 or last_brace == -1 or last_brace < first_brace:
        LOGGER.warning("No valid JSON object braces found in model response")
        return None

    return cleaned[first_brace:last_brace + 1]
