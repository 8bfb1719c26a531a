"""Structured model output parsing"""

import json
import re
from typing import Any, Dict

from pitchintel.llm.errors import MalformedModelOutputError

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of model output

    Tolerates surrounding markdown code fences.

    Raises:
        MalformedModelOutputError: output is empty, not JSON, or not an object
    """
    cleaned = _FENCE.sub("", (text or "").strip())
    if not cleaned:
        raise MalformedModelOutputError("Model returned empty output", text or "")

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(f"Model output is not valid JSON: {e}", text) from e

    if not isinstance(payload, dict):
        raise MalformedModelOutputError("Model output is not a JSON object", text)
    return payload
