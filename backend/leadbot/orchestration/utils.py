"""
Utility functions for parsing structured LLM replies.
"""
import json
import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from leadbot.core.logging import logger

ModelT = TypeVar("ModelT", bound=BaseModel)

FENCED_BLOCK_PATTERNS = [
    r'```json\s*([\s\S]*?)\s*```',
    r'```\s*([\s\S]*?)\s*```',
]


def _loads_dict(text: str) -> Optional[Dict[str, Any]]:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def _balanced_object(content: str) -> Optional[str]:
    """First {...} span with balanced braces, ignoring braces inside strings."""
    start = content.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(content)):
        char = content[i]
        if escaped:
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif not in_string:
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return content[start:i + 1]
    return None


def _strip_trailing_commas(json_str: str) -> str:
    return re.sub(r',\s*([}\]])', r'\1', json_str)


def extract_json_from_llm_response(content: str) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from an LLM reply.

    Tries, in order: the whole reply, a fenced code block, the first
    balanced {...} span, and that span with trailing commas removed.
    Returns None when the reply holds no object; that is normal for
    free-text replies and is not logged.
    """
    if not content:
        return None

    content = content.strip()

    result = _loads_dict(content)
    if result is not None:
        return result

    for pattern in FENCED_BLOCK_PATTERNS:
        match = re.search(pattern, content, re.DOTALL)
        if match:
            result = _loads_dict(match.group(1).strip())
            if result is not None:
                return result

    candidate = _balanced_object(content)
    if candidate:
        result = _loads_dict(candidate)
        if result is None:
            result = _loads_dict(_strip_trailing_commas(candidate))
        return result

    return None


def parse_structured_reply(content: str, model: Type[ModelT]) -> Optional[ModelT]:
    """Extract JSON from a reply and validate it against a pydantic model."""
    data = extract_json_from_llm_response(content)
    if data is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"LLM reply did not match {model.__name__}: {e.error_count()} error(s)")
        return None


def message_text(message: Any) -> str:
    """Plain text of a chat model reply."""
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(part.get("text", ""))
            else:
                parts.append(str(part))
        return "".join(parts)
    return str(content or "")
