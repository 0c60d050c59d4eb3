"""Decode the model's JSON decision envelope into a typed directive.

The model answers every thought with an object of the shape::

    {"title": "...", "reasoning": "...", "decision": {"type": "...", ...}}

Only the first balanced ``{...}`` in the text is considered. While a response
is still streaming, the ``extract_*`` helpers read string values out of the
incomplete JSON so the UI can show reasoning or the final answer early.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from llm_agent.models.agent_schemas import (
    ActionDirective,
    AgentDirective,
    FinalAnswerDirective,
    ParsedDecision,
    PlanDirective,
    ReflectionDirective,
    ToolCall,
)

logger = logging.getLogger(__name__)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", '"': '"', "\\": "\\"}
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Raw thought text shown while no JSON is present
MAX_RAW_THOUGHT_CHARS = 500


def extract_json_object(text: str) -> str | None:
    """Return the first balanced top-level ``{...}`` span, or None."""
    start = text.find("{")
    if start == -1:
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
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_string_value(text: str, key: str) -> str | None:
    """Read the string value of ``key`` from possibly incomplete JSON.

    Returns what has been received so far when the closing quote is missing.
    """
    key_pos = text.find(f'"{key}"')
    if key_pos == -1:
        return None
    colon = text.find(":", key_pos + len(key) + 2)
    if colon == -1:
        return None

    index = colon + 1
    while index < len(text) and text[index].isspace():
        index += 1
    if index >= len(text) or text[index] != '"':
        return None

    result: list[str] = []
    index += 1
    while index < len(text):
        char = text[index]
        if char == '"':
            return "".join(result)
        if char != "\\":
            result.append(char)
            index += 1
            continue
        if index + 1 == len(text):
            break
        escape = text[index + 1]
        if escape != "u":
            result.append(_ESCAPES.get(escape, escape))
            index += 2
            continue
        decoded, consumed = _decode_unicode_escape(text, index)
        if consumed == 0:
            # Escape not complete yet
            break
        result.append(decoded)
        index += consumed
    return "".join(result)


def _hex4(text: str, start: int) -> int | None:
    digits = text[start : start + 4]
    if len(digits) < 4 or any(c not in _HEX_DIGITS for c in digits):
        return None
    return int(digits, 16)


def _decode_unicode_escape(text: str, index: int) -> tuple[str, int]:
    """Decode the ``\\uXXXX`` escape (or surrogate pair) at ``index``.

    Returns the decoded text and the number of characters consumed; 0 means
    more input is needed.
    """
    if len(text) < index + 6:
        return "", 0
    code = _hex4(text, index + 2)
    if code is None:
        return "u", 2
    if not 0xD800 <= code < 0xDC00:
        return chr(code), 6
    tail = text[index + 6 : index + 12]
    if len(tail) < 6 and "\\u".startswith(tail[:2]):
        return "", 0
    low = _hex4(text, index + 8) if tail.startswith("\\u") else None
    if low is None or not 0xDC00 <= low < 0xE000:
        return "\ufffd", 6
    return chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)), 12


def _load_root(text: str) -> dict[str, Any] | None:
    json_text = extract_json_object(text)
    if json_text is None:
        return None
    try:
        root = json.loads(json_text)
    except json.JSONDecodeError:
        return None
    return root if isinstance(root, dict) else None


def _normalize_title(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def extract_reasoning(text: str) -> str | None:
    root = _load_root(text)
    if root is not None:
        reasoning = root.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            return reasoning
    return extract_string_value(text, "reasoning")


def extract_title(text: str) -> str | None:
    root = _load_root(text)
    if root is not None:
        decision = root.get("decision")
        title = root.get("title")
        if not isinstance(title, str) and isinstance(decision, dict):
            title = decision.get("title")
        return _normalize_title(title)
    return _normalize_title(extract_string_value(text, "title"))


def extract_streaming_final_answer(text: str) -> str | None:
    """Partial ``content`` of a decision already known to be ``final_answer``."""
    decision_pos = text.find('"decision"')
    if decision_pos == -1:
        return None
    decision_text = text[decision_pos + len('"decision"') :]
    decision_type = extract_string_value(decision_text, "type")
    if decision_type is None or decision_type.strip() != "final_answer":
        return None
    return extract_string_value(decision_text, "content")


def thought_display_text(text: str) -> str | None:
    """Text to show for a thought that is still streaming."""
    reasoning = extract_reasoning(text)
    if reasoning is not None:
        return reasoning
    if "{" in text:
        # JSON has started but reasoning has not arrived yet
        return None
    stripped = text.strip()
    if not stripped:
        return None
    return stripped[:MAX_RAW_THOUGHT_CHARS]


def _encode_input(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return None


def decode_decision(text: str) -> ParsedDecision | None:
    """Decode the decision envelope, or None when nothing usable is present."""
    root = _load_root(text)
    if root is None:
        return None
    decision = root.get("decision")
    if not isinstance(decision, dict):
        return None
    decision_type = decision.get("type")
    if not isinstance(decision_type, str):
        return None

    title = _normalize_title(root.get("title"))
    if title is None:
        title = _normalize_title(decision.get("title"))

    directive: AgentDirective
    if decision_type == "action":
        tool = decision.get("tool")
        if not isinstance(tool, str):
            return None
        input_text = _encode_input(decision.get("input", {}))
        if input_text is None:
            logger.debug("Action input is not a string or JSON container: %r", decision.get("input"))
            return None
        directive = ActionDirective(tool_call=ToolCall(tool=tool, input=input_text))
    elif decision_type in ("plan", "reflection", "final_answer"):
        content = decision.get("content")
        if not isinstance(content, str):
            return None
        if decision_type == "plan":
            directive = PlanDirective(content=content)
        elif decision_type == "reflection":
            directive = ReflectionDirective(content=content)
        else:
            directive = FinalAnswerDirective(content=content)
    else:
        logger.debug("Unknown decision type: %s", decision_type)
        return None

    return ParsedDecision(directive=directive, title=title)


def decode_directive(text: str) -> AgentDirective | None:
    parsed = decode_decision(text)
    return parsed.directive if parsed else None
