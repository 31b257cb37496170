"""Turning free-form analyzer text into validated models."""

import json
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import AnalyzerReplyError

ModelT = TypeVar("ModelT", bound=BaseModel)

# First fenced block; an unterminated fence (truncated reply) runs to the end
_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}


def extract_json_text(text: str) -> str:
    """Return the payload of the first Markdown code fence, or the bare text."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def repair_truncated_json(text: str) -> str:
    """
    Close a JSON document that was cut off mid-stream.

    Drops the trailing incomplete member (everything after the last comma that
    sits outside a string) and appends the missing closers in nesting order.
    """
    stack = []
    in_string = False
    escape = False
    last_comma = None

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
        elif ch == ",":
            last_comma = (i, list(stack))

    if not stack and not in_string:
        return text

    if last_comma is not None:
        cut, stack = last_comma
        text = text[:cut]
    elif in_string:
        text += '"'

    return text + "".join(_CLOSERS[c] for c in reversed(stack))


def parse_json_reply(text: str) -> dict:
    """Fence extraction + JSON parse with one truncation-repair attempt."""
    if not text or not text.strip():
        raise AnalyzerReplyError("Analyzer returned an empty response", raw_text=text or "")

    payload = extract_json_text(text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as first_error:
        try:
            data = json.loads(repair_truncated_json(payload))
        except json.JSONDecodeError:
            raise AnalyzerReplyError(
                f"Analyzer response is not valid JSON: {first_error.msg}", raw_text=text
            ) from first_error

    if not isinstance(data, dict):
        raise AnalyzerReplyError("Analyzer response is not a JSON object", raw_text=text)
    return data


def parse_reply(text: str, model: Type[ModelT]) -> ModelT:
    """Parse and validate an analyzer reply; the single entry point for degraded results."""
    data = parse_json_reply(text)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise AnalyzerReplyError(
            f"Analyzer response did not match {model.__name__} ({e.error_count()} errors)",
            raw_text=text,
        ) from e
