"""Thin transport over the OpenAI Responses API returning parsed JSON."""

import json
import re
from typing import Any, Dict, List, Optional

from superscraper.config import LLM_MODEL
from superscraper.errors import MalformedResponseError
from superscraper.logging_config import log_interaction

__all__ = [
    "default_client_factory",
    "extract_json_text",
    "response_text",
    "request_json",
]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def default_client_factory(api_key: str) -> Any:
    """Build an OpenAI client for one key."""
    from openai import OpenAI

    return OpenAI(api_key=api_key)


def extract_json_text(raw: str) -> str:
    """Strip markdown code fences around a JSON payload."""
    text = (raw or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1)
    return text


def response_text(resp: Any) -> str:
    """Text of the first output item that has content.

    Reasoning and tool-call items come first in the output list and carry no
    content; they are skipped.
    """
    for item in getattr(resp, "output", None) or []:
        if getattr(item, "content", None):
            return item.content[0].text
    raise MalformedResponseError("No content found in response")


def request_json(
    client: Any,
    prompt: str,
    model: str = LLM_MODEL,
    schema: Optional[Dict[str, Any]] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
    timeout: Optional[float] = None,
    stage: str = "request",
) -> Any:
    """Send one prompt and decode the JSON answer.

    Args:
        client: OpenAI client (or anything with ``responses.create``).
        prompt: Full user prompt.
        model: Model name.
        schema: JSON schema for structured output; JSON-object mode otherwise.
        tools: Responses API tools, e.g. ``[{"type": "web_search"}]``. Tool
            calls cannot be combined with a response format, so none is sent.
        timeout: Per-call timeout in seconds.
        stage: Label for log events.

    Returns:
        The decoded JSON value.

    Raises:
        MalformedResponseError: Empty output or invalid JSON.
    """
    log_interaction(
        f"llm_call_{stage}",
        {"model": model, "prompt": prompt, "tools": bool(tools)},
    )

    kwargs: Dict[str, Any] = {
        "model": model,
        "input": [{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
    }
    if tools:
        kwargs["tools"] = tools
    elif schema:
        kwargs["text"] = {
            "format": {"type": "json_schema", "name": stage, "schema": schema, "strict": False}
        }
    else:
        kwargs["text"] = {"format": {"type": "json_object"}}

    if timeout:
        client = client.with_options(timeout=timeout)

    resp = client.responses.create(**kwargs)
    raw = response_text(resp)

    log_interaction(f"llm_response_{stage}", {"model": model, "raw_response": raw})

    try:
        return json.loads(extract_json_text(raw))
    except json.JSONDecodeError as e:
        log_interaction("llm_parse_error", {"error": str(e), "raw": raw, "stage": stage})
        raise MalformedResponseError(f"Invalid JSON in {stage} response: {e}", raw=raw) from e
