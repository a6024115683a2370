"""
AI provider client and response handling.

- ModelClient posts a generateContent request with a hard timeout.
- extract_response_text walks the known response shapes in a fixed order.
- split_reasoning separates an optional reasoning preamble from the JSON body.
- parse_analysis_json turns the body into a dict.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from backend_whalewatch.core.exceptions import ModelCallError, ResponseParseError
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

PROVIDER_NAME = "Google Gemini"
# A preamble shorter than this is treated as noise, not reasoning
MIN_REASONING_CHARS = 50


class ModelClient:
    """Thin httpx wrapper for {base_url}/models/{model}:generateContent."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_sec: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_sec = timeout_sec
        self._transport = transport

    def generate(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Send one request. No retry.

        Raises:
            ModelCallError: timeout, transport failure, non-2xx, or non-JSON body.
        """
        url = f"{self._base_url}/models/{model}:generateContent"
        try:
            with httpx.Client(transport=self._transport) as client:
                resp = client.post(
                    url,
                    params={"key": self._api_key},
                    json=body,
                    headers={"Content-Type": "application/json"},
                    timeout=self._timeout_sec,
                )
        except httpx.TimeoutException as e:
            raise ModelCallError(f"Request timed out after {self._timeout_sec:g}s") from e
        except httpx.HTTPError as e:
            raise ModelCallError(f"Network error: {e}") from e
        if not resp.is_success:
            raise ModelCallError(f"Provider API error: {resp.status_code} - {resp.text[:500]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ModelCallError("Provider returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ModelCallError("Provider returned an unexpected body")
        return data


def _first(items: Any) -> Any:
    return items[0] if isinstance(items, list) and items else None


def _join_texts(items: Any) -> str | None:
    if not isinstance(items, list):
        return None
    texts = [i["text"] for i in items if isinstance(i, dict) and isinstance(i.get("text"), str)]
    return "".join(texts) if texts else None


def _from_text(data: dict[str, Any]) -> Any:
    return data.get("text")


def _from_output_text(data: dict[str, Any]) -> Any:
    return data.get("output_text")


def _from_candidates(data: dict[str, Any]) -> Any:
    candidate = _first(data.get("candidates"))
    content = candidate.get("content") if isinstance(candidate, dict) else None
    return _join_texts(content.get("parts")) if isinstance(content, dict) else None


def _from_output(data: dict[str, Any]) -> Any:
    output = data.get("output")
    if not isinstance(output, list):
        return None
    texts = [_join_texts(o.get("content")) for o in output if isinstance(o, dict)]
    texts = [t for t in texts if t]
    return "".join(texts) if texts else None


def _from_choice_message(data: dict[str, Any]) -> Any:
    choice = _first(data.get("choices"))
    message = choice.get("message") if isinstance(choice, dict) else None
    return message.get("content") if isinstance(message, dict) else None


def _from_choice_text(data: dict[str, Any]) -> Any:
    choice = _first(data.get("choices"))
    return choice.get("text") if isinstance(choice, dict) else None


def _from_content(data: dict[str, Any]) -> Any:
    return data.get("content")


RESPONSE_TEXT_EXTRACTORS: tuple[Callable[[dict[str, Any]], Any], ...] = (
    _from_text,
    _from_output_text,
    _from_candidates,
    _from_output,
    _from_choice_message,
    _from_choice_text,
    _from_content,
)


def extract_response_text(data: dict[str, Any]) -> str:
    """
    First non-empty text found, trying each known response shape in order.

    Raises:
        ResponseParseError: no shape yields text.
    """
    for extractor in RESPONSE_TEXT_EXTRACTORS:
        text = extractor(data)
        if isinstance(text, str) and text.strip():
            return text
    raise ResponseParseError("No text content in provider response")


def split_reasoning(text: str, min_chars: int = MIN_REASONING_CHARS) -> tuple[str | None, str]:
    """
    Split text into (reasoning, json_text).

    Reasoning is whatever precedes the first '{', kept only when longer than
    min_chars. json_text spans the first '{' to the last '}'; when there is no
    object the stripped text is returned unchanged for the parser to reject.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None, text.strip()
    preamble = text[:start].strip()
    reasoning = preamble if start > min_chars and preamble else None
    return reasoning, text[start : end + 1]


def parse_analysis_json(json_text: str) -> dict[str, Any]:
    """
    Raises:
        ResponseParseError: text is not a JSON object.
    """
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON in model response: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise ResponseParseError("Model response JSON is not an object")
    return parsed


def token_usage(data: dict[str, Any]) -> dict[str, Any] | None:
    usage = data.get("usageMetadata")
    if not isinstance(usage, dict):
        return None
    return {
        "prompt_tokens": usage.get("promptTokenCount"),
        "completion_tokens": usage.get("candidatesTokenCount"),
        "total_tokens": usage.get("totalTokenCount"),
    }


def finish_reason(data: dict[str, Any]) -> str | None:
    candidate = _first(data.get("candidates"))
    reason = candidate.get("finishReason") if isinstance(candidate, dict) else None
    return reason if isinstance(reason, str) else None
