"""OpenRouter API client for streaming LLM completions."""

import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from . import config
from .telemetry import get_tracer, is_telemetry_enabled, mark_span_error

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {408, 502, 503, 504}

_shared_client: httpx.AsyncClient | None = None


class ProviderError(Exception):
    """A completion request that failed before or during streaming."""

    def __init__(
        self,
        model: str,
        status_code: int | None,
        category: str,
        message: str,
    ) -> None:
        super().__init__(f"{model}: {message}")
        self.model = model
        self.status_code = status_code
        self.category = category
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
        }


def _classify_error(status_code: int | None) -> str:
    """Map an HTTP status (or None for timeouts) to an error category."""
    if status_code is None:
        return "timeout"
    if status_code == 401:
        return "auth"
    if status_code == 402:
        return "billing"
    if status_code == 429:
        return "rate_limit"
    if status_code in TRANSIENT_STATUS_CODES:
        return "transient"
    return "unknown"


async def _extract_error_message(response: httpx.Response) -> str:
    """Pull the OpenRouter error message out of a failed response."""
    try:
        await response.aread()
        data = response.json()
        return data["error"]["message"]
    except (ValueError, KeyError, TypeError, httpx.HTTPError):
        return f"HTTP {response.status_code}"


def get_shared_client() -> httpx.AsyncClient:
    """Return the process-wide HTTP client, creating it on first use."""
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        _shared_client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.OPENROUTER_TIMEOUT, connect=30.0)
        )
    return _shared_client


async def close_shared_client() -> None:
    """Close the shared HTTP client. Safe to call more than once."""
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None


def _parse_sse_line(line: str) -> str | None:
    """
    Extract the content delta from one server-sent-event line.

    Returns:
        The text fragment, "" for frames without content, or None when the
        line is the [DONE] terminator.
    """
    data_str = line[len("data: "):].strip()
    if data_str == "[DONE]":
        return None

    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream frame: %s", data_str[:100])
        return ""

    choices = data.get("choices") or [{}]
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


async def stream_completion(model: str, prompt: str) -> AsyncIterator[str]:
    """
    Stream a single-message completion from OpenRouter.

    Args:
        model: OpenRouter model identifier (e.g., "openai/gpt-4o-mini")
        prompt: Text sent as the only user message

    Yields:
        The cumulative response text after every non-empty content delta

    Raises:
        ProviderError: On non-2xx responses, timeouts and transport failures
    """
    tracer = get_tracer()
    span_attributes = {
        "llm.model": model,
        "llm.prompt_chars": len(prompt),
        "llm.stream": True,
    }

    with tracer.start_as_current_span("llm.stream_completion", attributes=span_attributes) as span:
        headers = {
            "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": True,
        }

        start_time = time.monotonic()
        content = ""
        chunk_count = 0

        try:
            client = get_shared_client()
            async with client.stream(
                "POST", config.OPENROUTER_API_URL, headers=headers, json=payload
            ) as response:
                if response.status_code >= 400:
                    message = await _extract_error_message(response)
                    raise ProviderError(
                        model,
                        response.status_code,
                        _classify_error(response.status_code),
                        message,
                    )

                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    fragment = _parse_sse_line(line)
                    if fragment is None:
                        break
                    if fragment:
                        content += fragment
                        chunk_count += 1
                        yield content

        except ProviderError as e:
            logger.warning(
                "Completion request rejected. Model: %s, Status: %s, Category: %s, Error: %s",
                model, e.status_code, e.category, e.message,
            )
            if is_telemetry_enabled():
                span.record_exception(e)
            mark_span_error(span, e.message)
            raise
        except httpx.TimeoutException as e:
            logger.warning("Completion request timed out. Model: %s", model)
            mark_span_error(span, "timeout")
            raise ProviderError(model, None, "timeout", str(e) or "Request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Completion request failed. Model: %s, Error: %s", model, e)
            mark_span_error(span, str(e))
            raise ProviderError(model, None, "unknown", str(e)) from e

        latency_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug(
            "Completion stream finished. Model: %s, Chunks: %d, Chars: %d, LatencyMs: %d",
            model, chunk_count, len(content), latency_ms,
        )
        if is_telemetry_enabled():
            span.set_attributes({
                "llm.chunk_count": chunk_count,
                "llm.response_chars": len(content),
                "llm.latency_ms": latency_ms,
            })
