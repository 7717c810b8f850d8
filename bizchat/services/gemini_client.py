"""Gemini AI client service.

Streams chat completions for the metered chat endpoint. The free tier never
calls the model from here; its prompt is handed to the streaming relay.

Upstream failures are translated into the pipeline's error taxonomy:
429 -> RateLimited (retryable, with Retry-After), exhausted billing/daily
quota -> QuotaExceeded, anything else -> UpstreamError.
"""

import logging
import re
from typing import Iterable, Iterator, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors

from bizchat.core.config import Settings
from bizchat.core.errors import ChatError, InternalError, QuotaExceeded, RateLimited, UpstreamError

logger = logging.getLogger(__name__)

_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_QUOTA_FAILURE_TYPE = "type.googleapis.com/google.rpc.QuotaFailure"


def _error_detail_items(exc: BaseException) -> list[dict]:
    """Return the google.rpc detail objects attached to an API error, if any."""
    details = getattr(exc, "details", None)
    if not details or not isinstance(details, dict):
        return []
    # details might be the full error object with nested "error" or a "details" list
    err = details.get("error", details)
    if not isinstance(err, dict):
        return []
    raw_list = err.get("details") if isinstance(err.get("details"), list) else None
    return [item for item in raw_list or [] if isinstance(item, dict)]


def _extract_retry_delay_seconds(exc: BaseException) -> Optional[int]:
    """
    Parse RetryInfo from error details if present.
    Returns delay in seconds, or None if not found.
    """
    for item in _error_detail_items(exc):
        if item.get("@type") == _RETRY_INFO_TYPE:
            delay_str = item.get("retryDelay")
            if delay_str is None:
                continue
            # Format is often "34s" or "60.123s"
            match = re.match(r"^(\d+(?:\.\d+)?)\s*s", str(delay_str).strip())
            if match:
                return int(float(match.group(1)))
    return None


def _is_daily_quota_exhausted(exc: BaseException) -> bool:
    """True if a QuotaFailure detail names a per-day quota; waiting seconds will not help."""
    for item in _error_detail_items(exc):
        if item.get("@type") != _QUOTA_FAILURE_TYPE:
            continue
        for violation in item.get("violations") or []:
            quota_id = str((violation or {}).get("quotaId", ""))
            if "perday" in quota_id.lower():
                return True
    return False


def _is_billing_error(exc: BaseException) -> bool:
    text = " ".join(str(getattr(exc, attr, "") or "") for attr in ("status", "message")).lower()
    return "billing" in text


def map_api_error(exc: genai_errors.APIError, settings: Settings) -> ChatError:
    """Translate a google-genai API error into a pipeline error."""
    code = getattr(exc, "code", None)
    if code == 402 or (code == 403 and _is_billing_error(exc)):
        return QuotaExceeded()
    if code == 429:
        if _is_daily_quota_exhausted(exc):
            return QuotaExceeded()
        retry_sec = _extract_retry_delay_seconds(exc)
        return RateLimited(retry_after=retry_sec if retry_sec is not None else settings.gemini_retry_after_seconds)
    return UpstreamError()


def _get_client(settings: Settings) -> genai.Client:
    """Get Gemini client, raising InternalError if the API key is not configured."""
    if not settings.gemini_api_key:
        logger.error("GEMINI_API_KEY is not configured")
        raise InternalError("AI service is not configured")
    return genai.Client(
        api_key=settings.gemini_api_key,
        http_options=genai.types.HttpOptions(timeout=settings.gemini_timeout_seconds * 1000),
    )


def to_gemini_contents(messages: Iterable[dict]) -> list[genai.types.Content]:
    """Map {"role": "user"|"assistant", "content": str} turns to Gemini contents."""
    contents = []
    for m in messages:
        role = "model" if m["role"] == "assistant" else "user"
        contents.append(genai.types.Content(role=role, parts=[genai.types.Part(text=m["content"])]))
    return contents


def stream_chat_completion(system_prompt: str, messages: list[dict], settings: Settings) -> Iterator[str]:
    """
    Stream a chat completion as text fragments.

    The request is only sent when the first fragment is pulled, so callers
    can peek the first fragment to surface upstream errors before they
    commit to a streamed response.

    Args:
        system_prompt: Assembled business system prompt.
        messages: Conversation turns, oldest first, ending with the user's message.
        settings: Model name, generation parameters, API key and timeout.

    Yields:
        Non-empty text deltas in arrival order.

    Raises:
        InternalError: API key missing.
        RateLimited / QuotaExceeded / UpstreamError: upstream failure.
    """
    client = _get_client(settings)
    model = settings.gemini_model

    logger.info(
        "Calling Gemini stream model=%s, system_prompt_length=%s, turns=%s",
        model,
        len(system_prompt),
        len(messages),
    )

    stream = None
    try:
        stream = client.models.generate_content_stream(
            model=model,
            contents=to_gemini_contents(messages),
            config=genai.types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=settings.gemini_temperature,
                max_output_tokens=settings.gemini_max_output_tokens,
            ),
        )
        total = 0
        for chunk in stream:
            text = chunk.text
            if text:
                total += len(text)
                yield text
        logger.info("Gemini stream finished response_length=%s", total)

    except genai_errors.APIError as e:
        logger.warning("Gemini API error code=%s status=%s: %s", getattr(e, "code", None), getattr(e, "status", None), e)
        raise map_api_error(e, settings) from e
    except httpx.HTTPError as e:
        logger.error("Gemini transport error: %s", e)
        raise UpstreamError() from e
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()
