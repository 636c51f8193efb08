# utils/ai_client.py
import json
from typing import Any, Dict, Optional

import httpx

from lessonplanner.core.logging_config import get_logger
from lessonplanner.models.lesson_plan import ImagePayload

logger = get_logger(__name__)


class AIClientError(Exception):
    pass


def build_payload(
    prompt: str,
    *,
    response_schema: Optional[Dict[str, Any]] = None,
    image: Optional[ImagePayload] = None,
) -> Dict[str, Any]:
    """Request body for a Gemini `generateContent` call: prompt text, optional inline image, JSON output schema."""
    parts: list = [{"text": prompt}]
    if image is not None:
        parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.to_base64()}})

    payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
    if response_schema is not None:
        payload["generationConfig"] = {
            "responseMimeType": "application/json",
            "responseSchema": response_schema,
        }
    return payload


def _response_text(data: Dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        raise AIClientError(f"Unexpected provider response shape: {e!r}") from e
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the model output as one JSON object.

    Structured output is requested from the provider, so anything else
    (empty body, prose, markdown fences, arrays) is a failure.
    """
    if not text or not text.strip():
        raise AIClientError("AI provider returned an empty response")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIClientError(f"AI response is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise AIClientError(f"AI response is a {type(parsed).__name__}, expected an object")
    return parsed


async def call_ai_model(
    prompt: str,
    *,
    api_url: str,
    api_key: str,
    response_schema: Optional[Dict[str, Any]] = None,
    image: Optional[ImagePayload] = None,
    timeout: float = 120.0,
    http_client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Call the generation backend once and return the raw response text.

    No retries: a failed call is reported to the caller, who decides what
    the user sees.
    """
    if not api_key:
        raise AIClientError("AI_API_KEY is not configured")

    payload = build_payload(prompt, response_schema=response_schema, image=image)
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}

    client = http_client or httpx.AsyncClient(timeout=timeout)
    try:
        resp = await client.post(api_url, headers=headers, json=payload)
    except httpx.HTTPError as e:
        raise AIClientError(f"AI provider request failed: {e!r}") from e
    finally:
        if http_client is None:
            await client.aclose()

    if resp.status_code != 200:
        raise AIClientError(f"AI provider returned status {resp.status_code}: {resp.text[:500]}")

    try:
        data = resp.json()
    except ValueError as e:
        raise AIClientError(f"AI provider returned a non-JSON body: {e}") from e

    text = _response_text(data)
    logger.debug("AI raw response (truncated): %s", text[:1000])
    return text
