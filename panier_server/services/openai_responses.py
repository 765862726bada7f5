from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict

import httpx
from openai import APITimeoutError, OpenAI, OpenAIError

from ..config import get_settings
from ..matching.errors import ExternalCollaboratorError

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?(.*?)```", re.IGNORECASE | re.DOTALL)
DEFAULT_MAX_RETRIES = 2


def call_openai_responses(
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_output_tokens: int,
    top_p: float | None = None,
    reasoning_effort: str | None = None,
    timeout: float | None = None,
) -> str:
    """Call the OpenAI Responses API and return the combined text output.

    ``timeout`` overrides the configured request timeout for this call.
    """
    settings = get_settings()
    request_timeout = timeout or settings.openai_request_timeout_seconds
    if not settings.openai_api_key:
        raise ExternalCollaboratorError(
            "OpenAI not configured",
            status_code=503,
            code="collaborator_unavailable",
        )
    client = OpenAI(
        api_key=settings.openai_api_key,
        timeout=request_timeout,
        # A caller-bounded call gets one attempt so it cannot outlive its budget.
        max_retries=0 if timeout else DEFAULT_MAX_RETRIES,
    )
    response_payload: Dict[str, Any] = {
        "model": model,
        "input": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_output_tokens": max_output_tokens,
    }
    if top_p is not None:
        response_payload["top_p"] = top_p
    if reasoning_effort:
        response_payload["reasoning"] = {"effort": reasoning_effort}

    responses_client = getattr(client, "responses", None)
    if responses_client and hasattr(responses_client, "create"):
        try:
            response = responses_client.create(**response_payload)
        except APITimeoutError as exc:
            logger.error("Timeout calling OpenAI Responses API after %ss", request_timeout)
            raise ExternalCollaboratorError(
                "Timed out while waiting for the OpenAI model. Please retry.",
                status_code=504,
                code="collaborator_timeout",
            ) from exc
        except OpenAIError as exc:
            logger.error("OpenAI Responses API call failed: %s", exc)
            raise ExternalCollaboratorError("Language model call failed") from exc
        if getattr(response, "status", "completed") != "completed":
            reason = getattr(getattr(response, "incomplete_details", None), "reason", "unknown")
            logger.error("OpenAI Responses API returned incomplete status: %s", reason)
            raise ExternalCollaboratorError("Language model did not complete successfully")
        text = _extract_response_text(response)
        if not text:
            raise ExternalCollaboratorError("Language model returned empty output")
        return text

    logger.warning("OpenAI client missing Responses API; falling back to HTTP call")
    try:
        resp = httpx.post(
            "https://api.openai.com/v1/responses",
            json=response_payload,
            headers={
                "Authorization": f"Bearer {settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            timeout=request_timeout,
        )
    except httpx.TimeoutException as exc:
        logger.error("HTTP timeout calling OpenAI Responses API after %ss", request_timeout)
        raise ExternalCollaboratorError(
            "Timed out while waiting for the OpenAI model. Please retry.",
            status_code=504,
            code="collaborator_timeout",
        ) from exc
    except httpx.HTTPError as exc:  # pragma: no cover - network failure path
        logger.error("HTTP error calling OpenAI Responses API: %s", exc)
        raise ExternalCollaboratorError("Unable to reach OpenAI") from exc

    if resp.status_code >= 400:
        logger.error("OpenAI Responses REST API returned %s: %s", resp.status_code, resp.text)
        raise ExternalCollaboratorError("Language model call failed")

    payload = resp.json()
    text = _extract_response_text(payload)
    if not text:
        raise ExternalCollaboratorError("Language model returned empty output")
    return text


def parse_json_output(text: str | None, *, context: str) -> Dict[str, Any]:
    """Decode a model reply that should hold one JSON object, fenced or bare."""
    if not text or not text.strip():
        raise ExternalCollaboratorError(f"{context} model returned empty output")
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.search(stripped)
    if match:
        stripped = match.group(1).strip()
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError as exc:
        logger.error("Unable to parse %s model output: %s", context, exc)
        raise ExternalCollaboratorError(f"{context} model returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise ExternalCollaboratorError(f"{context} model returned {type(payload).__name__}, expected an object")
    return payload


def _extract_response_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()
    chunks: list[str] = []
    output = getattr(response, "output", None)
    if output is None and isinstance(response, dict):
        output = response.get("output")
    for block in output or []:
        block_content = getattr(block, "content", None)
        if block_content is None and isinstance(block, dict):
            block_content = block.get("content")
        for content in block_content or []:
            part_text = getattr(content, "text", None)
            if part_text is None and isinstance(content, dict):
                part_text = content.get("text")
            if part_text:
                chunks.append(part_text)
    return "".join(chunks).strip()
