from __future__ import annotations  # OpenAI-compatible chat gateway for interview collaborators

import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config import LlmRoute


logger = logging.getLogger(__name__)


_ROUTE_LOCKS: Dict[str, threading.Lock] = {}
_ROUTE_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...


class LlmGatewayError(RuntimeError):  # Transport, status or schema failure
    pass


T = TypeVar("T", bound=BaseModel)


def _lock_for(route: LlmRoute) -> threading.Lock:
    key = route.name or f"{route.base_url}{route.endpoint}"
    with _ROUTE_LOCKS_GUARD:
        lock = _ROUTE_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _ROUTE_LOCKS[key] = lock
    return lock


def call_structured(
    system_prompt: str,
    inputs: Dict[str, Any],
    schema: Type[T],
    *,
    route: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:  # Send inputs as JSON and validate the reply against schema
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": json.dumps(inputs, ensure_ascii=False, default=str)},
    ]
    if route.sequential:
        with _lock_for(route):
            return chat(messages, schema, route=route, client=client, options=options)
    return chat(messages, schema, route=route, client=client, options=options)


def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    route: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:
    base: List[Dict[str, str]] = []
    if route.enforce_json:
        schema_json = json.dumps(schema.model_json_schema(), indent=2)
        base.append({"role": "system", "content": "Reply with a single JSON object matching this schema:\n" + schema_json})
    base.extend(messages)
    attempts = route.max_retries + 1
    last_error: Optional[Exception] = None
    logger.info("LLM request start route=%s model=%s attempts=%d", route.name, route.model, attempts)
    for attempt in range(attempts):
        attempt_messages = list(base)
        if last_error is not None:
            attempt_messages.append({"role": "system", "content": _retry_hint(str(last_error))})
        payload: Dict[str, Any] = {"model": route.model, "messages": attempt_messages}
        if options:
            payload.update(options)
        if route.response_format:
            payload["response_format"] = {"type": route.response_format}
        data = _post(route, payload, client)
        content = _extract_content(data)
        try:
            parsed = schema.model_validate_json(_strip_code_fences(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("LLM output validation failed route=%s attempt=%d: %s", route.name, attempt + 1, exc)
            last_error = exc
            continue
        logger.info("LLM request done route=%s attempt=%d", route.name, attempt + 1)
        return parsed
    raise LlmGatewayError("LLM output validation failed") from last_error


def _headers(route: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if route.api_key_env:
        api_key = os.getenv(route.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(route.extra_headers)
    return headers


def _post(route: LlmRoute, payload: Dict[str, Any], client: Optional[HttpClient]) -> Any:  # Dispatch one HTTP request
    url = f"{route.base_url}{route.endpoint}"
    try:
        if client is not None:
            response = client.post(url, json=payload, headers=_headers(route), timeout=route.timeout_s)
        else:
            with httpx.Client(timeout=route.timeout_s) as http_client:
                response = http_client.post(url, json=payload, headers=_headers(route))
    except Exception as exc:  # noqa: BLE001
        logger.error("LLM transport failure route=%s: %s", route.name, exc)
        raise LlmGatewayError("LLM transport failed") from exc
    if response.status_code >= 400:
        logger.error("LLM error status route=%s: %s", route.name, response.status_code)
        raise LlmGatewayError(f"LLM returned status {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise LlmGatewayError("LLM payload was not JSON") from exc


def _extract_content(data: Any) -> str:  # Pull message content out of a chat completion
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def _strip_code_fences(content: str) -> str:  # Remove markdown fences around JSON
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = [line for line in text.splitlines()[1:]]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _retry_hint(error_text: str) -> str:  # Tell the model why the last reply was rejected
    first_line = error_text.splitlines()[0].strip() if error_text else ""
    if len(first_line) > 200:
        first_line = first_line[:197] + "..."
    return f"The previous reply failed validation. Reason: {first_line}. Return a single JSON object that matches the schema."
