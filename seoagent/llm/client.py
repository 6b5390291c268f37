"""Client for OpenAI-compatible chat-completion endpoints."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from http.client import HTTPException
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import ExternalServiceError, MalformedResponseError
from ..logging import get_logger

MAX_TOOL_ITERATIONS = 5

Message = Dict[str, Any]


@dataclass
class Tool:
    """A function the model may call during a completion."""

    name: str
    description: str
    parameters: Dict[str, Any]
    handler: Callable[[Dict[str, Any]], str]

    def schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class CompletionRequest:
    """Represents one HTTP round trip to the chat-completion endpoint."""

    endpoint: str
    payload: Dict[str, Any]
    api_key: Optional[str]
    timeout: float
    headers: Dict[str, str] = field(default_factory=dict)


Transport = Callable[[CompletionRequest], Dict[str, Any]]


class AIClient:
    """Runs chat completions, including a bounded tool-use loop."""

    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    ENV_MODEL_KEYS = ("SEOAGENT_AI_MODEL", "OPENAI_MODEL")
    ENV_BASE_URL_KEYS = ("SEOAGENT_AI_BASE_URL", "OPENAI_BASE_URL")
    ENV_API_KEY_KEYS = ("SEOAGENT_AI_API_KEY", "OPENAI_API_KEY")

    def __init__(
        self,
        model: str | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: Optional[float] = 0.7,
        max_tokens: Optional[int] = 2048,
        request_timeout: float = 60.0,
        max_tool_iterations: int = MAX_TOOL_ITERATIONS,
        transport: Transport | None = None,
    ) -> None:
        self.model = model or _first_env_value(self.ENV_MODEL_KEYS) or self.DEFAULT_MODEL
        self.base_url = (base_url or _first_env_value(self.ENV_BASE_URL_KEYS) or self.DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key or _first_env_value(self.ENV_API_KEY_KEYS)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.request_timeout = request_timeout
        self.max_tool_iterations = max_tool_iterations
        self._transport = transport or _http_transport
        self.logger = get_logger("llm.client")

    def complete(
        self,
        system: str,
        conversation: Sequence[Message],
        *,
        tools: Sequence[Tool] | None = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Return the final assistant text.

        When tools are supplied the model may request calls; each request is
        answered and re-sent, up to ``max_tool_iterations`` round trips. The
        loop ends as soon as a response carries no tool calls.
        """
        messages: List[Message] = [{"role": "system", "content": system}, *conversation]
        tool_index = {tool.name: tool for tool in tools or ()}

        iterations = 0
        while iterations < self.max_tool_iterations:
            iterations += 1
            message = self._request(messages, tools or (), temperature)
            tool_calls = message.get("tool_calls") or []
            if not tool_calls:
                content = message.get("content")
                if not isinstance(content, str) or not content.strip():
                    raise MalformedResponseError("Model returned an empty response")
                return content.strip()

            messages.append(message)
            for call in tool_calls:
                messages.append(self._run_tool_call(call, tool_index))

        raise MalformedResponseError(
            f"Model kept requesting tools after {self.max_tool_iterations} iterations"
        )

    def _request(
        self, messages: List[Message], tools: Sequence[Tool], temperature: Optional[float]
    ) -> Message:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        effective_temperature = self.temperature if temperature is None else temperature
        if effective_temperature is not None:
            payload["temperature"] = effective_temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if tools:
            payload["tools"] = [tool.schema() for tool in tools]

        response = self._transport(
            CompletionRequest(
                endpoint=f"{self.base_url}/chat/completions",
                payload=payload,
                api_key=self.api_key,
                timeout=self.request_timeout,
            )
        )
        return _extract_message(response)

    def _run_tool_call(self, call: Mapping[str, Any], tools: Mapping[str, Tool]) -> Message:
        function = call.get("function") or {}
        name = function.get("name")
        call_id = call.get("id", "")
        tool = tools.get(name) if isinstance(name, str) else None
        if tool is None:
            result = json.dumps({"error": f"unknown tool {name!r}"})
        else:
            try:
                arguments = json.loads(function.get("arguments") or "{}")
            except json.JSONDecodeError:
                arguments = {}
            self.logger.debug("Model invoked tool %s", name)
            result = tool.handler(arguments if isinstance(arguments, dict) else {})
        return {"role": "tool", "tool_call_id": call_id, "content": result}


def _extract_message(payload: Mapping[str, Any]) -> Message:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponseError("Completion response has no choices")
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise MalformedResponseError("Completion response has no message")
    return message


def _http_transport(request: CompletionRequest) -> Dict[str, Any]:
    data = json.dumps(request.payload).encode("utf-8")
    headers = {"Content-Type": "application/json", **request.headers}
    if request.api_key:
        headers["Authorization"] = f"Bearer {request.api_key}"

    http_request = Request(request.endpoint, data=data, headers=headers, method="POST")
    try:
        with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
    except HTTPError as exc:  # pragma: no cover - depends on remote service
        detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
        message = detail.strip() or exc.reason
        raise ExternalServiceError(f"AI request failed with status {exc.code}: {message}") from exc
    except URLError as exc:  # pragma: no cover - depends on network
        raise ExternalServiceError(f"AI request failed: {exc.reason}") from exc
    except (TimeoutError, HTTPException, OSError) as exc:
        raise ExternalServiceError(f"AI request failed: {exc}") from exc

    try:
        payload = json.loads(raw.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("AI endpoint returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("AI endpoint returned a non-object payload")
    return payload


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.environ.get(key)
        if value:
            return value
    return None


__all__ = ["AIClient", "CompletionRequest", "MAX_TOOL_ITERATIONS", "Tool", "Transport"]
