"""
Inference Gateway: one prompt in, one model response out.

Built on Microsoft AutoGen (agentchat/core/ext) with an OpenAI-compatible
model client. There is no retry and no queuing here; the caller decides what
a failure means. Every failure leaves as an `InferenceError` carrying a
classified `InferenceErrorKind`.

Env:
  - OPENAI_API_KEY
  - OPENAI_API_BASE_URL (optional)
  - CAMPAIGN_MODEL (optional, defaults to gpt-5-nano)
"""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from typing import Any, Coroutine, Iterable, Optional

from autogen_agentchat.agents import AssistantAgent
from autogen_agentchat.messages import BaseChatMessage
from autogen_core import CancellationToken
from autogen_core.models import ChatCompletionClient, ModelInfo
from autogen_ext.models.openai import OpenAIChatCompletionClient

from .probe_prompts import PROBE_ANALYST_PROMPT, RIVAL_EXTRACTOR_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-5-nano"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
CONFIG_ERROR_MESSAGE = "API Configuration Error: OPENAI_API_KEY is not set. Add it to your .env file and restart."

_PLACEHOLDER_KEYS = {"", "changeme", "change-me", "your_key_here", "sk-...", "none", "null"}


class InferenceErrorKind(str, Enum):
    MISSING_CREDENTIAL = "MissingCredential"
    QUOTA_EXCEEDED = "QuotaExceeded"
    CONTENT_FILTERED = "ContentFiltered"
    NETWORK_OR_SERVICE_FAILURE = "NetworkOrServiceFailure"
    UNKNOWN = "Unknown"


class InferenceError(RuntimeError):
    """Raised when a single inference call fails."""

    def __init__(self, kind: InferenceErrorKind, detail: str = "") -> None:
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail

    def describe(self, context: str) -> str:
        return describe_failure(self.kind, self.detail, context)


_CLASS_HINTS = {
    "AuthenticationError": InferenceErrorKind.MISSING_CREDENTIAL,
    "PermissionDeniedError": InferenceErrorKind.MISSING_CREDENTIAL,
    "RateLimitError": InferenceErrorKind.QUOTA_EXCEEDED,
    "ContentFilterFinishReasonError": InferenceErrorKind.CONTENT_FILTERED,
    "APIConnectionError": InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE,
    "APITimeoutError": InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE,
    "InternalServerError": InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE,
}

_MESSAGE_HINTS = (
    (InferenceErrorKind.MISSING_CREDENTIAL, ("api_key", "api key", "incorrect api key", "unauthorized", "401")),
    (InferenceErrorKind.QUOTA_EXCEEDED, ("quota", "rate limit", "rate_limit", "429", "resource_exhausted")),
    (InferenceErrorKind.CONTENT_FILTERED, ("safety", "content_filter", "content filter", "content management policy")),
    (
        InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE,
        ("connection", "timed out", "timeout", "network", "service unavailable", "bad gateway", "502", "503", "504"),
    ),
)


def classify_failure(exc: BaseException) -> InferenceErrorKind:
    """Best-effort mapping of an arbitrary failure onto an `InferenceErrorKind`."""

    if isinstance(exc, InferenceError):
        return exc.kind
    for klass in type(exc).__mro__:
        kind = _CLASS_HINTS.get(klass.__name__)
        if kind is not None:
            return kind
    message = str(exc).lower()
    for kind, needles in _MESSAGE_HINTS:
        if any(needle in message for needle in needles):
            return kind
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE
    return InferenceErrorKind.UNKNOWN


def describe_failure(kind: InferenceErrorKind, detail: str, context: str) -> str:
    if kind is InferenceErrorKind.MISSING_CREDENTIAL:
        return "API key not configured or rejected. Please check OPENAI_API_KEY in your .env file."
    if kind is InferenceErrorKind.QUOTA_EXCEEDED:
        return "API quota exceeded. Please check your usage limits."
    if kind is InferenceErrorKind.CONTENT_FILTERED:
        return "Content filtered by safety systems. Try rephrasing your request."
    if kind is InferenceErrorKind.NETWORK_OR_SERVICE_FAILURE:
        return f"{context} failed: the inference service could not be reached. Please try again."
    return f"{context} failed: {detail}" if detail else f"{context} failed. Please try again."


def is_placeholder_key(key: Optional[str]) -> bool:
    value = (key or "").strip()
    return value.lower() in _PLACEHOLDER_KEYS or value.lower().startswith("your_") or value.lower().startswith("your-")


def run_sync(coro: Coroutine[Any, Any, Any]) -> Any:
    """Drive a coroutine from synchronous code (Streamlit callbacks, the CLI loop)."""

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    coro.close()
    raise RuntimeError("run_sync() cannot be used inside a running event loop; await the coroutine instead.")


class InferenceGateway:
    """Thin adapter over two AutoGen assistants: free text and JSON mode."""

    def __init__(
        self,
        *,
        openai_model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        text_agent: Any = None,
        json_agent: Any = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self._base_url = base_url or os.getenv("OPENAI_API_BASE_URL", DEFAULT_BASE_URL)
        self._model_name = openai_model_name or os.getenv("CAMPAIGN_MODEL", DEFAULT_MODEL)
        self._temperature = temperature
        # Built lazily so a dashboard can start without a key.
        self._text_agent = text_agent
        self._json_agent = json_agent

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_configured(self) -> bool:
        return not is_placeholder_key(self._api_key)

    def credential_error(self) -> Optional[str]:
        return None if self.is_configured else CONFIG_ERROR_MESSAGE

    async def infer(self, prompt: str, *, structured_output: bool = False) -> str:
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must be a non-empty string.")
        if not self.is_configured:
            raise InferenceError(InferenceErrorKind.MISSING_CREDENTIAL, CONFIG_ERROR_MESSAGE)

        try:
            agent = self._agent(structured_output)
            await agent.on_reset(CancellationToken())
            logger.info("Dispatching %s inference request (%d chars)", "JSON" if structured_output else "text", len(prompt))
            result = await agent.run(task=prompt)
            text = self._extract_text(result.messages, preferred_source=getattr(agent, "name", None))
        except Exception as exc:
            kind = classify_failure(exc)
            logger.warning("Inference request failed (%s): %s", kind.value, exc)
            raise InferenceError(kind, str(exc)) from exc
        logger.debug("Inference response: %s", text)
        return text

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _agent(self, structured_output: bool) -> Any:
        if structured_output:
            if self._json_agent is None:
                logger.info("Initializing JSON extraction agent with model '%s'", self._model_name)
                self._json_agent = AssistantAgent(
                    name="rival_extractor",
                    model_client=self._build_openai_client(json_output=True),
                    system_message=RIVAL_EXTRACTOR_PROMPT,
                    description="Turns research notes into structured opponent records.",
                    tools=[],
                    max_tool_iterations=1,
                )
            return self._json_agent
        if self._text_agent is None:
            logger.info("Initializing probe analyst agent with model '%s'", self._model_name)
            self._text_agent = AssistantAgent(
                name="probe_analyst",
                model_client=self._build_openai_client(json_output=False),
                system_message=PROBE_ANALYST_PROMPT,
                description="Writes research briefs for a single probe topic.",
                tools=[],
                max_tool_iterations=1,
            )
        return self._text_agent

    def _build_openai_client(self, *, json_output: bool) -> ChatCompletionClient:
        model_info: ModelInfo = {
            "vision": False,
            "function_calling": False,
            "json_output": json_output,
            "structured_output": False,
            "family": "openai",
        }
        client_kwargs = {
            "model": self._model_name,
            "api_key": self._api_key,
            "base_url": self._base_url,
            "include_name_in_message": False,
            "model_info": model_info,
            "max_retries": 0,
        }
        if json_output:
            client_kwargs["response_format"] = {"type": "json_object"}
        if self._temperature is not None:
            client_kwargs["temperature"] = self._temperature
        return OpenAIChatCompletionClient(**client_kwargs)

    @staticmethod
    def _last_chat_message(messages: Iterable[Any], preferred_source: Optional[str] = None) -> BaseChatMessage:
        candidate: Optional[BaseChatMessage] = None
        for message in reversed(list(messages)):
            if not isinstance(message, BaseChatMessage):
                continue
            if preferred_source and getattr(message, "source", None) == preferred_source:
                return message
            if candidate is None:
                candidate = message
        if candidate:
            return candidate
        raise RuntimeError("Assistant did not produce a chat response.")

    def _extract_text(self, messages: Iterable[Any], preferred_source: Optional[str]) -> str:
        final_message = self._last_chat_message(messages, preferred_source=preferred_source)
        to_text = getattr(final_message, "to_text", None)
        if callable(to_text):
            return to_text().strip()
        return str(final_message).strip()
