"""OpenAI-compatible content provider.

This wraps the `openai` Python SDK behind the small :class:`ContentProvider` interface the
orchestrator depends on: one system prompt, one user prompt, text back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx
import openai
from openai import OpenAI

from bookweaver.config import Settings
from bookweaver.errors import ContentProviderError
from bookweaver.logging import get_logger

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]
Feature = Literal["response_format", "cache_control", "temperature"]

# Markers looked for in a 400 body to tell which optional request feature was rejected.
_FEATURE_MARKERS: dict[Feature, tuple[str, ...]] = {
    "response_format": ("response_format", "json_schema", "json_object"),
    "cache_control": ("cache_control",),
    "temperature": ("temperature",),
}


class ContentProvider(Protocol):
    """What the orchestrator needs from a text generation backend."""

    def ask(
        self,
        system: str,
        user: str,
        *,
        context: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        json_schema: dict[str, Any] | None = None,
    ) -> str:
        """Return generated text.

        Args:
            system: Stable system prompt (cacheable).
            user: Per-request prompt.
            context: Optional stable book context sent as a second cacheable system segment.
            model: Model override.
            max_tokens: Output token budget.
            json_schema: When given (even `{}`), a single JSON object is requested. With
                `strict_json` on, a non-empty schema is sent as the response format.

        Raises:
            ContentProviderError: the call failed. An empty string is a successful, empty answer.
        """


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str
    cacheable: bool = False


@dataclass
class TokenUsage:
    """Running token totals for a run."""

    calls: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0
    retries: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, usage: Any) -> None:
        self.calls += 1
        if usage is None:
            return
        self.prompt_tokens += int(getattr(usage, "prompt_tokens", 0) or 0)
        self.completion_tokens += int(getattr(usage, "completion_tokens", 0) or 0)
        details = getattr(usage, "prompt_tokens_details", None)
        self.cached_tokens += int(getattr(details, "cached_tokens", 0) or 0)

    def summary(self) -> str:
        return (
            f"calls={self.calls} prompt={self.prompt_tokens} completion={self.completion_tokens} "
            f"cached={self.cached_tokens} total={self.total_tokens} downgraded_retries={self.retries}"
        )


@dataclass
class LLMClient:
    """Content provider backed by the Chat Completions API.

    Optional request features (JSON response format, prompt cache hints, temperature) are
    dropped for the rest of the run the first time the server rejects them, after one retry
    without the feature.
    """

    settings: Settings
    client: Any = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    _disabled: set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            if not self.settings.openai_api_key:
                raise ValueError(
                    "Missing BOOKWEAVER_OPENAI_API_KEY. "
                    "Set it in environment variables or a .env file."
                )
            self.client = OpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                timeout=httpx.Timeout(self.settings.openai_timeout_s, connect=30.0),
                max_retries=2,
            )

    @property
    def disabled_features(self) -> frozenset[str]:
        return frozenset(self._disabled)

    def ask(
        self,
        system: str,
        user: str,
        *,
        context: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        json_schema: dict[str, Any] | None = None,
    ) -> str:
        messages = [ChatMessage(role="system", content=system, cacheable=self.settings.cache_system_input)]
        if context and context.strip():
            messages.append(ChatMessage(role="system", content=context, cacheable=self.settings.cache_book_context))
        messages.append(ChatMessage(role="user", content=user))

        model_name = model or self.settings.openai_model
        preview = user[:120].replace("\n", " ")
        logger.info(
            "LLM request",
            extra={"model": model_name, "max_tokens": max_tokens, "json": json_schema is not None, "preview": preview},
        )

        request = self._build_request(messages, model_name, max_tokens, json_schema)
        try:
            resp = self.client.chat.completions.create(**request)
        except openai.BadRequestError as exc:
            rejected = self._rejected_features(exc, request)
            if not rejected:
                raise ContentProviderError(f"request rejected: {exc}") from exc
            logger.warning(
                "Provider rejected optional feature(s); retrying without them",
                extra={"features": sorted(rejected)},
            )
            self._disabled.update(rejected)
            self.usage.retries += 1
            request = self._build_request(messages, model_name, max_tokens, json_schema)
            try:
                resp = self.client.chat.completions.create(**request)
            except openai.OpenAIError as retry_exc:
                raise ContentProviderError(f"request failed after downgrade: {retry_exc}") from retry_exc
        except openai.APITimeoutError as exc:
            raise ContentProviderError(f"request timed out after {self.settings.openai_timeout_s}s") from exc
        except openai.OpenAIError as exc:
            raise ContentProviderError(f"request failed: {exc}") from exc

        self.usage.add(getattr(resp, "usage", None))
        if not resp.choices:
            return ""
        choice = resp.choices[0]
        message = choice.message
        refusal = getattr(message, "refusal", None) if message is not None else None
        if refusal:
            logger.warning("Model refused the request", extra={"refusal": str(refusal)[:200]})
        if message is None or message.content is None:
            return ""
        text = message.content
        logger.info(
            "LLM response",
            extra={"chars": len(text), "finish_reason": getattr(choice, "finish_reason", None)},
        )
        return text

    def _build_request(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int | None,
        json_schema: dict[str, Any] | None,
    ) -> dict[str, Any]:
        use_cache = "cache_control" not in self._disabled
        payload: list[dict[str, Any]] = []
        for m in messages:
            if m.cacheable and use_cache:
                payload.append(
                    {
                        "role": m.role,
                        "content": [{"type": "text", "text": m.content, "cache_control": {"type": "ephemeral"}}],
                    }
                )
            else:
                payload.append({"role": m.role, "content": m.content})

        request: dict[str, Any] = {"model": model, "messages": payload}
        if max_tokens:
            request["max_completion_tokens"] = max_tokens
        if self.settings.temperature is not None and "temperature" not in self._disabled:
            request["temperature"] = self.settings.temperature
        if json_schema is not None and "response_format" not in self._disabled:
            if self.settings.strict_json and json_schema:
                request["response_format"] = {
                    "type": "json_schema",
                    "json_schema": {"name": "schema", "schema": json_schema},
                }
            else:
                request["response_format"] = {"type": "json_object"}
        return request

    @staticmethod
    def _rejected_features(exc: openai.BadRequestError, request: dict[str, Any]) -> set[str]:
        """Work out which optional features to drop after a 400.

        When the error names none of them but some were sent, all of them are dropped.
        """

        sent: set[str] = set()
        if "response_format" in request:
            sent.add("response_format")
        if "temperature" in request:
            sent.add("temperature")
        if any(isinstance(m.get("content"), list) for m in request["messages"]):
            sent.add("cache_control")
        if not sent:
            return set()

        body = f"{exc} {getattr(exc, 'body', '')}".lower()
        named = {f for f, markers in _FEATURE_MARKERS.items() if any(mk in body for mk in markers)}
        return (named & sent) or sent
