"""Tests for the OpenAI-backed content provider."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from bookweaver.config import Settings
from bookweaver.errors import ContentProviderError
from bookweaver.llm.client import LLMClient, TokenUsage
from bookweaver.prompts.book import SUMMARIES_SCHEMA

_REQUEST = httpx.Request("POST", "https://api.test/v1/chat/completions")


def _bad_request(message: str) -> openai.BadRequestError:
    return openai.BadRequestError(message, response=httpx.Response(400, request=_REQUEST), body=None)


def _completion(content: str | None = "hi", *, cached: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content, refusal=None), finish_reason="stop")],
        usage=SimpleNamespace(
            prompt_tokens=10,
            completion_tokens=5,
            prompt_tokens_details=SimpleNamespace(cached_tokens=cached),
        ),
    )


class FakeCompletions:
    """Stands in for `client.chat.completions`; replays scripted results."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.requests: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _client(*results: Any, **settings: Any) -> tuple[LLMClient, FakeCompletions]:
    completions = FakeCompletions(*results)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return LLMClient(Settings(openai_api_key="test-key", **settings), client=fake), completions


def test_request_shape_with_cache_hints_and_json_mode() -> None:
    """It should mark cacheable system segments and request a JSON object."""

    client, completions = _client(_completion(cached=3), cache_system_input=True, temperature=0.2)

    assert client.ask("sys", "user", context="ctx", max_tokens=100, json_schema={}) == "hi"

    request = completions.requests[0]
    assert request["messages"] == [
        {"role": "system", "content": [{"type": "text", "text": "sys", "cache_control": {"type": "ephemeral"}}]},
        {"role": "system", "content": "ctx"},
        {"role": "user", "content": "user"},
    ]
    assert request["max_completion_tokens"] == 100
    assert request["temperature"] == 0.2
    assert request["response_format"] == {"type": "json_object"}
    assert client.usage.summary() == "calls=1 prompt=10 completion=5 cached=3 total=15 downgraded_retries=0"


def test_strict_json_sends_schema() -> None:
    """It should send a json_schema response format when strict mode has a schema."""

    client, completions = _client(_completion(), strict_json=True, temperature=None)
    client.ask("sys", "user", json_schema={"type": "object"})

    request = completions.requests[0]
    assert request["response_format"]["type"] == "json_schema"
    assert request["response_format"]["json_schema"]["schema"] == {"type": "object"}
    assert "temperature" not in request
    assert len(request["messages"]) == 2


def test_strict_json_uses_the_request_schema_and_falls_back_without_one() -> None:
    """It should send the caller's schema in strict mode and plain JSON mode for an empty one."""

    client, completions = _client(_completion(), _completion(), strict_json=True)
    client.ask("sys", "user", json_schema=SUMMARIES_SCHEMA)
    client.ask("sys", "user", json_schema={})

    strict, plain = completions.requests
    assert strict["response_format"] == {
        "type": "json_schema",
        "json_schema": {"name": "schema", "schema": SUMMARIES_SCHEMA},
    }
    assert plain["response_format"] == {"type": "json_object"}


def test_rejected_feature_is_dropped_for_the_rest_of_the_run() -> None:
    """It should retry once without the named feature and keep it off afterwards."""

    client, completions = _client(
        _bad_request("Unsupported parameter: 'response_format' is not supported with this model."),
        _completion("retried"),
        _completion("later"),
    )

    assert client.ask("sys", "user", json_schema={}) == "retried"
    assert client.ask("sys", "user", json_schema={}) == "later"

    first, retry, later = completions.requests
    assert "response_format" in first
    assert "response_format" not in retry and "response_format" not in later
    assert "temperature" in retry
    assert client.disabled_features == frozenset({"response_format"})
    assert client.usage.retries == 1


def test_unnamed_rejection_drops_every_sent_feature() -> None:
    """It should drop all optional features when the error names none of them."""

    client, completions = _client(_bad_request("Invalid request."), _completion())
    client.ask("sys", "user", json_schema={})

    assert client.disabled_features == frozenset({"response_format", "temperature"})
    assert set(completions.requests[1]) == {"model", "messages"}


def test_rejection_without_optional_features_fails() -> None:
    """It should report a plain 400 as ContentProviderError when nothing can be dropped."""

    client, _ = _client(_bad_request("Invalid request."), temperature=None)
    with pytest.raises(ContentProviderError, match="request rejected"):
        client.ask("sys", "user")


def test_failed_retry_is_reported() -> None:
    """It should give up after the single downgraded retry."""

    client, _ = _client(_bad_request("temperature not allowed"), _bad_request("still bad"))
    with pytest.raises(ContentProviderError, match="after downgrade"):
        client.ask("sys", "user")


def test_transport_errors_become_content_provider_errors() -> None:
    """It should map timeouts and connection failures to ContentProviderError."""

    client, _ = _client(
        openai.APITimeoutError(request=_REQUEST),
        openai.APIConnectionError(request=_REQUEST),
    )
    with pytest.raises(ContentProviderError, match="timed out"):
        client.ask("sys", "user")
    with pytest.raises(ContentProviderError, match="request failed"):
        client.ask("sys", "user")


def test_empty_responses_are_empty_strings() -> None:
    """It should return "" when there are no choices or no content."""

    client, _ = _client(SimpleNamespace(choices=[], usage=None), _completion(None))
    assert client.ask("sys", "user") == ""
    assert client.ask("sys", "user") == ""
    assert client.usage.calls == 2


def test_missing_api_key_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    """It should refuse to build a real client without an API key."""

    monkeypatch.delenv("BOOKWEAVER_OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError, match="BOOKWEAVER_OPENAI_API_KEY"):
        LLMClient(Settings())


def test_token_usage_tolerates_missing_fields() -> None:
    """It should count the call even when the response carries no usage block."""

    usage = TokenUsage()
    usage.add(None)
    usage.add(SimpleNamespace(prompt_tokens=4, completion_tokens=None))
    assert (usage.calls, usage.total_tokens, usage.cached_tokens) == (2, 4, 0)
