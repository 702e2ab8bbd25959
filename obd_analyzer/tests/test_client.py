"""Tests for obd_analyzer.client -- single-attempt OpenAI client."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx
import openai
import pytest
import respx

from obd_analyzer.client import OpenAIInferenceClient, parse_content
from obd_analyzer.config import AnalyzerSettings
from obd_analyzer.contract import response_format
from obd_analyzer.errors import EmptyResponseError, MalformedJSONError, TransportError

_BASE_URL = "http://test-llm:8000/v1"
_URL = f"{_BASE_URL}/chat/completions"


def _completion(content: Optional[str], finish_reason: str = "stop") -> Dict[str, Any]:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1760000000,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": finish_reason,
            }
        ],
    }


def _make_client(**overrides) -> OpenAIInferenceClient:
    kwargs = dict(api_key="test-key", model="gpt-4o", base_url=_BASE_URL)
    kwargs.update(overrides)
    return OpenAIInferenceClient(**kwargs)


class TestParseContent:

    def test_plain_json(self) -> None:
        assert parse_content('{"a": 1}') == {"a": 1}

    def test_markdown_fenced_json(self) -> None:
        text = 'Here is the analysis:\n```json\n{"a": 1}\n```\n'
        assert parse_content(text) == {"a": 1}

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    def test_empty(self, content: Optional[str]) -> None:
        with pytest.raises(EmptyResponseError):
            parse_content(content)

    @pytest.mark.parametrize("content", ['{"dtcAnalysis": [', "not json", "[1, 2]", '"text"'])
    def test_malformed(self, content: str) -> None:
        with pytest.raises(MalformedJSONError):
            parse_content(content)

    @pytest.mark.parametrize("content", ['{"a": Infinity}', '{"a": -Infinity}', '{"a": NaN}'])
    def test_non_finite_constants_rejected(self, content: str) -> None:
        with pytest.raises(MalformedJSONError, match="Non-standard JSON constant"):
            parse_content(content)


@pytest.mark.asyncio
@respx.mock
async def test_invoke_success(conforming_payload: Dict[str, Any]) -> None:
    route = respx.post(_URL).mock(
        return_value=httpx.Response(200, json=_completion(json.dumps(conforming_payload)))
    )
    async with _make_client(temperature=0.1, max_tokens=1234) as client:
        raw = await client.invoke("Analyze this vehicle diagnostic scan:")

    assert raw.payload == conforming_payload
    assert raw.finish_reason == "stop"
    assert route.call_count == 1

    body = json.loads(route.calls.last.request.content)
    assert body["model"] == "gpt-4o"
    assert body["temperature"] == 0.1
    assert body["max_tokens"] == 1234
    assert body["response_format"] == response_format()
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["messages"][1]["content"] == "Analyze this vehicle diagnostic scan:"


@pytest.mark.asyncio
@respx.mock
async def test_invoke_empty_content() -> None:
    respx.post(_URL).mock(return_value=httpx.Response(200, json=_completion(None)))
    async with _make_client() as client:
        with pytest.raises(EmptyResponseError):
            await client.invoke("prompt")


@pytest.mark.asyncio
@respx.mock
async def test_invoke_no_choices() -> None:
    body = _completion("{}")
    body["choices"] = []
    respx.post(_URL).mock(return_value=httpx.Response(200, json=body))
    async with _make_client() as client:
        with pytest.raises(EmptyResponseError):
            await client.invoke("prompt")


@pytest.mark.asyncio
@respx.mock
async def test_invoke_truncated_json_is_malformed() -> None:
    respx.post(_URL).mock(
        return_value=httpx.Response(200, json=_completion('{"dtcAnalysis": [', "length"))
    )
    async with _make_client() as client:
        with pytest.raises(MalformedJSONError):
            await client.invoke("prompt")


@pytest.mark.asyncio
@respx.mock
async def test_server_error_is_transport_error_without_retry() -> None:
    """5xx maps to TransportError and the SDK must not retry on its own."""
    route = respx.post(_URL).mock(
        return_value=httpx.Response(503, json={"error": {"message": "overloaded"}})
    )
    async with _make_client() as client:
        with pytest.raises(TransportError) as exc_info:
            await client.invoke("prompt")
    assert exc_info.value.status_code == 503
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_network_error_is_transport_error() -> None:
    route = respx.post(_URL).mock(side_effect=httpx.ConnectError("connection refused"))
    async with _make_client() as client:
        with pytest.raises(TransportError) as exc_info:
            await client.invoke("prompt")
    assert exc_info.value.status_code is None
    assert route.call_count == 1


def test_from_settings() -> None:
    settings = AnalyzerSettings(
        openai_api_key="sk-test",
        openai_base_url=_BASE_URL,
        openai_model="gpt-4o-mini",
        ai_temperature=0.0,
        ai_max_tokens=2000,
    )
    client = OpenAIInferenceClient.from_settings(settings)
    assert client.model == "gpt-4o-mini"
    assert client.temperature == 0.0
    assert client.max_tokens == 2000
    assert str(client.client.base_url).rstrip("/") == _BASE_URL
    assert client.client.max_retries == 0


@pytest.mark.asyncio
async def test_unparseable_response_is_transport_error(monkeypatch) -> None:
    """SDK errors outside the status/connection branches still map to TransportError."""

    async def _create(**kwargs: Any) -> None:
        raise openai.APIResponseValidationError(
            response=httpx.Response(200, request=httpx.Request("POST", _URL)),
            body="<html>gateway</html>",
        )

    async with _make_client() as client:
        monkeypatch.setattr(client.client.chat.completions, "create", _create)
        with pytest.raises(TransportError, match="Inference endpoint error") as exc_info:
            await client.invoke("prompt")
    assert exc_info.value.status_code is None
