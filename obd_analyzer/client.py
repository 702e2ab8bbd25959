"""Single-attempt inference client.

:class:`OpenAIInferenceClient` performs exactly one chat completion
against an OpenAI-compatible endpoint and maps every failure onto the
:mod:`obd_analyzer.errors` taxonomy.  It never retries; the attempt loop
in :mod:`obd_analyzer.retry` owns that.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

import openai
import structlog
from openai import AsyncOpenAI

from obd_analyzer import contract, prompts
from obd_analyzer.errors import EmptyResponseError, MalformedJSONError, TransportError

if TYPE_CHECKING:
    from obd_analyzer.config import AnalyzerSettings

logger = structlog.get_logger(__name__)

# ```json ... ``` or just ``` ... ```
_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def _reject_constant(token: str) -> Any:
    raise MalformedJSONError(f"Non-standard JSON constant {token!r} in model response")


@dataclass(frozen=True)
class RawResult:
    """Parsed but not yet validated model reply."""

    payload: Dict[str, Any]
    content: str
    finish_reason: Optional[str] = None


class InferenceClient(Protocol):
    """Anything that can turn a prompt into a :class:`RawResult`."""

    async def invoke(self, prompt: str) -> RawResult:
        ...


def parse_content(content: Optional[str]) -> Dict[str, Any]:
    """Turn raw completion text into a JSON object.

    Raises:
        EmptyResponseError: *content* is ``None`` or blank.
        MalformedJSONError: *content* is not a JSON object, or uses
            NaN or Infinity.
    """
    if content is None or not content.strip():
        raise EmptyResponseError("Empty response from inference endpoint")

    clean_text = content.strip()
    match = _FENCE_PATTERN.search(clean_text)
    if match:
        clean_text = match.group(1)

    try:
        data = json.loads(clean_text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise MalformedJSONError(f"Invalid JSON in model response: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedJSONError(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    return data


class OpenAIInferenceClient:
    """Client for the analysis model behind an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        timeout: Optional[float] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._response_format = contract.response_format()
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "base_url": base_url}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        # max_retries=0: the SDK must not retry behind the attempt loop's back.
        self.client = AsyncOpenAI(max_retries=0, **client_kwargs)
        logger.info(
            "initialized_inference_client",
            base_url=str(self.client.base_url),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    @classmethod
    def from_settings(cls, settings: "AnalyzerSettings") -> "OpenAIInferenceClient":
        return cls(
            api_key=settings.openai_api_key.get_secret_value(),
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            timeout=settings.ai_attempt_timeout_seconds,
        )

    # -- lifecycle ----------------------------------------------------------

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "OpenAIInferenceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- public API ---------------------------------------------------------

    async def invoke(self, prompt: str) -> RawResult:
        """Run one constrained completion for *prompt*.

        Raises:
            TransportError: connection failure, timeout, error status, or a
                response the SDK could not parse.
            EmptyResponseError: no choices or no content.
            MalformedJSONError: content is not a JSON object.
        """
        logger.info("inference_request_start", model=self.model, prompt_length=len(prompt))

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=prompts.build_messages(prompt),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format=self._response_format,
            )
        except openai.APIStatusError as exc:
            raise TransportError(
                f"Inference endpoint returned HTTP {exc.status_code}: {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except openai.APIConnectionError as exc:
            # Also covers APITimeoutError.
            raise TransportError(f"Inference endpoint unreachable: {exc}") from exc
        except openai.APIError as exc:
            # Response body that did not parse as a chat completion.
            raise TransportError(f"Inference endpoint error: {exc}") from exc

        if not response.choices:
            raise EmptyResponseError("Inference endpoint returned no choices")

        choice = response.choices[0]
        content = choice.message.content
        if choice.finish_reason == "length":
            logger.warning("inference_output_truncated", max_tokens=self.max_tokens)

        payload = parse_content(content)
        logger.info(
            "inference_response_received",
            raw_content_length=len(content or ""),
            finish_reason=choice.finish_reason,
        )
        return RawResult(payload=payload, content=content or "", finish_reason=choice.finish_reason)
