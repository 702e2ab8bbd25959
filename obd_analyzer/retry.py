"""Attempt loop around the inference client and the result validator.

Each call to ``AnalysisPipeline.analyze`` gets its own
:class:`AttemptLoop`, a small state machine::

    IDLE -> ATTEMPTING -> SUCCEEDED
                       -> EXHAUSTED

Per-attempt failures (:class:`InferenceError`,
:class:`SchemaViolationError`) are logged and retried after a delay
until ``max_attempts`` is reached, at which point
:class:`RetriesExhaustedError` is raised.  ``asyncio.CancelledError`` is
never caught, so cancelling the caller aborts the in-flight request or
the pending delay.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog

from obd_analyzer.client import InferenceClient, RawResult
from obd_analyzer.errors import (
    AnalysisError,
    AttemptTimeoutError,
    InferenceError,
    RetriesExhaustedError,
    SchemaViolationError,
)
from obd_analyzer.schemas import AnalysisOutput
from obd_analyzer.validate import validate_result

logger = structlog.get_logger(__name__)

Validator = Callable[[RawResult], AnalysisOutput]

_RETRIABLE = (InferenceError, SchemaViolationError)


class LoopState(str, enum.Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them.

    ``max_attempts`` counts every attempt, including the first.  The
    delay before retry *n* (1-based) is
    ``delay_seconds * backoff_multiplier ** (n - 1)``, so the default
    multiplier of 1.0 gives a fixed delay.
    """

    max_attempts: int = 2
    delay_seconds: float = 2.0
    backoff_multiplier: float = 1.0
    attempt_timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")
        if self.backoff_multiplier < 1.0:
            raise ValueError(
                f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}"
            )
        if self.attempt_timeout_seconds is not None and self.attempt_timeout_seconds <= 0:
            raise ValueError(
                f"attempt_timeout_seconds must be > 0, got {self.attempt_timeout_seconds}"
            )

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before retry *retry_number* (1-based)."""
        return self.delay_seconds * self.backoff_multiplier ** (retry_number - 1)


class AttemptLoop:
    """One analysis invocation.  Runs at most once."""

    def __init__(
        self,
        client: InferenceClient,
        policy: RetryPolicy,
        validator: Validator = validate_result,
        **log_context: object,
    ) -> None:
        self._client = client
        self._policy = policy
        self._validator = validator
        self._log = logger.bind(**log_context)
        self.state = LoopState.IDLE
        self.attempts = 0
        self.errors: List[AnalysisError] = []

    @property
    def last_error(self) -> Optional[AnalysisError]:
        return self.errors[-1] if self.errors else None

    async def run(self, prompt: str) -> AnalysisOutput:
        """Drive attempts until one validates or the policy is exhausted.

        Raises:
            RetriesExhaustedError: every attempt failed.
            RuntimeError: the loop has already been run.
        """
        if self.state is not LoopState.IDLE:
            raise RuntimeError(f"AttemptLoop already ran (state={self.state.value})")
        self.state = LoopState.ATTEMPTING

        max_attempts = self._policy.max_attempts
        while True:
            self.attempts += 1
            try:
                output = await self._attempt(prompt)
            except _RETRIABLE as exc:
                self.errors.append(exc)
                self._log.warning(
                    "analysis_attempt_failed",
                    attempt=self.attempts,
                    max_attempts=max_attempts,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                if self.attempts >= max_attempts:
                    break
                delay = self._policy.delay_for(self.attempts)
                if delay > 0:
                    await asyncio.sleep(delay)
                self._log.info("analysis_retrying", attempt=self.attempts + 1, delay=delay)
                continue

            self.state = LoopState.SUCCEEDED
            self._log.info(
                "analysis_succeeded",
                attempts=self.attempts,
                findings=len(output.dtc_analysis),
                emissions_status=output.emissions_check.status,
            )
            return output

        self.state = LoopState.EXHAUSTED
        self._log.error(
            "analysis_exhausted",
            attempts=self.attempts,
            error=str(self.last_error),
        )
        raise RetriesExhaustedError(self.attempts, self.last_error) from self.last_error

    async def _attempt(self, prompt: str) -> AnalysisOutput:
        timeout = self._policy.attempt_timeout_seconds
        try:
            raw = await asyncio.wait_for(self._client.invoke(prompt), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise AttemptTimeoutError(
                f"Inference attempt exceeded {timeout}s deadline"
            ) from exc
        return self._validator(raw)


class RetryOrchestrator:
    """Builds a fresh :class:`AttemptLoop` per invocation.

    Holds only immutable collaborators, so one instance can be shared by
    concurrent callers.
    """

    def __init__(
        self,
        client: InferenceClient,
        policy: RetryPolicy,
        validator: Validator = validate_result,
    ) -> None:
        self.client = client
        self.policy = policy
        self.validator = validator

    def new_loop(self, **log_context: object) -> AttemptLoop:
        return AttemptLoop(self.client, self.policy, self.validator, **log_context)

    async def run(self, prompt: str, **log_context: object) -> AnalysisOutput:
        return await self.new_loop(**log_context).run(prompt)
