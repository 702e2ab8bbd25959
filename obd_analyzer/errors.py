"""Error taxonomy for the analysis pipeline.

Everything below :class:`InferenceError` and :class:`SchemaViolationError`
is retriable and stays inside the attempt loop.  Only
:class:`RetriesExhaustedError` reaches the caller of
``AnalysisPipeline.analyze``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class AnalysisError(Exception):
    """Base class for every error raised by ``obd_analyzer``."""


# ---------------------------------------------------------------------------
# Single-attempt failures (inference client)
# ---------------------------------------------------------------------------

class InferenceError(AnalysisError):
    """A single call to the inference endpoint failed."""


class EmptyResponseError(InferenceError):
    """The endpoint answered but returned no content."""


class TransportError(InferenceError):
    """Network failure or non-success HTTP status from the endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedJSONError(InferenceError):
    """Content was returned but is not a JSON object."""


class AttemptTimeoutError(InferenceError):
    """The per-attempt deadline expired before the endpoint replied."""


# ---------------------------------------------------------------------------
# Contract failures (result validator)
# ---------------------------------------------------------------------------

class SchemaViolationError(AnalysisError):
    """The parsed reply does not satisfy the output contract."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


# ---------------------------------------------------------------------------
# Terminal
# ---------------------------------------------------------------------------

class RetriesExhaustedError(AnalysisError):
    """Every permitted attempt failed.

    Carries the number of attempts made and the last underlying error;
    intermediate errors are only logged.
    """

    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "no error recorded"
        super().__init__(f"AI analysis failed after {attempts} attempts: {detail}")
