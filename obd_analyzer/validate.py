"""Validation of model replies against the output contract.

The endpoint's own structured-output enforcement is treated as best
effort.  Every reply is re-checked here in strict mode: wrong primitive
types, out-of-enum values, unknown properties, missing fields, negative
costs and inverted cost ranges all reject the whole reply.
"""

from __future__ import annotations

from pydantic import ValidationError

from obd_analyzer.client import RawResult, parse_content
from obd_analyzer.errors import SchemaViolationError
from obd_analyzer.schemas import AnalysisOutput


def validate_payload(payload: dict) -> AnalysisOutput:
    """Validate an already-parsed JSON object.

    Raises:
        SchemaViolationError: *payload* does not satisfy ``AnalysisOutput``.
    """
    try:
        return AnalysisOutput.model_validate(payload, strict=True)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise SchemaViolationError(
            f"Schema mismatch ({exc.error_count()} errors); "
            f"first at '{location or '<root>'}': {first.get('msg', 'invalid')}",
            errors=errors,
        ) from exc


def validate_result(raw: RawResult) -> AnalysisOutput:
    """Validate the payload of a :class:`RawResult`."""
    return validate_payload(raw.payload)


def validate_text(text: str) -> AnalysisOutput:
    """Parse and validate a raw JSON reply, e.g. one stored on disk.

    Raises:
        EmptyResponseError / MalformedJSONError: *text* is not a JSON object.
        SchemaViolationError: the object does not satisfy the contract.
    """
    return validate_payload(parse_content(text))
