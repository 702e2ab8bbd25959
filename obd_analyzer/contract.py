"""Request-time output contract derived from :class:`AnalysisOutput`.

The schema sent to the inference endpoint is generated from the same
pydantic model that validates the reply, then normalised to the strict
``json_schema`` dialect: titles dropped, every object closed and every
property required.
"""

from __future__ import annotations

import copy
from typing import Any, Dict

from obd_analyzer.schemas import AnalysisOutput

SCHEMA_NAME = "vehicle_diagnostic_analysis"

# Keys that carry no constraint and only add noise to the request.
_DROPPED_KEYS = ("title", "default")


def _strictify(node: Any) -> Any:
    """Recursively normalise a JSON-schema node in place."""
    if isinstance(node, list):
        for item in node:
            _strictify(item)
        return node
    if not isinstance(node, dict):
        return node

    for key in _DROPPED_KEYS:
        node.pop(key, None)

    # Strict mode rejects siblings next to a $ref.
    if "$ref" in node:
        for key in [k for k in node if k != "$ref"]:
            del node[key]
        return node

    if node.get("type") == "object" and "properties" in node:
        node["additionalProperties"] = False
        node["required"] = list(node["properties"])

    for key in ("properties", "$defs"):
        for child in node.get(key, {}).values():
            _strictify(child)
    for key in ("items", "anyOf", "allOf"):
        if key in node:
            _strictify(node[key])
    return node


def response_schema() -> Dict[str, Any]:
    """Return the strict JSON schema for ``AnalysisOutput`` (camelCase)."""
    schema = AnalysisOutput.model_json_schema(by_alias=True, mode="validation")
    return _strictify(copy.deepcopy(schema))


def response_format() -> Dict[str, Any]:
    """Return the ``response_format`` parameter for chat completions."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": SCHEMA_NAME,
            "strict": True,
            "schema": response_schema(),
        },
    }
