"""OBD Analyzer -- LLM-backed analysis of vehicle diagnostic scans.

Turns a captured OBD-II scan (VIN, MIL state, stored/pending/permanent
DTCs) into a structured repair-oriented analysis by delegating the
interpretation to an OpenAI-compatible inference endpoint, then
validating the reply against a closed output contract.
"""

__version__ = "0.1.0"

from obd_analyzer.errors import (
    AnalysisError,
    RetriesExhaustedError,
    SchemaViolationError,
)
from obd_analyzer.pipeline import AnalysisPipeline
from obd_analyzer.schemas import AnalysisOutput, ScanInput

__all__ = [
    "AnalysisError",
    "AnalysisOutput",
    "AnalysisPipeline",
    "RetriesExhaustedError",
    "ScanInput",
    "SchemaViolationError",
]
