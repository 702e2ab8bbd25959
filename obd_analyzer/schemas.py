"""Pydantic v2 models for scan input and analysis output.

``AnalysisOutput`` is the single source of truth for the output
contract: the request-time JSON schema (see :mod:`obd_analyzer.contract`)
and the response-time validator (see :mod:`obd_analyzer.validate`) are
both derived from it.
"""

from __future__ import annotations

import re
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


Severity = Literal["critical", "moderate", "minor"]
Urgency = Literal["immediate", "soon", "monitor"]
EmissionsStatus = Literal["pass", "fail"]


# ---------------------------------------------------------------------------
# Input contract
# ---------------------------------------------------------------------------

# ISO 3779 alphabet (no I, O, Q).  Pre-1981 VINs may be as short as 11.
_VIN_PATTERN = re.compile(r"^[A-HJ-NPR-Z0-9]{11,17}$")
_DTC_PATTERN = re.compile(r"^[A-Z0-9]{1,8}$")


class ScanInput(BaseModel):
    """A single vehicle scan as captured by the OBD-II adapter.

    Field names accept either snake_case or the camelCase names used by
    the scan submission payload (``milOn``, ``storedDtcCodes``, ...).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    vin: str = Field(..., description="Vehicle identification number")
    year: Optional[int] = Field(default=None, description="Model year")
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Optional[float] = Field(default=None, ge=0, description="Odometer, miles")
    mil_on: bool = Field(..., description="Malfunction indicator lamp state")
    dtc_count: int = Field(..., ge=0, description="DTC count reported by the ECU")
    distance_since_cleared: Optional[float] = Field(default=None, ge=0)
    warmups_since_cleared: Optional[int] = Field(default=None, ge=0)
    stored_dtc_codes: Tuple[str, ...] = ()
    pending_dtc_codes: Tuple[str, ...] = ()
    permanent_dtc_codes: Tuple[str, ...] = ()

    @field_validator("vin")
    @classmethod
    def validate_vin(cls, v: str) -> str:
        v = v.strip().upper()
        if not _VIN_PATTERN.match(v):
            raise ValueError(
                f"vin must be 11-17 characters of [A-HJ-NPR-Z0-9], got '{v}'"
            )
        return v

    @field_validator("stored_dtc_codes", "pending_dtc_codes", "permanent_dtc_codes")
    @classmethod
    def validate_dtc_codes(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        codes = tuple(code.strip().upper() for code in v)
        for code in codes:
            if not _DTC_PATTERN.match(code):
                raise ValueError(f"DTC code must be short alphanumeric, got '{code}'")
        return codes


# ---------------------------------------------------------------------------
# Output contract
# ---------------------------------------------------------------------------

class _ContractModel(BaseModel):
    """Closed, strict, immutable base for every output model."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        strict=True,
        alias_generator=to_camel,
        allow_inf_nan=False,
    )


class RepairEstimate(_ContractModel):
    """Recommended repair with US-market parts and labor cost."""

    description: str
    parts_cost: float = Field(..., ge=0)
    labor_cost: float = Field(..., ge=0)

    @property
    def total(self) -> float:
        return self.parts_cost + self.labor_cost


class CodeFinding(_ContractModel):
    """Interpretation of one diagnostic trouble code."""

    code: str
    description: str
    module: str = Field(..., description="Vehicle module the code originates from")
    severity: Severity
    possible_causes: List[str]
    repair: RepairEstimate
    urgency: Urgency


class EmissionsFinding(_ContractModel):
    """Emissions readiness verdict derived from the active codes."""

    status: EmissionsStatus
    tests_passed: int = Field(..., ge=0)
    tests_failed: int = Field(..., ge=0)
    monitor_status_text: str


class MileageRiskItem(_ContractModel):
    """Known failure point expected beyond the current mileage."""

    issue: str
    cost_estimate_low: float = Field(..., ge=0)
    cost_estimate_high: float = Field(..., ge=0)
    mileage_estimate: int

    @model_validator(mode="after")
    def check_cost_range(self) -> "MileageRiskItem":
        if self.cost_estimate_low > self.cost_estimate_high:
            raise ValueError(
                f"costEstimateLow ({self.cost_estimate_low}) exceeds "
                f"costEstimateHigh ({self.cost_estimate_high})"
            )
        return self


class AnalysisOutput(_ContractModel):
    """Structured analysis returned by the pipeline."""

    dtc_analysis: List[CodeFinding]
    emissions_check: EmissionsFinding
    mileage_risk_assessment: List[MileageRiskItem]
    modules_scanned: List[str]
    datapoints_scanned: int = Field(..., ge=0)
    ai_summary: str

    @property
    def total_repair_cost(self) -> float:
        """Sum of parts and labor over every finding."""
        return sum(finding.repair.total for finding in self.dtc_analysis)
