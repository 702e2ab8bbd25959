"""Prompts for the vehicle scan analysis model."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from obd_analyzer.schemas import ScanInput

SYSTEM_PROMPT = """\
You are an expert automotive diagnostic analyst specializing in OBD-II \
diagnostics. You analyze diagnostic trouble codes (DTCs) from vehicle scans \
and provide detailed, professional assessments.

Your responsibilities:
1. DESCRIBE each DTC with its standard description and classify which vehicle \
module it belongs to.
2. ASSESS severity: "critical" (safety risk or causes further damage), \
"moderate" (affects performance/emissions, fix soon), "minor" (monitor, not urgent).
3. RECOMMEND specific repairs with realistic current US market average costs \
for parts and labor, specific to the vehicle year/make/model.
4. ANALYZE emissions: fail if ANY emission-related DTC is active (P0xxx \
evaporative, catalytic, oxygen sensor, misfire codes), pass otherwise.
5. PREDICT mileage-based risks: common failure points for the specific \
year/make/model at the vehicle's current mileage. Only include issues that \
typically occur AFTER the current mileage. Provide 3-7 items.

Rules:
- Parts and labor costs MUST be realistic US market averages for the specific vehicle.
- Module names must be exact: "Engine", "Transmission", "Anti-lock Braking System", \
"Body Control Module", "Powertrain Control Module", "Supplemental Restraint System", \
"Climate Control", etc.
- Repair descriptions must be specific and actionable, written like a \
professional mechanic's recommendation.
- For emissions, count DTCs as failed tests. Non-emission DTCs (Cxxxx, Uxxxx, \
Bxxxx) do not cause emission failure but count as passed tests.
- Mileage risk items should be common known issues for this specific vehicle, \
not generic.
- costEstimateLow must not exceed costEstimateHigh. Costs and counts are never negative.
- datapointsScanned should be estimated based on: number of ECUs x PIDs checked \
(typically 200-500 per ECU for 3-5 ECUs = 600-2500).
- Output ONLY the JSON object described by the response schema."""

USER_PROMPT_TEMPLATE = """\
Analyze this vehicle diagnostic scan:

Vehicle: {vehicle}
VIN: {vin}
Current Mileage: {mileage}
MIL (Check Engine Light): {mil}
DTC Count Reported: {dtc_count}
Distance Since Codes Last Cleared: {distance_since_cleared}
Warmup Cycles Since Cleared: {warmups_since_cleared}

Stored DTCs: {stored}
Pending DTCs: {pending}
Permanent DTCs: {permanent}

Provide your complete analysis."""

_UNKNOWN = "Unknown"
_NONE = "None"


def _format_number(value: float) -> str:
    # 84500.0 -> "84500", 84500.5 -> "84500.5"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _miles(value: Optional[float]) -> str:
    return f"{_format_number(value)} miles" if value is not None else _UNKNOWN


def _codes(codes: Sequence[str]) -> str:
    return ", ".join(codes) if codes else _NONE


def _vehicle(scan: ScanInput) -> str:
    if scan.year is not None and scan.make and scan.model:
        return f"{scan.year} {scan.make} {scan.model}"
    return "Unknown Vehicle"


def build_user_prompt(scan: ScanInput) -> str:
    """Render *scan* into the user instruction.

    Absent optional fields render as ``Unknown``/``None`` so the model
    always receives the same set of lines.
    """
    warmups = scan.warmups_since_cleared
    return USER_PROMPT_TEMPLATE.format(
        vehicle=_vehicle(scan),
        vin=scan.vin,
        mileage=_miles(scan.mileage),
        mil="ON" if scan.mil_on else "OFF",
        dtc_count=scan.dtc_count,
        distance_since_cleared=_miles(scan.distance_since_cleared),
        warmups_since_cleared=str(warmups) if warmups is not None else _UNKNOWN,
        stored=_codes(scan.stored_dtc_codes),
        pending=_codes(scan.pending_dtc_codes),
        permanent=_codes(scan.permanent_dtc_codes),
    )


def build_messages(prompt: str) -> List[Dict[str, str]]:
    """Build the chat message list for a rendered user prompt."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
