"""Shared pytest fixtures for OBD analyzer tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

import pytest

from obd_analyzer.client import RawResult
from obd_analyzer.schemas import ScanInput

_FIXTURES_DIR = Path(__file__).resolve().parent.parent.parent / "fixtures"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: marks tests that require a live inference endpoint",
    )


def _load(name: str) -> Dict[str, Any]:
    with open(_FIXTURES_DIR / name, encoding="utf-8") as fh:
        return json.load(fh)


@pytest.fixture()
def sample_scan_dict() -> Dict[str, Any]:
    """The canonical sample scan as a camelCase dict."""
    return _load("scan_input.sample.json")


@pytest.fixture()
def sample_scan(sample_scan_dict: Dict[str, Any]) -> ScanInput:
    return ScanInput.model_validate(sample_scan_dict)


@pytest.fixture()
def minimal_scan() -> ScanInput:
    """MIL on, one stored code, every optional field absent."""
    return ScanInput(
        vin="1HGCM82633A004352",
        mil_on=True,
        dtc_count=1,
        stored_dtc_codes=["P0420"],
    )


@pytest.fixture()
def conforming_payload() -> Dict[str, Any]:
    """A fresh, mutable, fully conforming model reply."""
    return copy.deepcopy(_load("analysis_output.sample.json"))


class ScheduledClient:
    """Fake inference client that replays a fixed schedule.

    Each schedule entry is either a payload dict (returned as a
    :class:`RawResult`) or an exception instance (raised).  The last
    entry repeats once the schedule runs out.
    """

    def __init__(self, schedule: Sequence[Union[Dict[str, Any], BaseException]]) -> None:
        self._schedule = list(schedule)
        self.prompts: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def invoke(self, prompt: str) -> RawResult:
        index = min(len(self.prompts), len(self._schedule) - 1)
        self.prompts.append(prompt)
        entry = self._schedule[index]
        if isinstance(entry, BaseException):
            raise entry
        return RawResult(payload=copy.deepcopy(entry), content=json.dumps(entry))


@pytest.fixture()
def scheduled_client():
    """Factory: ``scheduled_client([payload, MalformedJSONError(...), ...])``."""
    return ScheduledClient
