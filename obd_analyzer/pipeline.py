"""Entry point for scan analysis.

The process builds one :class:`AnalysisPipeline` at startup and passes it
by reference to every request; there is no module-level client cache.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from obd_analyzer.client import InferenceClient, OpenAIInferenceClient
from obd_analyzer.config import AnalyzerSettings
from obd_analyzer.prompts import build_user_prompt
from obd_analyzer.retry import RetryOrchestrator, RetryPolicy
from obd_analyzer.schemas import AnalysisOutput, ScanInput

logger = structlog.get_logger(__name__)


class AnalysisPipeline:
    """Prompt builder, inference client and attempt loop wired together."""

    def __init__(self, client: InferenceClient, policy: Optional[RetryPolicy] = None) -> None:
        self.client = client
        self.policy = policy or RetryPolicy()
        self._orchestrator = RetryOrchestrator(client, self.policy)

    @classmethod
    def from_settings(cls, settings: Optional[AnalyzerSettings] = None) -> "AnalysisPipeline":
        settings = settings or AnalyzerSettings()
        return cls(OpenAIInferenceClient.from_settings(settings), settings.retry_policy())

    async def analyze(self, scan: ScanInput) -> AnalysisOutput:
        """Analyse *scan*, returning a fully validated result.

        Raises:
            RetriesExhaustedError: no attempt produced a conforming reply.
        """
        prompt = build_user_prompt(scan)
        logger.info(
            "analysis_start",
            vin=scan.vin,
            dtc_count=scan.dtc_count,
            max_attempts=self.policy.max_attempts,
        )
        return await self._orchestrator.run(prompt, vin=scan.vin)

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "AnalysisPipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
