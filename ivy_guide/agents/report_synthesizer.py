"""
Report Synthesizer Agent

Turns the student profile and accumulated insights into curated interests,
strengths and recommended career paths for the final report.
"""

from typing import Optional, Protocol

from ivy_guide.models.config import LLMConfig
from ivy_guide.models.report import ReportRequest, ReportSynthesis
from ivy_guide.utils.llm_helpers import call_llm_with_retry, parse_json_response
from ivy_guide.utils.logger import get_logger
from ivy_guide.utils.prompt_loader import render_prompt

REPORT_TEMPLATE = "report/career_report.j2"

MAX_INTERESTS = 3
MAX_STRENGTHS = 5
MAX_PATHS = 3


class ReportService(Protocol):
    """Asynchronous request/response contract for report synthesis."""

    async def synthesize_report(self, request: ReportRequest) -> ReportSynthesis: ...


class LLMReportSynthesizer:
    """Report synthesis service backed by the LLM."""

    def __init__(
        self,
        llm_config: Optional[LLMConfig] = None,
        correlation_id: Optional[str] = None,
    ):
        self.llm_config = llm_config or LLMConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(
            correlation_id=correlation_id,
            phase="evaluating",
            component="report_synthesizer",
        )

    def bind_session(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id
        self.logger = get_logger(
            correlation_id=correlation_id,
            phase="evaluating",
            component="report_synthesizer",
        )

    async def synthesize_report(self, request: ReportRequest) -> ReportSynthesis:
        """
        Synthesize the career report content.

        The prompt asks for top 3 interests, 3-5 strengths and 2-3 paths; any
        excess in the LLM output is truncated so the report keeps that shape.

        Args:
            request: Profile and accumulated insights

        Returns:
            Validated ReportSynthesis

        Raises:
            ServiceResponseError: If the LLM output does not match the report schema
        """
        prompt = render_prompt(
            REPORT_TEMPLATE,
            correlation_id=self.correlation_id,
            profile=request.profile,
            insights=request.insights,
        )

        self.logger.info(
            "Synthesizing career report",
            insight_count=request.insights.total(),
            career_clusters=len(request.insights.career_clusters),
        )

        raw = await call_llm_with_retry(
            prompt,
            correlation_id=self.correlation_id,
            system_prompt=self.llm_config.system_prompt,
            model=self.llm_config.model,
        )
        synthesis = parse_json_response(
            raw,
            ReportSynthesis,
            service="report synthesis",
            correlation_id=self.correlation_id,
        )

        if (
            len(synthesis.interests) > MAX_INTERESTS
            or len(synthesis.strengths) > MAX_STRENGTHS
            or len(synthesis.recommended_paths) > MAX_PATHS
        ):
            self.logger.warning(
                "Report synthesis exceeded requested sizes, truncating",
                interests=len(synthesis.interests),
                strengths=len(synthesis.strengths),
                paths=len(synthesis.recommended_paths),
            )
            synthesis = ReportSynthesis(
                interests=synthesis.interests[:MAX_INTERESTS],
                strengths=synthesis.strengths[:MAX_STRENGTHS],
                recommended_paths=synthesis.recommended_paths[:MAX_PATHS],
            )

        self.logger.info(
            "Career report synthesized",
            recommended_paths=[p.name for p in synthesis.recommended_paths],
        )
        return synthesis
