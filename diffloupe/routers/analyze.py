"""Analysis API endpoints"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from diffloupe.models.api import (
    AnalysisEvent,
    AnalyzeRequest,
    PlanResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from diffloupe.models.decomposition import AnalysisReport
from diffloupe.models.llm import (
    AnalyzerValidationError,
    LLMAPIKeyError,
    LLMGenerationError,
    LLMJSONParseError,
)
from diffloupe.services.analysis import analyze_diff, plan_analysis
from diffloupe.services.analyzer import Analyzer, LLMAnalyzer
from diffloupe.services.config_manager import ConfigManager
from diffloupe.services.diff_loader import count_tiers
from diffloupe.services.diff_parser import DiffParseError
from diffloupe.services.summarize import summarize_diff

logger = logging.getLogger(__name__)

router = APIRouter()


def get_analyzer() -> Analyzer:
    """Analyzer for the currently configured provider"""
    return LLMAnalyzer.from_config(ConfigManager.get_instance().get_config())


def to_http_exception(error: Exception) -> HTTPException | None:
    """Map known pipeline failures to HTTP errors; None for anything else"""
    if isinstance(error, (DiffParseError, LLMAPIKeyError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (AnalyzerValidationError, LLMJSONParseError, LLMGenerationError)):
        return HTTPException(status_code=502, detail=str(error))
    return None


@router.post("", response_model=AnalysisReport)
async def analyze(request: AnalyzeRequest, analyzer: Analyzer = Depends(get_analyzer)) -> AnalysisReport:
    """Analyze a diff and return intent, risks and (optionally) alignment"""
    try:
        return await analyze_diff(
            request.diff,
            analyzer,
            stated_intent=request.stated_intent,
            repository_context=request.repository_context,
        )
    except Exception as e:
        http_error = to_http_exception(e)
        if http_error is None:
            raise
        logger.warning("Analysis failed: %s", e)
        raise http_error from e


@router.post("/stream")
async def analyze_stream(request: AnalyzeRequest, analyzer: Analyzer = Depends(get_analyzer)):
    """Analyze a diff, streaming progress events (SSE) before the final report"""
    queue: asyncio.Queue[AnalysisEvent] = asyncio.Queue()

    def on_progress(stage: str, detail: str):
        queue.put_nowait(AnalysisEvent(type="progress", stage=stage, detail=detail))

    async def run():
        try:
            report = await analyze_diff(
                request.diff,
                analyzer,
                stated_intent=request.stated_intent,
                repository_context=request.repository_context,
                on_progress=on_progress,
            )
            await queue.put(AnalysisEvent(type="result", report=report))
        except Exception as e:
            logger.exception("Streaming analysis failed")
            await queue.put(AnalysisEvent(type="error", error=str(e)))

    async def event_generator():
        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                yield {"event": "message", "data": event.model_dump_json(by_alias=True, exclude_none=True)}
                if event.type != "progress":
                    break
        finally:
            if not task.done():
                task.cancel()

    return EventSourceResponse(event_generator())


@router.post("/plan", response_model=PlanResponse)
async def plan(request: AnalyzeRequest) -> PlanResponse:
    """Strategy that would be used for this diff, without calling the analyzer"""
    try:
        _, classified, selection = plan_analysis(request.diff)
    except DiffParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    tiers = count_tiers(classified)
    return PlanResponse(selection=selection, tier_counts={str(tier): count for tier, count in tiers.items()})


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(request: SummarizeRequest) -> SummarizeResponse:
    """Token preview of the diff as it would be sent for analysis"""
    try:
        return summarize_diff(request.diff, include_content=request.include_content)
    except DiffParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
