"""
Hierarchical Analysis - for huge diffs (more than 80 files)

Flows are detected as for flow-based analysis, but a flow of a huge diff
can itself be too large for one prompt. Every flow (plus an "Other Changes"
flow for whatever detection left uncategorized) is cut into token-bounded
chunks, each chunk is analyzed as a sub-flow, and all chunk results feed a
single synthesis.
"""

from __future__ import annotations

import logging

from diffloupe.models.decomposition import (
    DetectedFlow,
    FileChunk,
    FlowFileCount,
    HierarchicalMetadata,
    StrategyResult,
)
from diffloupe.models.diff import ParsedDiff
from diffloupe.models.loader import ClassifiedFile
from diffloupe.services.analyzer import Analyzer
from diffloupe.services.decomposition.flow_analysis import (
    analyze_all_flows,
    fallback_flow,
    has_analyzable_files,
    no_analyzable_files_result,
    synthesize_flow_results,
)
from diffloupe.services.decomposition.flow_detection import detect_flows, get_files_for_flow
from diffloupe.services.decomposition.progress import ProgressCallback, report
from diffloupe.utils.token_estimate import estimate_file_tokens

logger = logging.getLogger(__name__)

CHUNK_TOKEN_BUDGET = 24000

OTHER_FLOW_NAME = "Other Changes"
OTHER_FLOW_DESCRIPTION = "Changes that did not fit any detected flow"


def chunk_tokens(cf: ClassifiedFile) -> int:
    """Prompt cost of a file once large deletions are summarized"""
    return estimate_file_tokens(cf.file).with_summarization


def chunk_flow(
    flow: DetectedFlow, classified: list[ClassifiedFile], budget: int = CHUNK_TOKEN_BUDGET
) -> list[FileChunk]:
    """
    Split a flow's files, in classification order, into chunks of at most
    `budget` tokens. A file larger than the budget gets a chunk to itself.
    """
    chunks: list[list[ClassifiedFile]] = []
    current: list[ClassifiedFile] = []
    current_tokens = 0

    for cf in get_files_for_flow(flow, classified):
        tokens = chunk_tokens(cf)
        if current and current_tokens + tokens > budget:
            chunks.append(current)
            current, current_tokens = [], 0
        current.append(cf)
        current_tokens += tokens
    if current:
        chunks.append(current)

    if len(chunks) == 1:
        names = [flow.name]
    else:
        names = [f"{flow.name} (part {i}/{len(chunks)})" for i in range(1, len(chunks) + 1)]

    return [
        FileChunk(name=name, files=files, estimated_tokens=sum(chunk_tokens(cf) for cf in files))
        for name, files in zip(names, chunks)
    ]


def chunks_as_flows(flow: DetectedFlow, chunks: list[FileChunk]) -> list[DetectedFlow]:
    """Turn chunks back into flows so the flow-based machinery can analyze them"""
    return [
        DetectedFlow(
            name=chunk.name,
            description=flow.description,
            files=[cf.path for cf in chunk.files],
            priority=flow.priority,
        )
        for chunk in chunks
    ]


async def run_hierarchical_analysis(
    diff: ParsedDiff,
    classified: list[ClassifiedFile],
    analyzer: Analyzer,
    stated_intent: str | None = None,
    repository_context: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> StrategyResult:
    if not has_analyzable_files(classified):
        logger.info("Nothing above tier 3, skipping hierarchical analysis")
        return no_analyzable_files_result(
            HierarchicalMetadata(
                total_file_count=0, flow_count=0, chunk_count=0, uncategorized_count=0, flow_file_counts=[]
            )
        )

    report(on_progress, "detecting", "Identifying logical flows in diff...")
    detection = await detect_flows(diff, classified, analyzer)

    flows = list(detection.flows)
    uncategorized = detection.uncategorized
    if not flows:
        flows, uncategorized = [fallback_flow(classified)], []
    elif uncategorized:
        lowest = max(flow.priority for flow in flows)
        flows.append(
            DetectedFlow(
                name=OTHER_FLOW_NAME,
                description=OTHER_FLOW_DESCRIPTION,
                files=list(uncategorized),
                priority=min(lowest + 1, 10),
            )
        )

    sub_flows: list[DetectedFlow] = []
    for flow in flows:
        sub_flows.extend(chunks_as_flows(flow, chunk_flow(flow, classified)))
    logger.info("Split %d flow(s) into %d chunk(s)", len(flows), len(sub_flows))

    flow_results = await analyze_all_flows(
        sub_flows, diff, classified, analyzer, stated_intent, repository_context, on_progress
    )

    report(on_progress, "synthesizing", "Combining chunk analyses...")
    synthesis = await synthesize_flow_results(flow_results, analyzer, stated_intent)

    return StrategyResult(
        intent=synthesis.overall_intent,
        risks=synthesis.overall_risks,
        cross_flow_concerns=synthesis.cross_flow_concerns,
        flows=flow_results,
        metadata=HierarchicalMetadata(
            total_file_count=sum(1 for cf in classified if cf.tier <= 2),
            flow_count=len(flows),
            chunk_count=len(sub_flows),
            uncategorized_count=len(uncategorized),
            flow_file_counts=[FlowFileCount(name=flow.name, file_count=len(flow.files)) for flow in flows],
        ),
    )
