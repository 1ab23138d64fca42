"""Persist-analysis stage: write one analysis across the relational tables.

Everything for one analysis is inserted in a single transaction. A header
row already pointing at the same storage path means an earlier run
committed, so the stage returns without writing.
"""

from __future__ import annotations

import json
from uuid import UUID, uuid4

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from callreview.errors import AnalysisValidationError
from callreview.models.analysis import (
    CallAnalysis,
    CallAnalysisBantBullet,
    CallAnalysisBantCriterion,
    CallAnalysisBlock,
    CallAnalysisRecommendation,
    CallAnalysisSectionItem,
    CallAnalysisTimeRange,
    SectionKind,
)
from callreview.models.call import CallStatus
from callreview.models.job import JobStage
from callreview.queue.types import QueueJob
from callreview.services.analysis_contract import (
    AnalysisDocument,
    BantCriterion,
    EvidenceItem,
    ReviewBlock,
    validate_analysis,
)
from callreview.services.repositories import set_call_status

from ..payloads import PersistAnalysisPayload, parse_payload
from ..types import StageContext, pipeline_logger as logger
from ..workspace import scratch_directory


async def run_persist_analysis(job: QueueJob, ctx: StageContext) -> None:
    payload = parse_payload(PersistAnalysisPayload, JobStage.PERSIST_ANALYSIS, job.payload)
    analysis_path = payload.analysis_object_path

    with scratch_directory(ctx.scratch_dir) as work_dir:
        local_analysis = work_dir / f"{job.call_id}.analysis.json"
        await ctx.storage.download(ctx.bucket, analysis_path, str(local_analysis))
        raw = local_analysis.read_text(encoding="utf-8")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise AnalysisValidationError(f"analysis JSON is invalid: {exc}") from exc

    async with ctx.session_factory() as session:
        try:
            existing = await session.scalar(
                select(CallAnalysis.id).where(
                    CallAnalysis.analysis_storage_path == analysis_path
                )
            )
            if existing is not None:
                await session.rollback()
                logger.info(
                    "persist_analysis job=%s call_id=%s: %s already persisted as %s",
                    job.id,
                    job.call_id,
                    analysis_path,
                    existing,
                )
                return

            document = validate_analysis(data)
            analysis_id = await _insert_header(session, job, payload, document)
            for criterion in document.bant.criteria:
                await _insert_criterion(session, analysis_id, criterion)
            for block in document.blocks_1_5:
                await _insert_block(session, analysis_id, block)
            await set_call_status(session, job.call_id, CallStatus.ANALYZED)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "persist_analysis job=%s call_id=%s: stored analysis %s",
        job.id,
        job.call_id,
        analysis_id,
    )


async def _insert_header(
    session: AsyncSession,
    job: QueueJob,
    payload: PersistAnalysisPayload,
    document: AnalysisDocument,
) -> UUID:
    analysis_id = uuid4()
    await session.execute(
        insert(CallAnalysis.__table__).values(
            id=analysis_id,
            org_id=job.org_id,
            call_id=job.call_id,
            analysis_storage_path=payload.analysis_object_path,
            transcript_filename=document.meta.transcript_filename,
            sales_rep_name=document.meta.sales_rep_name,
            language=document.meta.language,
            source=document.meta.source or payload.source,
            headline_text=document.headline.text,
            summary_text=document.summary.text,
            bant_total_score=document.bant.total_score,
            bant_total_max=document.bant.total_max,
            bant_verdict=document.bant.verdict,
        )
    )
    return analysis_id


async def _insert_criterion(
    session: AsyncSession,
    analysis_id: UUID,
    criterion: BantCriterion,
) -> None:
    criterion_id = uuid4()
    await session.execute(
        insert(CallAnalysisBantCriterion.__table__).values(
            id=criterion_id,
            analysis_id=analysis_id,
            code=criterion.code,
            label=criterion.label,
            score=criterion.score,
            max_score=criterion.max_score,
        )
    )
    for bullet in criterion.bullets:
        await session.execute(
            insert(CallAnalysisBantBullet.__table__).values(
                id=uuid4(),
                criterion_id=criterion_id,
                type=bullet.type,
                text=bullet.text,
            )
        )


async def _insert_block(session: AsyncSession, analysis_id: UUID, block: ReviewBlock) -> None:
    block_id = uuid4()
    await session.execute(
        insert(CallAnalysisBlock.__table__).values(
            id=block_id,
            analysis_id=analysis_id,
            block_number=block.block_number,
            title=block.title,
        )
    )
    sections = block.sections
    await _insert_section_items(
        session, block_id, SectionKind.CLIENT_INSIGHTS, sections.client_insights.items
    )
    await _insert_section_items(
        session, block_id, SectionKind.SALES_GOOD_ACTIONS, sections.sales_good_actions.items
    )
    await _insert_section_items(
        session, block_id, SectionKind.SALES_BAD_ACTIONS, sections.sales_bad_actions.items
    )
    for recommendation in sections.recommendations.items:
        await session.execute(
            insert(CallAnalysisRecommendation.__table__).values(
                id=uuid4(),
                block_id=block_id,
                text=recommendation.text,
                priority=recommendation.priority,
            )
        )


async def _insert_section_items(
    session: AsyncSession,
    block_id: UUID,
    section: SectionKind,
    items: list[EvidenceItem],
) -> None:
    for item in items:
        item_id = uuid4()
        await session.execute(
            insert(CallAnalysisSectionItem.__table__).values(
                id=item_id,
                block_id=block_id,
                section=section.value,
                text=item.text,
                notes=item.notes,
            )
        )
        for time_range in item.time_ranges:
            await session.execute(
                insert(CallAnalysisTimeRange.__table__).values(
                    id=uuid4(),
                    section_item_id=item_id,
                    start_time=time_range.start,
                    end_time=time_range.end,
                )
            )


__all__ = ["run_persist_analysis"]
