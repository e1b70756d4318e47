"""
Sync trigger router.

POST /trigger-update              — run one cycle and wait for its report
POST /trigger-update/background   — start a cycle as a background job
GET  /sync/jobs/{job_id}          — status of a background job
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from discord_counter.core.errors import SyncCycleError
from discord_counter.core.logging import get_logger
from discord_counter.dependencies import get_orchestrator, get_runner
from discord_counter.schemas.common import ErrorResponse
from discord_counter.schemas.sync import (
    AggregateTotalsOut,
    CycleReportResponse,
    SyncJobResponse,
)
from discord_counter.services.runner import SyncJob, SyncRunner
from discord_counter.services.sync import CycleReport, SyncOrchestrator

router = APIRouter(tags=["sync"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _report_to_response(report: CycleReport) -> CycleReportResponse:
    totals = None
    if report.totals is not None:
        totals = AggregateTotalsOut(
            total_members=report.totals.total_members,
            total_presence=report.totals.total_presence,
            server_count=report.totals.server_count,
        )
    return CycleReportResponse(
        cycle_id=report.cycle_id,
        success_count=report.success_count,
        error_count=report.error_count,
        total_count=report.total_count,
        totals=totals,
    )


def _job_to_response(job: SyncJob) -> SyncJobResponse:
    return SyncJobResponse(
        job_id=job.job_id,
        trigger=job.trigger,
        status=job.status.value,
        started_at=job.started_at,
        finished_at=job.finished_at,
        report=_report_to_response(job.report) if job.report is not None else None,
        error=job.error,
    )


# ---------------------------------------------------------------------------
# POST /trigger-update
# ---------------------------------------------------------------------------

@router.post(
    "/trigger-update",
    response_model=CycleReportResponse,
    summary="Run a sync cycle now",
    responses={
        500: {"model": ErrorResponse, "description": "The cycle failed (store unavailable, …)."},
    },
)
async def trigger_update(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """
    Refresh every tracked server and wait for the cycle to finish.

    Individual servers that fail are counted in `error_count`; the request
    still succeeds. Only a cycle-level failure (loading the server list or
    writing the hourly summary) returns an error.
    """
    cycle_id = str(uuid.uuid4())
    try:
        report = await orchestrator.run_cycle(cycle_id=cycle_id)
    except Exception as exc:
        step = getattr(orchestrator, "failed_step", None)
        state = step.value if step is not None else "UNKNOWN"
        logger.error("Error processing manual update", exc_info=True)
        raise SyncCycleError(cycle_id=cycle_id, state=state, message=str(exc)) from exc
    return _report_to_response(report)


# ---------------------------------------------------------------------------
# POST /trigger-update/background
# ---------------------------------------------------------------------------

@router.post(
    "/trigger-update/background",
    response_model=SyncJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a sync cycle in the background",
)
async def trigger_update_background(runner: SyncRunner = Depends(get_runner)):
    """
    Start a cycle detached from this request and return immediately.
    Poll `GET /sync/jobs/{job_id}` for the outcome.
    """
    job = runner.spawn(trigger="manual")
    return _job_to_response(job)


# ---------------------------------------------------------------------------
# GET /sync/jobs/{job_id}
# ---------------------------------------------------------------------------

@router.get(
    "/sync/jobs/{job_id}",
    response_model=SyncJobResponse,
    summary="Background sync job status",
    responses={404: {"model": ErrorResponse, "description": "Unknown job id."}},
)
async def sync_job(job_id: str, runner: SyncRunner = Depends(get_runner)):
    return _job_to_response(runner.get(job_id))
