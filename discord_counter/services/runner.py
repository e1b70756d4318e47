"""
Background sync jobs.

SyncRunner.spawn()        → SyncJob   (cycle running as its own asyncio task)
SyncRunner.get(job_id)    → SyncJob
run_schedule(runner, …)   → coroutine that spawns a job every `interval` seconds

A job outlives the request (or scheduler tick) that started it. Its outcome
is kept on the SyncJob itself: status, report on success, error on failure.
"""
from __future__ import annotations

import asyncio
import enum
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from discord_counter.core.errors import JobNotFoundError
from discord_counter.core.logging import get_logger
from discord_counter.services.sync import CycleReport, SyncOrchestrator

logger = get_logger(__name__)

MAX_FINISHED_JOBS = 50


class JobStatus(str, enum.Enum):
    running = "running"
    succeeded = "succeeded"
    failed = "failed"


@dataclass
class SyncJob:
    job_id: str
    trigger: str
    started_at: int
    status: JobStatus = JobStatus.running
    finished_at: Optional[int] = None
    report: Optional[CycleReport] = None
    error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status is not JobStatus.running


class SyncRunner:
    def __init__(self, orchestrator_factory: Callable[[], SyncOrchestrator]):
        self.orchestrator_factory = orchestrator_factory
        self._jobs: "OrderedDict[str, SyncJob]" = OrderedDict()

    def spawn(self, trigger: str = "manual") -> SyncJob:
        """Start a cycle in the background. Must be called from a running loop."""
        job_id = str(uuid.uuid4())
        job = SyncJob(job_id=job_id, trigger=trigger, started_at=int(time.time()))
        job.task = asyncio.create_task(self._run(job), name=f"sync-{job_id}")
        self._jobs[job_id] = job
        self._prune()
        return job

    def get(self, job_id: str) -> SyncJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def running(self) -> list[SyncJob]:
        return [job for job in self._jobs.values() if not job.done]

    async def shutdown(self) -> None:
        """Cancel jobs still running and wait for them to unwind."""
        tasks = [job.task for job in self.running() if job.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, job: SyncJob) -> None:
        log = logger.bind(job_id=job.job_id, trigger=job.trigger)
        try:
            job.report = await self.orchestrator_factory().run_cycle(cycle_id=job.job_id)
        except asyncio.CancelledError:
            job.status = JobStatus.failed
            job.error = "cancelled"
            job.finished_at = int(time.time())
            log.warning("Sync job cancelled")
            raise
        except Exception as exc:
            job.status = JobStatus.failed
            job.error = str(exc) or exc.__class__.__name__
            log.error("Sync job failed: %s", job.error)
        else:
            job.status = JobStatus.succeeded
            log.info("Sync job finished")
        finally:
            if job.finished_at is None:
                job.finished_at = int(time.time())

    def _prune(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if job.done]
        for job_id in finished[:max(0, len(finished) - MAX_FINISHED_JOBS)]:
            del self._jobs[job_id]


async def run_schedule(
    runner: SyncRunner,
    interval: float,
    stop: asyncio.Event,
) -> None:
    """Spawn a scheduled cycle immediately and then every `interval` seconds."""
    logger.bind(interval=interval).info("Scheduler started")
    while not stop.is_set():
        runner.spawn(trigger="scheduled")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue
    logger.info("Scheduler stopped")
