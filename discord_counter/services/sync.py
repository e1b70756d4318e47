"""
Sync orchestrator: one full refresh cycle.

  LOAD_SERVERS → FETCH_BATCH → PERSIST_RESULTS → UPDATE_AGGREGATES → DONE
        └──────────────┴────────────────┴──────────────────┴──▶ FAILED

Failure policy
--------------
- LOAD_SERVERS / UPDATE_AGGREGATES: any error fails the cycle and is
  re-raised to the caller (manual trigger or scheduler).
- FETCH_BATCH: never raises; exhausted fetches come back as None.
- PERSIST_RESULTS: a failure for one server is logged and counted in
  error_count; the remaining servers are still persisted. A guild removed
  while the cycle was running is one such failure: it is not re-created.

Store calls are blocking, so they run via asyncio.to_thread.
"""
from __future__ import annotations

import asyncio
import enum
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from discord_counter.core.logging import BoundLogger, get_logger
from discord_counter.services.batch import BatchCoordinator
from discord_counter.services.store import Store
from discord_counter.services.types import AggregateTotals

HOUR = 3600


class CycleState(str, enum.Enum):
    LOAD_SERVERS = "LOAD_SERVERS"
    FETCH_BATCH = "FETCH_BATCH"
    PERSIST_RESULTS = "PERSIST_RESULTS"
    UPDATE_AGGREGATES = "UPDATE_AGGREGATES"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class CycleReport:
    cycle_id: str
    success_count: int
    error_count: int
    total_count: int
    totals: Optional[AggregateTotals] = None


def hour_bucket(timestamp: int) -> int:
    """Round a unix timestamp down to the start of its hour."""
    return (timestamp // HOUR) * HOUR


class SyncOrchestrator:
    def __init__(
        self,
        store: Store,
        coordinator: BatchCoordinator,
        clock: Callable[[], float] = time.time,
        logger: Optional[BoundLogger] = None,
    ):
        self.store = store
        self.coordinator = coordinator
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self.state: Optional[CycleState] = None
        self.failed_step: Optional[CycleState] = None

    def _now(self) -> int:
        return int(self.clock())

    async def run_cycle(self, cycle_id: Optional[str] = None) -> CycleReport:
        cycle_id = cycle_id or str(uuid.uuid4())
        log = self.logger.bind(cycle_id=cycle_id)
        log.info("Starting Discord server update job")
        self.failed_step = None

        try:
            self.state = CycleState.LOAD_SERVERS
            servers = await asyncio.to_thread(self.store.list_tracked_servers)
            log.bind(count=len(servers)).info("Fetched servers from database")

            self.state = CycleState.FETCH_BATCH
            results = await self.coordinator.with_context(cycle_id=cycle_id).fetch_all(servers)

            self.state = CycleState.PERSIST_RESULTS
            success_count, error_count = await self._persist(results, log)

            self.state = CycleState.UPDATE_AGGREGATES
            totals = await self._update_aggregates(log)
        except Exception:
            self.failed_step = self.state
            self.state = CycleState.FAILED
            log.bind(state=self.failed_step.value).error(
                "Discord server update job failed", exc_info=True,
            )
            raise

        self.state = CycleState.DONE
        report = CycleReport(
            cycle_id=cycle_id,
            success_count=success_count,
            error_count=error_count,
            total_count=len(servers),
            totals=totals,
        )
        log.bind(
            success_count=report.success_count,
            error_count=report.error_count,
            total_count=report.total_count,
        ).info("Discord server update job complete")
        return report

    async def _persist(self, results: dict, log: BoundLogger) -> tuple[int, int]:
        success_count = 0
        error_count = 0

        for guild_id, metrics in results.items():
            if metrics is None:
                error_count += 1
                continue
            try:
                await asyncio.to_thread(
                    self.store.record_server_update,
                    guild_id,
                    metrics,
                    self._now(),
                    metrics.to_json(),
                )
            except Exception:
                error_count += 1
                log.bind(guild_id=guild_id).error(
                    "Error updating server in database", exc_info=True,
                )
            else:
                success_count += 1

        return success_count, error_count

    async def _update_aggregates(self, log: BoundLogger) -> AggregateTotals:
        totals = await asyncio.to_thread(self.store.compute_aggregates)
        now = self._now()
        await asyncio.to_thread(self.store.append_hourly_summary, hour_bucket(now), totals, now)
        log.bind(
            total_members=totals.total_members,
            total_presence=totals.total_presence,
            server_count=totals.server_count,
            timestamp=now,
        ).info("Updated global statistics")
        return totals
