"""
Sync trigger schemas.

POST /trigger-update              → CycleReportResponse
POST /trigger-update/background   → SyncJobResponse (202)
GET  /sync/jobs/{job_id}          → SyncJobResponse
"""
from typing import Optional

from pydantic import BaseModel, Field


class AggregateTotalsOut(BaseModel):
    total_members: int
    total_presence: int
    server_count: int


class CycleReportResponse(BaseModel):
    """Outcome of one sync cycle. Partial failures are reported, not raised."""
    cycle_id: str = Field(description="Correlation id used in the cycle's log lines.")
    success_count: int = Field(description="Servers fetched and persisted.")
    error_count: int = Field(description="Servers whose fetch or write failed.")
    total_count: int = Field(description="Tracked servers loaded at cycle start.")
    totals: Optional[AggregateTotalsOut] = Field(
        default=None,
        description="Aggregates written to the hourly summary.",
    )


class SyncJobResponse(BaseModel):
    """State of a background sync job."""
    job_id: str
    trigger: str = Field(description='"manual" or "scheduled".')
    status: str = Field(description='"running", "succeeded" or "failed".')
    started_at: int = Field(description="Unix seconds.")
    finished_at: Optional[int] = Field(default=None, description="Unix seconds.")
    report: Optional[CycleReportResponse] = None
    error: Optional[str] = None
