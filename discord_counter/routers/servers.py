"""
Tracked servers router.

GET    /servers                      — cached metadata for every tracked guild
POST   /servers                      — start tracking a guild
DELETE /servers/{guild_id}           — stop tracking a guild (history is kept)
GET    /servers/{guild_id}/history   — member/presence time series (kept after untracking)
GET    /stats/hourly                 — most recent hourly summaries
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.concurrency import run_in_threadpool

from discord_counter.dependencies import get_store
from discord_counter.schemas.common import ErrorResponse
from discord_counter.schemas.servers import (
    HistoryPointOut,
    HourlySummaryOut,
    ServerOut,
    TrackServerRequest,
)
from discord_counter.services.store import SqlStore

router = APIRouter(tags=["servers"])


@router.get("/servers", response_model=list[ServerOut], summary="List tracked servers")
async def list_servers(store: SqlStore = Depends(get_store)):
    rows = await run_in_threadpool(store.list_server_records)
    return [ServerOut.model_validate(row) for row in rows]


@router.post(
    "/servers",
    response_model=ServerOut,
    status_code=status.HTTP_201_CREATED,
    summary="Track a new server",
    responses={409: {"model": ErrorResponse, "description": "Guild already tracked."}},
)
async def track_server(payload: TrackServerRequest, store: SqlStore = Depends(get_store)):
    """
    Add a guild to the refresh cycle. Its metadata stays empty until the
    next successful sync.
    """
    await run_in_threadpool(store.add_tracked_server, payload.guild_id, payload.invite_code)
    row = await run_in_threadpool(store.get_server, payload.guild_id)
    return ServerOut.model_validate(row)


@router.delete(
    "/servers/{guild_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop tracking a server",
    responses={404: {"model": ErrorResponse, "description": "Guild not tracked."}},
)
async def untrack_server(guild_id: str, store: SqlStore = Depends(get_store)):
    await run_in_threadpool(store.remove_tracked_server, guild_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/servers/{guild_id}/history",
    response_model=list[HistoryPointOut],
    summary="Member/presence history for one server",
)
async def server_history(
    guild_id: str,
    limit: int = Query(default=168, ge=1, le=10_000, description="Most recent N points."),
    store: SqlStore = Depends(get_store),
):
    """
    Returns points oldest first. History outlives tracking, so an untracked
    guild still answers with its past points; a guild with none gets [].
    """
    rows = await run_in_threadpool(store.list_history, guild_id, limit)
    return [HistoryPointOut.model_validate(row) for row in rows]


@router.get(
    "/stats/hourly",
    response_model=list[HourlySummaryOut],
    summary="Recent hourly summaries",
)
async def hourly_stats(
    limit: int = Query(default=24, ge=1, le=1_000),
    store: SqlStore = Depends(get_store),
):
    """Newest first. Several rows may share an hour bucket."""
    rows = await run_in_threadpool(store.list_hourly_summaries, limit)
    return [HourlySummaryOut.model_validate(row) for row in rows]
