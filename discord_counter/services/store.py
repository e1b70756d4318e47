"""
Store: persistence used by the sync cycle.

Public API (Store)
------------------
list_tracked_servers()                                  → list[TrackedServer]
upsert_server_record(guild_id, metrics, ts, raw_json)   → None
append_history_entry(guild_id, presence, members, ts)   → None
record_server_update(guild_id, metrics, ts, raw_json)   → None  (update + history, existing rows only)
compute_aggregates()                                    → AggregateTotals
append_hourly_summary(hour_bucket, totals, created_at)  → None

SqlStore implements it on SQLAlchemy sessions, one short-lived session per
call. Every SQLAlchemyError is re-raised as StoreError so callers only deal
with one failure type. Methods are synchronous; the async cycle runs them in
a worker thread.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from discord_counter.core.errors import (
    ServerAlreadyTrackedError,
    ServerNotFoundError,
    StoreError,
)
from discord_counter.models.history import ServerHistory
from discord_counter.models.hourly_summary import HourlySummary
from discord_counter.models.server import DiscordServer
from discord_counter.services.types import AggregateTotals, ServerMetrics, TrackedServer


class Store(ABC):
    """Persistence operations the sync cycle depends on."""

    @abstractmethod
    def list_tracked_servers(self) -> list[TrackedServer]:
        ...

    @abstractmethod
    def upsert_server_record(
        self,
        guild_id: str,
        metrics: ServerMetrics,
        timestamp: int,
        raw_snapshot_json: str,
        invite_code: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    def append_history_entry(
        self, guild_id: str, presence_count: int, member_count: int, timestamp: int,
    ) -> None:
        ...

    @abstractmethod
    def compute_aggregates(self) -> AggregateTotals:
        ...

    @abstractmethod
    def append_hourly_summary(
        self, hour_bucket: int, totals: AggregateTotals, created_at: int,
    ) -> None:
        ...

    def record_server_update(
        self,
        guild_id: str,
        metrics: ServerMetrics,
        timestamp: int,
        raw_snapshot_json: str,
    ) -> None:
        """
        Overwrite the latest record and append its history row.

        Never creates a record: a guild untracked while its fetch was in
        flight raises StoreError instead of coming back.
        """
        self.upsert_server_record(guild_id, metrics, timestamp, raw_snapshot_json)
        self.append_history_entry(
            guild_id, metrics.presence_count, metrics.member_count, timestamp,
        )


class SqlStore(Store):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self, operation: str, guild_id: Optional[str] = None) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(operation, str(exc), guild_id=guild_id) from exc
        finally:
            db.close()

    # -----------------------------------------------------------------------
    # Sync cycle
    # -----------------------------------------------------------------------

    def list_tracked_servers(self) -> list[TrackedServer]:
        with self._session("list_tracked_servers") as db:
            rows = db.execute(
                select(DiscordServer.guild_id, DiscordServer.invite_code)
                .order_by(DiscordServer.guild_id)
            ).all()
        return [TrackedServer(guild_id=g, invite_code=i) for g, i in rows]

    def upsert_server_record(
        self,
        guild_id: str,
        metrics: ServerMetrics,
        timestamp: int,
        raw_snapshot_json: str,
        invite_code: Optional[str] = None,
    ) -> None:
        with self._session("upsert_server_record", guild_id) as db:
            self._upsert(db, guild_id, metrics, timestamp, raw_snapshot_json, invite_code)
            db.commit()

    def append_history_entry(
        self, guild_id: str, presence_count: int, member_count: int, timestamp: int,
    ) -> None:
        with self._session("append_history_entry", guild_id) as db:
            db.add(ServerHistory(
                guild_id=guild_id,
                presence_count=presence_count,
                member_count=member_count,
                timestamp=timestamp,
            ))
            db.commit()

    def record_server_update(
        self,
        guild_id: str,
        metrics: ServerMetrics,
        timestamp: int,
        raw_snapshot_json: str,
    ) -> None:
        # Single transaction: either both rows land or neither does.
        with self._session("record_server_update", guild_id) as db:
            if db.get(DiscordServer, guild_id) is None:
                raise StoreError(
                    "record_server_update",
                    "guild is no longer tracked",
                    guild_id=guild_id,
                )
            self._upsert(db, guild_id, metrics, timestamp, raw_snapshot_json, None)
            db.add(ServerHistory(
                guild_id=guild_id,
                presence_count=metrics.presence_count,
                member_count=metrics.member_count,
                timestamp=timestamp,
            ))
            db.commit()

    def compute_aggregates(self) -> AggregateTotals:
        with self._session("compute_aggregates") as db:
            total_members, total_presence, server_count = db.execute(
                select(
                    func.coalesce(func.sum(DiscordServer.member_count), 0),
                    func.coalesce(func.sum(DiscordServer.presence_count), 0),
                    func.count(DiscordServer.guild_id),
                )
            ).one()
        return AggregateTotals(
            total_members=int(total_members),
            total_presence=int(total_presence),
            server_count=int(server_count),
        )

    def append_hourly_summary(
        self, hour_bucket: int, totals: AggregateTotals, created_at: int,
    ) -> None:
        with self._session("append_hourly_summary") as db:
            db.add(HourlySummary(
                hour_timestamp=hour_bucket,
                total_members=totals.total_members,
                total_online=totals.total_presence,
                server_count=totals.server_count,
                created_at=created_at,
            ))
            db.commit()

    @staticmethod
    def _upsert(
        db: Session,
        guild_id: str,
        metrics: ServerMetrics,
        timestamp: int,
        raw_snapshot_json: str,
        invite_code: Optional[str],
    ) -> None:
        existing = db.get(DiscordServer, guild_id)
        if existing is None:
            if invite_code is None:
                raise StoreError(
                    "upsert_server_record",
                    "cannot create a record without an invite code",
                    guild_id=guild_id,
                )
            existing = DiscordServer(guild_id=guild_id, invite_code=invite_code)
            db.add(existing)
        existing.name = metrics.name
        existing.icon = metrics.icon
        existing.presence_count = metrics.presence_count
        existing.member_count = metrics.member_count
        existing.last_updated = timestamp
        existing.data_json = raw_snapshot_json

    # -----------------------------------------------------------------------
    # Read / management helpers (HTTP layer)
    # -----------------------------------------------------------------------

    def get_server(self, guild_id: str) -> DiscordServer:
        with self._session("get_server", guild_id) as db:
            row = db.get(DiscordServer, guild_id)
            if row is None:
                raise ServerNotFoundError(guild_id)
            db.expunge(row)
        return row

    def list_server_records(self) -> list[DiscordServer]:
        with self._session("list_server_records") as db:
            rows = list(db.scalars(select(DiscordServer).order_by(DiscordServer.guild_id)))
            db.expunge_all()
        return rows

    def list_history(self, guild_id: str, limit: int = 168) -> list[ServerHistory]:
        """Newest `limit` rows for a guild, returned oldest → newest."""
        with self._session("list_history", guild_id) as db:
            rows = list(db.scalars(
                select(ServerHistory)
                .where(ServerHistory.guild_id == guild_id)
                .order_by(ServerHistory.timestamp.desc(), ServerHistory.id.desc())
                .limit(limit)
            ))
            db.expunge_all()
        return list(reversed(rows))

    def list_hourly_summaries(self, limit: int = 24) -> list[HourlySummary]:
        """Newest `limit` summary rows, newest first."""
        with self._session("list_hourly_summaries") as db:
            rows = list(db.scalars(
                select(HourlySummary)
                .order_by(HourlySummary.created_at.desc(), HourlySummary.id.desc())
                .limit(limit)
            ))
            db.expunge_all()
        return rows

    def add_tracked_server(self, guild_id: str, invite_code: str) -> TrackedServer:
        with self._session("add_tracked_server", guild_id) as db:
            if db.get(DiscordServer, guild_id) is not None:
                raise ServerAlreadyTrackedError(guild_id)
            db.add(DiscordServer(guild_id=guild_id, invite_code=invite_code))
            db.commit()
        return TrackedServer(guild_id=guild_id, invite_code=invite_code)

    def remove_tracked_server(self, guild_id: str) -> None:
        """Stop tracking a guild. History rows are kept."""
        with self._session("remove_tracked_server", guild_id) as db:
            row = db.get(DiscordServer, guild_id)
            if row is None:
                raise ServerNotFoundError(guild_id)
            db.delete(row)
            db.commit()
