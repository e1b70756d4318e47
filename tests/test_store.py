"""
Tests for SqlStore against in-memory SQLite.
"""
import pytest
from sqlalchemy import select

from conftest import metrics_for, seed_servers, tracked
from discord_counter.core.errors import (
    ServerAlreadyTrackedError,
    ServerNotFoundError,
    StoreError,
)
from discord_counter.db.base import Base
from discord_counter.models.history import ServerHistory
from discord_counter.models.hourly_summary import HourlySummary
from discord_counter.models.server import DiscordServer
from discord_counter.services.types import AggregateTotals, ServerMetrics, TrackedServer


class TestListTrackedServers:
    def test_empty(self, store):
        assert store.list_tracked_servers() == []

    def test_ordered_by_guild_id(self, store, session_factory):
        seed_servers(session_factory, [
            TrackedServer("300", "c"), TrackedServer("100", "a"), TrackedServer("200", "b"),
        ])
        assert store.list_tracked_servers() == [
            TrackedServer("100", "a"), TrackedServer("200", "b"), TrackedServer("300", "c"),
        ]

    def test_missing_table_raises_store_error(self, store, engine):
        Base.metadata.drop_all(bind=engine)
        with pytest.raises(StoreError) as exc_info:
            store.list_tracked_servers()
        assert exc_info.value.operation == "list_tracked_servers"
        assert exc_info.value.code == "STORE_ERROR"
        Base.metadata.create_all(bind=engine)


class TestUpsertServerRecord:
    def test_updates_existing_row(self, store, session_factory, db):
        seed_servers(session_factory, [TrackedServer("1", "inv")])
        metrics = metrics_for("1")
        store.upsert_server_record("1", metrics, 1_000, metrics.to_json())

        row = db.get(DiscordServer, "1")
        assert row.name == "Server 1"
        assert row.icon == "icon-1"
        assert row.member_count == 100
        assert row.presence_count == 10
        assert row.last_updated == 1_000
        assert row.data_json == metrics.to_json()
        assert row.invite_code == "inv"

    def test_identical_upsert_is_idempotent(self, store, session_factory, db):
        seed_servers(session_factory, [TrackedServer("1", "inv")])
        metrics = metrics_for("1")
        store.upsert_server_record("1", metrics, 1_000, metrics.to_json())
        store.upsert_server_record("1", metrics, 1_000, metrics.to_json())

        rows = db.scalars(select(DiscordServer)).all()
        assert len(rows) == 1
        assert (rows[0].name, rows[0].member_count, rows[0].last_updated) == ("Server 1", 100, 1_000)

    def test_overwrites_previous_metrics(self, store, session_factory, db):
        seed_servers(session_factory, [TrackedServer("1", "inv")])
        store.upsert_server_record("1", metrics_for("1"), 1_000, "{}")
        newer = ServerMetrics(name="Renamed", icon=None, presence_count=3, member_count=4)
        store.upsert_server_record("1", newer, 2_000, newer.to_json())

        row = db.get(DiscordServer, "1")
        assert (row.name, row.icon, row.presence_count, row.member_count) == ("Renamed", None, 3, 4)
        assert row.last_updated == 2_000

    def test_inserts_when_invite_code_given(self, store, db):
        store.upsert_server_record("9", metrics_for("9"), 1_000, "{}", invite_code="inv9")
        row = db.get(DiscordServer, "9")
        assert row.invite_code == "inv9"
        assert row.member_count == 900

    def test_insert_without_invite_code_fails(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.upsert_server_record("9", metrics_for("9"), 1_000, "{}")
        assert exc_info.value.guild_id == "9"


class TestHistory:
    def test_two_appends_two_rows(self, store, db):
        store.append_history_entry("1", 10, 100, 1_000)
        store.append_history_entry("1", 10, 100, 1_000)
        rows = db.scalars(select(ServerHistory)).all()
        assert len(rows) == 2
        assert rows[0].id != rows[1].id

    def test_list_history_oldest_first_with_limit(self, store):
        for ts in (300, 100, 200, 400):
            store.append_history_entry("1", ts, ts * 10, ts)
        store.append_history_entry("2", 1, 1, 250)

        points = store.list_history("1", limit=3)
        assert [p.timestamp for p in points] == [200, 300, 400]


class TestRecordServerUpdate:
    def test_writes_record_and_history(self, store, session_factory, db):
        seed_servers(session_factory, [TrackedServer("1", "inv")])
        metrics = metrics_for("1")
        store.record_server_update("1", metrics, 1_234, metrics.to_json())

        assert db.get(DiscordServer, "1").member_count == 100
        history = db.scalars(select(ServerHistory)).all()
        assert [(h.guild_id, h.presence_count, h.member_count, h.timestamp) for h in history] == [
            ("1", 10, 100, 1_234),
        ]

    def test_unknown_guild_is_not_created(self, store, db):
        with pytest.raises(StoreError) as exc_info:
            store.record_server_update("404", metrics_for("404"), 1_234, "{}")
        assert exc_info.value.guild_id == "404"
        assert db.get(DiscordServer, "404") is None
        assert db.scalars(select(ServerHistory)).all() == []


class TestAggregates:
    def test_empty_table(self, store):
        assert store.compute_aggregates() == AggregateTotals(0, 0, 0)

    def test_never_fetched_servers_count_but_add_nothing(self, store, session_factory):
        seed_servers(session_factory, tracked(3))
        store.upsert_server_record("0001", metrics_for("0001"), 1, "{}")
        store.upsert_server_record("0002", metrics_for("0002"), 1, "{}")
        assert store.compute_aggregates() == AggregateTotals(
            total_members=300, total_presence=30, server_count=3,
        )

    def test_append_hourly_summary(self, store, db):
        store.append_hourly_summary(3_600, AggregateTotals(10, 5, 2), 3_700)
        store.append_hourly_summary(3_600, AggregateTotals(11, 6, 2), 3_900)
        rows = db.scalars(select(HourlySummary).order_by(HourlySummary.id)).all()
        assert len(rows) == 2
        assert (rows[0].hour_timestamp, rows[0].total_members, rows[0].total_online,
                rows[0].server_count, rows[0].created_at) == (3_600, 10, 5, 2, 3_700)

        latest = store.list_hourly_summaries(limit=1)
        assert [r.created_at for r in latest] == [3_900]


class TestTrackedServerManagement:
    def test_add_and_get(self, store):
        store.add_tracked_server("42", "abc")
        row = store.get_server("42")
        assert row.invite_code == "abc"
        assert row.name is None

    def test_add_duplicate(self, store):
        store.add_tracked_server("42", "abc")
        with pytest.raises(ServerAlreadyTrackedError):
            store.add_tracked_server("42", "xyz")

    def test_remove_keeps_history(self, store, db):
        store.add_tracked_server("42", "abc")
        store.append_history_entry("42", 1, 2, 3)
        store.remove_tracked_server("42")
        assert store.list_tracked_servers() == []
        assert len(db.scalars(select(ServerHistory)).all()) == 1

    def test_remove_unknown(self, store):
        with pytest.raises(ServerNotFoundError):
            store.remove_tracked_server("nope")

    def test_get_unknown(self, store):
        with pytest.raises(ServerNotFoundError):
            store.get_server("nope")
