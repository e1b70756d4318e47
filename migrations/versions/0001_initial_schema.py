"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

discord_servers                 — tracked guilds + latest fetched metadata
discord_server_history          — append-only per-guild time series
discord_server_hourly_summary   — append-only totals, one row per sync cycle
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- discord_servers ---
    op.create_table(
        "discord_servers",
        sa.Column("guild_id", sa.String(32), nullable=False),
        sa.Column("invite_code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("icon", sa.String(255), nullable=True),
        sa.Column("presence_count", sa.Integer(), nullable=True),
        sa.Column("member_count", sa.Integer(), nullable=True),
        sa.Column("last_updated", sa.BigInteger(), nullable=True),
        sa.Column("data_json", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("guild_id"),
    )

    # --- discord_server_history ---
    op.create_table(
        "discord_server_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.String(32), nullable=False),
        sa.Column("presence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_history_guild_timestamp",
        "discord_server_history",
        ["guild_id", "timestamp"],
    )

    # --- discord_server_hourly_summary ---
    op.create_table(
        "discord_server_hourly_summary",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("hour_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("total_members", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_online", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("server_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_discord_server_hourly_summary_hour_timestamp",
        "discord_server_hourly_summary",
        ["hour_timestamp"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_discord_server_hourly_summary_hour_timestamp",
        table_name="discord_server_hourly_summary",
    )
    op.drop_table("discord_server_hourly_summary")
    op.drop_index("ix_history_guild_timestamp", table_name="discord_server_history")
    op.drop_table("discord_server_history")
    op.drop_table("discord_servers")
