"""
HourlySummary — totals across all tracked servers, one row per sync cycle.

Append-only. hour_timestamp is the cycle time rounded down to the hour, so
several cycles inside the same hour produce several rows with the same bucket.
"""
from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from discord_counter.db.base import Base


class HourlySummary(Base):
    __tablename__ = "discord_server_hourly_summary"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hour_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    total_members: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_online: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0,
        comment="Sum of presence_count",
    )
    server_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
