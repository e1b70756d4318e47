"""
ServerHistory — member/presence time series.

Append-only. One row per successful fetch per cycle; never updated or deleted.
"""
from sqlalchemy import BigInteger, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from discord_counter.db.base import Base


class ServerHistory(Base):
    __tablename__ = "discord_server_history"
    __table_args__ = (
        Index("ix_history_guild_timestamp", "guild_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    presence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
