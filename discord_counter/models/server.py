"""
DiscordServer — one row per tracked guild.

guild_id + invite_code are the tracked-server input; everything else is the
cached result of the latest successful fetch and stays NULL until then.
A failed fetch never touches the row.
"""
from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from discord_counter.db.base import Base


class DiscordServer(Base):
    __tablename__ = "discord_servers"

    guild_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    invite_code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(255), nullable=True)
    presence_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    member_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_updated: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True,
        comment="Unix seconds of the last successful fetch",
    )
    data_json: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="Verbatim JSON of the last fetched metrics",
    )
