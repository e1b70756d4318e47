"""
Tracked server / statistics schemas.

GET    /servers                       → list[ServerOut]
POST   /servers                       → ServerOut (201)
GET    /servers/{guild_id}/history    → list[HistoryPointOut]
GET    /stats/hourly                  → list[HourlySummaryOut]
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrackServerRequest(BaseModel):
    """A guild to add to the refresh cycle."""
    guild_id: Annotated[str, Field(
        min_length=1,
        max_length=32,
        pattern=r"^\d+$",
        description="Discord guild snowflake id.",
        examples=["613425648685547541"],
    )]
    invite_code: Annotated[str, Field(
        min_length=1,
        max_length=64,
        description="Invite code the actor resolves the guild from.",
        examples=["discord-developers"],
    )]

    @field_validator("invite_code", mode="before")
    @classmethod
    def strip_invite_url(cls, v: str) -> str:
        if not isinstance(v, str):
            return v
        stripped = v.strip()
        for prefix in ("https://discord.gg/", "http://discord.gg/", "discord.gg/"):
            if stripped.startswith(prefix):
                stripped = stripped[len(prefix):]
        if not stripped:
            raise ValueError("invite_code must not be empty")
        return stripped


class ServerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    guild_id: str
    invite_code: str
    name: Optional[str] = None
    icon: Optional[str] = None
    presence_count: Optional[int] = None
    member_count: Optional[int] = None
    last_updated: Optional[int] = Field(default=None, description="Unix seconds.")


class HistoryPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    presence_count: int
    member_count: int
    timestamp: int


class HourlySummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hour_timestamp: int
    total_members: int
    total_online: int
    server_count: int
    created_at: int
