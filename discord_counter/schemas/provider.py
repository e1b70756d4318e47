"""
Apify actor response schema.

POST /v2/acts/{actor_id}/runs → ApifyRunResponse

Strict policy: a response that is missing the guild block, the guild name or
either count is invalid and is treated as a failed attempt. Counts must be
JSON integers; strings and booleans are rejected rather than coerced.
Nothing is defaulted to 0 or "Unknown Server". Only `icon` is optional.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from discord_counter.services.types import ServerMetrics


class ApifyGuild(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    icon: Optional[str] = None


class ApifyGuildData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    guild: ApifyGuild
    # strict: "25" or true is a malformed count, not 25 or 1
    presence_count: int = Field(ge=0, strict=True)
    member_count: int = Field(ge=0, strict=True)


class ApifyRunResponse(BaseModel):
    """Envelope returned by the actor. Either `data` or `error` is set."""
    model_config = ConfigDict(extra="ignore")

    data: Optional[ApifyGuildData] = None
    error: Optional[str] = None

    def to_metrics(self) -> ServerMetrics:
        if self.data is None:
            raise ValueError("Invalid API response: missing guild data")
        return ServerMetrics(
            name=self.data.guild.name,
            icon=self.data.guild.icon,
            presence_count=self.data.presence_count,
            member_count=self.data.member_count,
        )
