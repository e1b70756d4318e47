"""
Plain value types shared by the sync pipeline (no ORM, no Pydantic).

TrackedServer   — input of a cycle (guild id + invite code)
ServerMetrics   — what one successful fetch yields
FetchFailure    — what an exhausted fetch yields instead of raising
AggregateTotals — sums across every tracked server
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class TrackedServer:
    guild_id: str
    invite_code: str


@dataclass(frozen=True)
class ServerMetrics:
    name: str
    icon: Optional[str]
    presence_count: int
    member_count: int

    def to_json(self) -> str:
        """Serialized form stored verbatim in discord_servers.data_json."""
        return json.dumps(asdict(self))


@dataclass(frozen=True)
class FetchFailure:
    guild_id: str
    attempts: int
    error: str


FetchOutcome = Union[ServerMetrics, FetchFailure]


@dataclass(frozen=True)
class AggregateTotals:
    total_members: int
    total_presence: int
    server_count: int
