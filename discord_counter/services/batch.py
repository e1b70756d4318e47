"""
Batch coordinator: paces provider calls in fixed-size groups.

  group 0 ──gather──▶ cooldown ──▶ group 1 ──gather──▶ cooldown ──▶ … ──▶ last group

Within a group every fetch runs concurrently; the next group starts only
when all fetches of the current one have settled. No cooldown after the
last group.

Result map: one key per attempted server. A value of None means the fetch
was attempted and gave no data (retries exhausted, or an unexpected error,
which is logged); a missing key means the server was never attempted.
A failing fetch never cancels its siblings.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from discord_counter.core.logging import BoundLogger, get_logger
from discord_counter.services.fetcher import RemoteFetcher
from discord_counter.services.types import FetchFailure, ServerMetrics, TrackedServer

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 10
DEFAULT_COOLDOWN = 30.0


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split `items` into contiguous groups of `size`, preserving order."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchCoordinator:
    def __init__(
        self,
        fetcher: RemoteFetcher,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cooldown: float = DEFAULT_COOLDOWN,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[BoundLogger] = None,
    ):
        self.fetcher = fetcher
        self.batch_size = batch_size
        self.cooldown = cooldown
        self.sleep = sleep
        self.logger = logger or get_logger(__name__)

    def with_context(self, **context) -> "BatchCoordinator":
        """Coordinator (and its fetcher) whose logs carry `context`."""
        return BatchCoordinator(
            fetcher=self.fetcher.with_context(**context),
            batch_size=self.batch_size,
            cooldown=self.cooldown,
            sleep=self.sleep,
            logger=self.logger.bind(**context),
        )

    async def fetch_all(
        self, servers: Sequence[TrackedServer],
    ) -> dict[str, Optional[ServerMetrics]]:
        results: dict[str, Optional[ServerMetrics]] = {}
        groups = partition(servers, self.batch_size)

        for index, group in enumerate(groups):
            self.logger.bind(
                batch_index=index,
                batch_size=len(group),
                total_servers=len(servers),
            ).info("Processing server batch")

            outcomes = await asyncio.gather(
                *(self.fetcher.fetch(server) for server in group),
                return_exceptions=True,
            )
            for server, outcome in zip(group, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    self.logger.bind(guild_id=server.guild_id).error(
                        "Unexpected error fetching server data",
                        exc_info=outcome,
                    )
                    outcome = None
                elif isinstance(outcome, FetchFailure):
                    outcome = None
                results[server.guild_id] = outcome

            if index < len(groups) - 1:
                await self.sleep(self.cooldown)

        return results
