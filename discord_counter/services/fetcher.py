"""
Remote fetcher: one Apify actor call per tracked server, with retry/backoff.

Public API
----------
RemoteFetcher.fetch(server)  → ServerMetrics | FetchFailure   (never raises)

Internal
--------
_attempt(server)             → ServerMetrics   (raises TransientFetchError)

Retry policy: `max_retries` retries after the first attempt, waiting
base_delay * 2**n seconds before retry n+1 (2s, 4s, 8s by default).
Waits go through the injected `sleep` coroutine so tests can record them.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from discord_counter.core.errors import TransientFetchError
from discord_counter.core.logging import BoundLogger, get_logger
from discord_counter.schemas.provider import ApifyRunResponse
from discord_counter.services.types import FetchFailure, FetchOutcome, ServerMetrics, TrackedServer

Sleep = Callable[[float], Awaitable[None]]

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 2.0


class RemoteFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        actor_id: str,
        base_url: str = "https://api.apify.com/v2",
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[BoundLogger] = None,
    ):
        self.client = client
        self.token = token
        self.actor_id = actor_id
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self.sleep = sleep
        self.logger = logger or get_logger(__name__)

    @property
    def url(self) -> str:
        return f"{self.base_url}/acts/{self.actor_id}/runs"

    def backoff_delay(self, retry: int) -> float:
        """Seconds to wait before retry number `retry + 1`."""
        return self.base_delay * (2 ** retry)

    def with_context(self, **context) -> "RemoteFetcher":
        """Same fetcher, with `context` (e.g. a cycle id) added to its logs."""
        return RemoteFetcher(
            client=self.client,
            token=self.token,
            actor_id=self.actor_id,
            base_url=self.base_url,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            timeout=self.timeout,
            sleep=self.sleep,
            logger=self.logger.bind(**context),
        )

    async def fetch(self, server: TrackedServer) -> FetchOutcome:
        log = self.logger.bind(guild_id=server.guild_id, invite_code=server.invite_code)
        retry = 0
        while True:
            attempt_log = log.bind(retry=retry)
            attempt_log.debug("Fetching server data from Apify")
            try:
                return await self._attempt(server)
            except TransientFetchError as exc:
                attempt_log.error("Error fetching server data: %s", exc.message)
                if retry >= self.max_retries:
                    log.error(
                        "Giving up on server after %d attempts", retry + 1,
                    )
                    return FetchFailure(
                        guild_id=server.guild_id,
                        attempts=retry + 1,
                        error=exc.message,
                    )
                await self.sleep(self.backoff_delay(retry))
                retry += 1

    async def _attempt(self, server: TrackedServer) -> ServerMetrics:
        request_kwargs: dict = {}
        if self.timeout is not None:
            request_kwargs["timeout"] = self.timeout
        try:
            response = await self.client.post(
                self.url,
                json={"guildId": server.guild_id, "inviteCode": server.invite_code},
                headers={"Authorization": f"Bearer {self.token}"},
                **request_kwargs,
            )
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"Apify request failed: {exc!r}") from exc

        if not response.is_success:
            raise TransientFetchError(
                f"Apify API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransientFetchError("Apify API returned a non-JSON body") from exc

        if isinstance(body, dict) and body.get("error"):
            raise TransientFetchError(f"Apify actor error: {body['error']}")

        try:
            return ApifyRunResponse.model_validate(body).to_metrics()
        except (ValidationError, ValueError) as exc:
            raise TransientFetchError(f"Invalid API response: {exc}") from exc
