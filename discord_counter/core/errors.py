"""
Custom exception hierarchy for the Discord Counter service.

Rule: every error has a machine-readable `code` string so clients (and the
scheduler's logs) can branch on it without parsing English messages.

Taxonomy
--------
TransientFetchError  — provider call failed; retried, then surfaces as "no data".
StoreError           — database read/write failed; fatal for load/aggregate steps,
                       counted per server during persistence.
ConfigurationError   — missing provider credentials; fatal at startup.
SyncCycleError       — a whole cycle failed; what the trigger endpoint reports.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class CounterException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationError(CounterException):
    code = "CONFIGURATION_ERROR"

    def __init__(self, missing: list[str]):
        super().__init__(
            message=f"Missing required settings: {', '.join(missing)}.",
            details={"missing": missing},
        )


class StoreError(CounterException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_ERROR"

    def __init__(self, operation: str, message: str, guild_id: str | None = None):
        details: dict[str, Any] = {"operation": operation}
        if guild_id is not None:
            details["guild_id"] = guild_id
        super().__init__(message=f"{operation} failed: {message}", details=details)
        self.operation = operation
        self.guild_id = guild_id


class TransientFetchError(CounterException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "FETCH_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message=message,
            details={"status_code": status_code} if status_code is not None else {},
        )
        self.status_code = status_code


class SyncCycleError(CounterException):
    code = "SYNC_FAILED"

    def __init__(self, cycle_id: str, state: str, message: str):
        super().__init__(
            message=f"Sync cycle failed during {state}: {message}",
            details={"cycle_id": cycle_id, "state": state},
        )
        self.cycle_id = cycle_id
        self.state = state


class JobNotFoundError(CounterException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Sync job {job_id} does not exist.",
            details={"job_id": job_id},
        )


class ServerNotFoundError(CounterException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SERVER_NOT_FOUND"

    def __init__(self, guild_id: str):
        super().__init__(
            message=f"Guild {guild_id} is not tracked.",
            details={"guild_id": guild_id},
        )


class ServerAlreadyTrackedError(CounterException):
    http_status = status.HTTP_409_CONFLICT
    code = "SERVER_ALREADY_TRACKED"

    def __init__(self, guild_id: str):
        super().__init__(
            message=f"Guild {guild_id} is already tracked.",
            details={"guild_id": guild_id},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def counter_exception_handler(request: Request, exc: CounterException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
