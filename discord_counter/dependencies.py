"""
FastAPI dependencies for the objects built in the application lifespan.

Tests swap these out through `app.dependency_overrides`.
"""
from fastapi import Request

from discord_counter.services.runner import SyncRunner
from discord_counter.services.store import SqlStore
from discord_counter.services.sync import SyncOrchestrator


def get_store(request: Request) -> SqlStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator_factory()


def get_runner(request: Request) -> SyncRunner:
    return request.app.state.runner
