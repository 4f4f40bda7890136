"""Explicit process context: settings plus the store handle.

Built once per process (FastAPI lifespan, scripts, tests) and passed to the
services instead of living in module globals.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from .config import Settings, load_settings
from .db import Database
from .services.rating import EloPolicy


@dataclass
class AppContext:
    settings: Settings
    database: Database

    @property
    def elo_policy(self) -> EloPolicy:
        return self.settings.elo_policy

    async def dispose(self) -> None:
        await self.database.dispose()


def build_context(settings: Settings | None = None) -> AppContext:
    settings = settings or load_settings()
    return AppContext(settings=settings, database=Database(settings.database_url))


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context attached during startup."""

    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("application context is not initialised")
    return context
