import asyncio
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import worker_session

T = TypeVar("T")


def backoff_delay(retries: int) -> int:
    """Seconds before the next attempt: base, 2x base, 4x base..."""
    return settings.RETRY_BACKOFF_SECONDS * (2 ** retries)


def run_with_session(job: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run an async job with its own session inside a fresh event loop."""

    async def _runner() -> T:
        async with worker_session() as db:
            return await job(db)

    return asyncio.run(_runner())
