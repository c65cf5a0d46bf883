"""Utility functions for commands."""

import asyncio
from typing import Awaitable, TypeVar

from pgvector_store import db

T = TypeVar("T")


def run_with_cleanup(coroutine: Awaitable[T]) -> T:
    """Run a coroutine and dispose the database engine before the loop closes."""

    async def _run() -> T:
        try:
            return await coroutine
        finally:
            await db.shutdown_db()

    return asyncio.run(_run())
