"""Detached background runs that own their own database connection.

A run triggered by a caller (an upload, a chat message) must outlive that
caller and must not touch the caller's connection. ``BackgroundRunner``
turns each submitted job into an asyncio task that opens a fresh
connection, hands the job a Repository bound to it, and closes it when the
job ends, successfully or not.

Job errors never propagate back to the submitter. Orchestrators report their
own failures through document status and events; anything that still
escapes a job is logged here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from quarry.db.connection import Database
from quarry.db.repository import Repository

Job = Callable[..., Awaitable[Any]]


class BackgroundRunner:
    """Submit jobs as independent tasks, one database connection per job.

    Args:
        db: Database handle; ``connect()`` is called once per job.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._tasks: set[asyncio.Task] = set()

    def submit(self, job: Job, *args: Any, name: str | None = None) -> asyncio.Task:
        """Schedule ``job(repo, *args)`` and return immediately.

        Must be called from inside a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self._run(job, args), name=name)
        # Keep a strong reference until completion; the loop only holds weak ones.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every submitted job (including ones submitted meanwhile) ends."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, job: Job, args: tuple[Any, ...]) -> None:
        job_name = getattr(job, "__qualname__", repr(job))
        conn = await asyncio.to_thread(self._db.connect)
        try:
            await job(Repository(conn), *args)
        except Exception:
            logger.exception(f"Background job {job_name}{args} failed")
        finally:
            conn.close()
