"""Tests for BackgroundRunner."""

from __future__ import annotations

import asyncio

import pytest

from quarry.db.models import Area
from quarry.worker import BackgroundRunner


@pytest.mark.asyncio
async def test_job_runs_on_its_own_connection(db, repo):
    runner = BackgroundRunner(db)
    seen = {}

    async def job(job_repo, name):
        seen["repo"] = job_repo
        seen["area_id"] = job_repo.add_area(Area(name=name))

    runner.submit(job, "Contracts")
    await runner.drain()

    assert seen["repo"] is not repo
    # Committed by the job's connection, visible to the caller's
    assert repo.get_area(seen["area_id"]).name == "Contracts"


@pytest.mark.asyncio
async def test_submit_returns_before_job_finishes(db):
    runner = BackgroundRunner(db)
    release = asyncio.Event()
    finished = []

    async def job(job_repo):
        await release.wait()
        finished.append(True)

    task = runner.submit(job, name="waiting-job")
    assert task.get_name() == "waiting-job"
    assert runner.pending == 1
    assert finished == []

    release.set()
    await runner.drain()
    assert finished == [True]
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_job_exception_does_not_propagate(db):
    runner = BackgroundRunner(db)
    ran_after = []

    async def failing(job_repo):
        raise RuntimeError("boom")

    async def ok(job_repo):
        ran_after.append(True)

    task = runner.submit(failing)
    runner.submit(ok)
    await runner.drain()

    assert task.exception() is None
    assert ran_after == [True]


@pytest.mark.asyncio
async def test_drain_waits_for_jobs_submitted_by_jobs(db):
    runner = BackgroundRunner(db)
    order = []

    async def child(job_repo):
        order.append("child")

    async def parent(job_repo):
        order.append("parent")
        runner.submit(child)

    runner.submit(parent)
    await runner.drain()
    assert order == ["parent", "child"]


@pytest.mark.asyncio
async def test_drain_with_nothing_pending(db):
    await BackgroundRunner(db).drain()
