import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient
import pytest

from loanadmin import events
from loanadmin.core.settings import settings


@pytest.fixture
def _no_seed(monkeypatch):
    seeded = []

    async def fake_init_db():
        seeded.append(True)

    monkeypatch.setattr(events, "init_db", fake_init_db)
    return seeded


def test_startup_seeds_and_starts_cleanup_task(_no_seed, monkeypatch):
    monkeypatch.setattr(settings, "verification_cleanup_interval_seconds", 3600)
    app = FastAPI()
    events.register_event_handlers(app)

    with TestClient(app):
        task = app.state.cleanup_task
        assert task is not None
        assert not task.done()

    assert _no_seed == [True]
    assert task.cancelled()


def test_cleanup_task_disabled_when_interval_is_zero(_no_seed, monkeypatch):
    monkeypatch.setattr(settings, "verification_cleanup_interval_seconds", 0)
    app = FastAPI()
    events.register_event_handlers(app)

    with TestClient(app):
        assert app.state.cleanup_task is None


@pytest.mark.asyncio
async def test_cleanup_loop_sweeps_until_cancelled(monkeypatch):
    calls = []

    async def fake_sweep():
        calls.append(True)
        return 2

    monkeypatch.setattr(events, "sweep_once", fake_sweep)
    task = asyncio.create_task(events.cleanup_loop(0))
    while len(calls) < 3:
        await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
