import asyncio
import logging
from typing import Optional

from fastapi import FastAPI

from loanadmin.core.settings import settings
from loanadmin.db.init_db import init_db
from loanadmin.db.session import AsyncSessionLocal
from loanadmin.services.record_store import SqlAlchemyRecordStore
from loanadmin.services.verification import VerificationEngine, run_cleanup_sweep

logger = logging.getLogger(__name__)


async def sweep_once() -> Optional[int]:
    async with AsyncSessionLocal() as session:
        return await run_cleanup_sweep(VerificationEngine(SqlAlchemyRecordStore(session)))


async def cleanup_loop(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        deleted = await sweep_once()
        if deleted:
            logger.info("Cleanup sweep removed %s expired verification(s)", deleted)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup")
        await init_db()
        app.state.cleanup_task = None
        if settings.verification_cleanup_interval_seconds > 0:
            app.state.cleanup_task = asyncio.create_task(
                cleanup_loop(settings.verification_cleanup_interval_seconds)
            )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        task = getattr(app.state, "cleanup_task", None)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
