#!/usr/bin/env python3
"""
Delete expired, still-pending verification records once.

Verified records are never touched. Intended for cron/job runners when the
in-process sweep is disabled (VERIFICATION_CLEANUP_INTERVAL_SECONDS=0).

Usage:
    python scripts/cleanup_verifications.py
"""

from __future__ import annotations

import asyncio
import logging
import sys

from loanadmin.core.logging import configure_logging
from loanadmin.db.session import AsyncSessionLocal
from loanadmin.services.record_store import SqlAlchemyRecordStore
from loanadmin.services.verification import VerificationEngine, run_cleanup_sweep

logger = logging.getLogger("cleanup_verifications")


async def main() -> int:
    configure_logging()
    async with AsyncSessionLocal() as session:
        deleted = await run_cleanup_sweep(VerificationEngine(SqlAlchemyRecordStore(session)))
    if deleted is None:
        return 1
    logger.info("Removed %s expired verification record(s)", deleted)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
