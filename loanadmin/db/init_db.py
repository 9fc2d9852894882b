import asyncio
import logging

from loanadmin.db.session import AsyncSessionLocal
from loanadmin.services.record_store import SqlAlchemyRecordStore
from loanadmin.services.subscription import seed_subscription_plans

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    Seed the subscription plan catalogue.
    """
    async with AsyncSessionLocal() as session:
        logger.info("Seeding subscription plans")
        seeded = await seed_subscription_plans(SqlAlchemyRecordStore(session))
        logger.info("Subscription plans ready: %s", ", ".join(sorted(seeded)))


if __name__ == "__main__":
    asyncio.run(init_db())
