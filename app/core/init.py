"""Startup checks for the database and the BIND9 zone directory"""
import asyncio
import logging
import os

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import AsyncSessionLocal, engine, Base
import app.models  # Register all models

logger = logging.getLogger(__name__)


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def check_database_connection() -> bool:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        return False
    return True


def prepare_zone_directory(zone_dir: str = None) -> bool:
    """Make sure zone files can be written before the first health check cycle"""
    zone_dir = zone_dir or settings.BIND_ZONE_DIR
    try:
        os.makedirs(zone_dir, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create zone directory {zone_dir}: {e}")
        return False
    if not os.access(zone_dir, os.W_OK):
        logger.error(f"Zone directory {zone_dir} is not writable")
        return False
    return True


async def init_system() -> bool:
    """Run on startup; a failed check is logged and startup continues"""
    logger.info("Initializing zone balancer...")

    if not await check_database_connection():
        return False

    try:
        await create_tables()
    except SQLAlchemyError as e:
        logger.warning(f"Table creation skipped: {e}")

    # Zone sync failures are reported per cycle; this only surfaces them early
    prepare_zone_directory()
    return True


if __name__ == "__main__":
    asyncio.run(init_system())
