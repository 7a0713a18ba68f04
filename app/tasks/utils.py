"""Database access for Celery tasks"""
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from app.core.config import settings


def create_task_db_session():
    """Return ``(engine, session_factory)`` bound to the running event loop.

    Tasks run with asyncio.run() on a fresh loop and asyncpg connections belong
    to the loop that opened them, so the engine in app.core.database is off
    limits here. Callers dispose the engine when the task ends.
    """
    task_engine = create_async_engine(
        settings.DATABASE_URL,
        pool_size=2,
        max_overflow=0,
        echo=settings.DEBUG,
    )
    return task_engine, async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)
