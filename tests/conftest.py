import os
import sys

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.database import Base
import app.models  # noqa: F401  registers the tables on Base.metadata
from app.core.redis import RedisClient
from app.services.bind9_service import ResolverSync
from app.services.zone_service import ZoneSynthesizer
from tests.factories import StubControl


@pytest.fixture
def synthesizer():
    return ZoneSynthesizer(serial=2023080701, nameserver_ip="127.0.0.1", default_ttl=86400)


@pytest.fixture
def control():
    return StubControl()


@pytest.fixture
def resolver_sync(tmp_path, control):
    return ResolverSync(
        zone_dir=str(tmp_path / "zones"),
        named_conf_path=str(tmp_path / "named.conf.local"),
        control=control,
        redis=RedisClient(),
        lock_timeout=5,
    )


@pytest.fixture
async def session_factory(tmp_path):
    """Sessions on a fresh SQLite database with every table created"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
