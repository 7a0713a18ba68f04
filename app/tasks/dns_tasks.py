"""DNS load balancer background tasks"""
import asyncio
import logging

from app.tasks import celery_app
from app.tasks.utils import create_task_db_session
from app.core.redis import redis_client
from app.services.dns_load_balancer import build_load_balancer_service
from app.services.load_balancer_repository import session_repository

logger = logging.getLogger(__name__)


async def _with_service(operation):
    """Run ``operation(service)`` against a task-local engine"""
    task_engine, session_factory = create_task_db_session()
    await redis_client.connect()
    try:
        service = build_load_balancer_service(session_repository(session_factory))
        return await operation(service)
    finally:
        await redis_client.disconnect()
        await task_engine.dispose()


@celery_app.task(name="app.tasks.dns.resync_zones")
def resync_zones():
    """Regenerate every zone file and reload Bind9"""
    result = asyncio.run(_with_service(lambda service: service.resync_all()))
    logger.info(f"Zone resync wrote {len(result.domains_written)} zone(s)")
    return result.model_dump()


@celery_app.task(name="app.tasks.dns.check_load_balancer")
def check_load_balancer(load_balancer_id: int):
    """Health check one load balancer and resync its domain"""
    result = asyncio.run(_with_service(lambda service: service.update_dns(load_balancer_id)))
    return result.model_dump()
