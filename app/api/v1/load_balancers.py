"""DNS load balancer endpoints"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_subject, get_load_balancer_service
from app.core.database import get_db
from app.core.exceptions import LoadBalancerNotFound, SyncFailure
from app.schemas.load_balancer import (
    DNSLoadBalancerCreate,
    DNSLoadBalancerResponse,
    DNSServerCreate,
    DNSServerResponse,
    LoadBalancerStatus,
    PropagationResult,
    ServerCheckResult,
    ZoneSyncResult,
)
from app.services.dns_load_balancer import DNSLoadBalancerService
from app.services.load_balancer_repository import LoadBalancerRepository
from app.tasks.dns_tasks import resync_zones

router = APIRouter()
logger = logging.getLogger(__name__)


def _not_found(exc: LoadBalancerNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _sync_failed(exc: SyncFailure) -> HTTPException:
    logger.error(f"Zone sync failed: {exc}")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/", response_model=List[DNSLoadBalancerResponse])
async def list_load_balancers(
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """List all DNS load balancers"""
    return await LoadBalancerRepository(db).list_balancers()


@router.get("/domain/{domain_id}", response_model=List[DNSLoadBalancerResponse])
async def list_domain_load_balancers(
    domain_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """List DNS load balancers of a domain"""
    return await LoadBalancerRepository(db).list_balancers(domain_id=domain_id)


@router.post("/", response_model=DNSLoadBalancerResponse, status_code=status.HTTP_201_CREATED)
async def create_load_balancer(
    data: DNSLoadBalancerCreate,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Create DNS load balancer"""
    repo = LoadBalancerRepository(db)
    if await repo.get_domain(data.domain_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Domain not found")
    return await repo.create_balancer(data)


@router.delete("/{load_balancer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_load_balancer(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Delete DNS load balancer and its servers"""
    if not await LoadBalancerRepository(db).delete_balancer(load_balancer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Load balancer not found")
    resync_zones.delay()


@router.post("/{load_balancer_id}/servers", response_model=DNSServerResponse, status_code=status.HTTP_201_CREATED)
async def add_server(
    load_balancer_id: int,
    data: DNSServerCreate,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Add a server to a load balancer"""
    repo = LoadBalancerRepository(db)
    if await repo.get_balancer(load_balancer_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Load balancer not found")
    return await repo.add_server(load_balancer_id, data)


@router.delete("/{load_balancer_id}/servers/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    load_balancer_id: int,
    server_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Remove a server from a load balancer"""
    if not await LoadBalancerRepository(db).delete_server(load_balancer_id, server_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
    resync_zones.delay()


@router.get("/{load_balancer_id}/status", response_model=LoadBalancerStatus)
async def get_load_balancer_status(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    service: DNSLoadBalancerService = Depends(get_load_balancer_service)
):
    """Server health summary"""
    try:
        return await service.get_status_summary(load_balancer_id)
    except LoadBalancerNotFound as e:
        raise _not_found(e)


@router.post("/{load_balancer_id}/health-check", response_model=List[ServerCheckResult])
async def run_health_check(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    service: DNSLoadBalancerService = Depends(get_load_balancer_service)
):
    """Manual health check"""
    try:
        return await service.trigger_health_check(load_balancer_id)
    except LoadBalancerNotFound as e:
        raise _not_found(e)


@router.post("/{load_balancer_id}/resync", response_model=ZoneSyncResult)
async def resync_load_balancer(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    service: DNSLoadBalancerService = Depends(get_load_balancer_service)
):
    """Rebuild and reload the balancer's zone from stored health"""
    try:
        return await service.trigger_zone_resync(load_balancer_id)
    except LoadBalancerNotFound as e:
        raise _not_found(e)
    except SyncFailure as e:
        raise _sync_failed(e)


@router.post("/{load_balancer_id}/update-dns", response_model=ZoneSyncResult)
async def update_dns(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    service: DNSLoadBalancerService = Depends(get_load_balancer_service)
):
    """Health check, then rebuild and reload the balancer's zone"""
    try:
        return await service.update_dns(load_balancer_id)
    except LoadBalancerNotFound as e:
        raise _not_found(e)
    except SyncFailure as e:
        raise _sync_failed(e)


@router.get("/{load_balancer_id}/propagation", response_model=PropagationResult)
async def get_propagation(
    load_balancer_id: int,
    subject: str = Depends(get_current_subject),
    service: DNSLoadBalancerService = Depends(get_load_balancer_service)
):
    """A records the resolver currently serves for the balanced hostname"""
    try:
        return await service.check_propagation(load_balancer_id)
    except LoadBalancerNotFound as e:
        raise _not_found(e)
