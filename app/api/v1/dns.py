"""DNS domain and record endpoints"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.api.deps import get_current_subject
from app.core.database import get_db
from app.schemas.dns import (
    DomainCreate,
    DomainResponse,
    DNSRecordCreate,
    DNSRecordUpdate,
    DNSRecordResponse,
)
from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.tasks.dns_tasks import resync_zones

router = APIRouter()


def normalize_record_name(name: str, domain_name: str) -> str:
    """Store names fully qualified without the trailing dot; @ for the apex.

    A name that does not end in the domain is taken as relative to it, the way
    BIND reads an unqualified owner name.
    """
    name = name.strip().lower().rstrip(".")
    domain_name = domain_name.lower()
    if name in ("", "@", domain_name):
        return "@"
    if name.endswith(f".{domain_name}"):
        return name
    return f"{name}.{domain_name}"


async def _get_domain(db: AsyncSession, domain_id: int) -> Domain:
    result = await db.execute(select(Domain).where(Domain.id == domain_id))
    domain = result.scalar_one_or_none()
    if not domain:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Domain not found"
        )
    return domain


async def _get_record(db: AsyncSession, record_id: int) -> DNSRecord:
    result = await db.execute(select(DNSRecord).where(DNSRecord.id == record_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="DNS record not found"
        )
    return record


@router.get("/domains", response_model=List[DomainResponse])
async def list_domains(
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """List domains"""
    result = await db.execute(select(Domain).order_by(Domain.name))
    return list(result.scalars().all())


@router.post("/domains", response_model=DomainResponse, status_code=status.HTTP_201_CREATED)
async def create_domain(
    domain_create: DomainCreate,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Create domain"""
    name = domain_create.name.lower().rstrip(".")
    result = await db.execute(select(Domain).where(Domain.name == name))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Domain already exists"
        )
    
    domain = Domain(name=name)
    db.add(domain)
    await db.commit()
    await db.refresh(domain)
    
    resync_zones.delay()
    return domain


@router.delete("/domains/{domain_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_domain(
    domain_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Delete domain with its records and load balancers"""
    domain = await _get_domain(db, domain_id)
    await db.delete(domain)
    await db.commit()
    
    resync_zones.delay()


@router.get("/domains/{domain_id}/records", response_model=List[DNSRecordResponse])
async def list_dns_records(
    domain_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """List all DNS records for domain"""
    result = await db.execute(
        select(DNSRecord)
        .where(DNSRecord.domain_id == domain_id)
        .order_by(DNSRecord.name, DNSRecord.type)
    )
    return list(result.scalars().all())


@router.post("/domains/{domain_id}/records", response_model=DNSRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_dns_record(
    domain_id: int,
    record_create: DNSRecordCreate,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Create DNS record"""
    domain = await _get_domain(db, domain_id)
    
    record_data = record_create.model_dump()
    record_data["name"] = normalize_record_name(record_create.name, domain.name)
    
    record = DNSRecord(domain_id=domain_id, **record_data)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    
    resync_zones.delay()
    return record


@router.patch("/records/{record_id}", response_model=DNSRecordResponse)
async def update_dns_record(
    record_id: int,
    record_update: DNSRecordUpdate,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Update DNS record"""
    record = await _get_record(db, record_id)
    
    # Filter out None values to prevent NULL constraint violations
    update_data = {
        k: v for k, v in record_update.model_dump(exclude_unset=True).items()
        if v is not None
    }
    
    if "name" in update_data:
        domain = await _get_domain(db, record.domain_id)
        update_data["name"] = normalize_record_name(update_data["name"], domain.name)
    
    for field, value in update_data.items():
        setattr(record, field, value)
    
    await db.commit()
    await db.refresh(record)
    
    resync_zones.delay()
    return record


@router.delete("/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dns_record(
    record_id: int,
    subject: str = Depends(get_current_subject),
    db: AsyncSession = Depends(get_db)
):
    """Delete DNS record"""
    record = await _get_record(db, record_id)
    await db.delete(record)
    await db.commit()
    
    resync_zones.delay()
