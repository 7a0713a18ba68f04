"""Data access for domains, records, load balancers and server health"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.core.database import AsyncSessionLocal
from app.core.exceptions import PersistenceFailure
from app.models.dns import DNSRecord
from app.models.domain import Domain
from app.models.load_balancer import DNSLoadBalancer, DNSServer, DNSServerHealth
from app.schemas.health import HealthSnapshot
from app.schemas.load_balancer import DNSLoadBalancerCreate, DNSServerCreate

logger = logging.getLogger(__name__)


def _with_servers(query):
    return query.options(
        selectinload(DNSLoadBalancer.domain),
        selectinload(DNSLoadBalancer.servers).selectinload(DNSServer.health),
    ).execution_options(populate_existing=True)


class LoadBalancerRepository:
    """Repository over one database session"""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_active_balancers(self) -> List[DNSLoadBalancer]:
        """Active load balancers with domain, servers and health"""
        result = await self.db.execute(
            _with_servers(select(DNSLoadBalancer))
            .where(DNSLoadBalancer.is_active == True)
            .order_by(DNSLoadBalancer.id)
        )
        return list(result.scalars().all())
    
    async def get_all_balancers(self) -> List[DNSLoadBalancer]:
        result = await self.db.execute(
            _with_servers(select(DNSLoadBalancer)).order_by(DNSLoadBalancer.id)
        )
        return list(result.scalars().all())
    
    async def get_balancer(self, load_balancer_id: int) -> Optional[DNSLoadBalancer]:
        result = await self.db.execute(
            _with_servers(select(DNSLoadBalancer)).where(DNSLoadBalancer.id == load_balancer_id)
        )
        return result.scalar_one_or_none()
    
    async def list_balancers(self, domain_id: Optional[int] = None) -> List[DNSLoadBalancer]:
        query = _with_servers(select(DNSLoadBalancer)).order_by(DNSLoadBalancer.id)
        if domain_id is not None:
            query = query.where(DNSLoadBalancer.domain_id == domain_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def get_domains(self) -> List[Domain]:
        """All domains with their records"""
        result = await self.db.execute(
            select(Domain)
            .options(selectinload(Domain.dns_records))
            .execution_options(populate_existing=True)
            .order_by(Domain.name)
        )
        return list(result.scalars().all())
    
    async def get_domain(self, domain_id: int) -> Optional[Domain]:
        result = await self.db.execute(
            select(Domain)
            .options(selectinload(Domain.dns_records))
            .execution_options(populate_existing=True)
            .where(Domain.id == domain_id)
        )
        return result.scalar_one_or_none()
    
    async def upsert_health(self, server_id: int, snapshot: HealthSnapshot) -> DNSServerHealth:
        """Get-or-create the server's health row, then overwrite it"""
        try:
            return await self._write_health(server_id, snapshot)
        except IntegrityError:
            # A concurrent writer created the row first
            await self.db.rollback()
            try:
                return await self._write_health(server_id, snapshot)
            except SQLAlchemyError as e:
                await self.db.rollback()
                raise PersistenceFailure(f"health of server {server_id}: {e}") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailure(f"health of server {server_id}: {e}") from e
    
    async def _write_health(self, server_id: int, snapshot: HealthSnapshot) -> DNSServerHealth:
        result = await self.db.execute(
            select(DNSServerHealth).where(DNSServerHealth.server_id == server_id)
        )
        health = result.scalar_one_or_none()
        if health is None:
            health = DNSServerHealth(server_id=server_id)
            self.db.add(health)
        
        health.status = snapshot.status.value
        health.last_check = datetime.utcnow()
        health.response_time = snapshot.response_time
        health.uptime = snapshot.uptime
        health.load = snapshot.load
        health.memory_usage = snapshot.memory_usage
        health.disk_usage = snapshot.disk_usage
        
        await self.db.commit()
        return health
    
    async def upsert_record(
        self,
        domain_id: int,
        name: str,
        record_type: str,
        value: str,
        ttl: int,
        load_balancer_id: Optional[int] = None,
    ) -> DNSRecord:
        """Find a record by domain + name + type and update it, or create it"""
        try:
            result = await self.db.execute(
                select(DNSRecord).where(
                    DNSRecord.domain_id == domain_id,
                    DNSRecord.name == name,
                    DNSRecord.type == record_type,
                )
            )
            record = result.scalars().first()
            if record is None:
                record = DNSRecord(domain_id=domain_id, name=name, type=record_type)
                self.db.add(record)
            
            record.value = value
            record.ttl = ttl
            if load_balancer_id is not None:
                record.is_load_balanced = True
                record.load_balancer_id = load_balancer_id
            
            await self.db.commit()
            return record
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailure(f"record {name} {record_type}: {e}") from e
    
    async def create_balancer(self, data: DNSLoadBalancerCreate) -> DNSLoadBalancer:
        load_balancer = DNSLoadBalancer(**data.model_dump())
        self.db.add(load_balancer)
        await self.db.commit()
        return await self.get_balancer(load_balancer.id)
    
    async def delete_balancer(self, load_balancer_id: int) -> bool:
        load_balancer = await self.get_balancer(load_balancer_id)
        if not load_balancer:
            return False
        await self.db.delete(load_balancer)
        await self.db.commit()
        return True
    
    async def add_server(self, load_balancer_id: int, data: DNSServerCreate) -> DNSServer:
        server = DNSServer(load_balancer_id=load_balancer_id, **data.model_dump())
        self.db.add(server)
        await self.db.commit()
        result = await self.db.execute(
            select(DNSServer)
            .options(selectinload(DNSServer.health))
            .where(DNSServer.id == server.id)
        )
        return result.scalar_one()
    
    async def delete_server(self, load_balancer_id: int, server_id: int) -> bool:
        """Delete a server; its health row goes with it"""
        result = await self.db.execute(
            select(DNSServer)
            .options(selectinload(DNSServer.health))
            .where(DNSServer.id == server_id, DNSServer.load_balancer_id == load_balancer_id)
        )
        server = result.scalar_one_or_none()
        if not server:
            return False
        await self.db.delete(server)
        await self.db.commit()
        return True


def session_repository(session_factory: async_sessionmaker = None):
    """Repository factory: each use opens its own session"""
    session_factory = session_factory or AsyncSessionLocal
    
    @asynccontextmanager
    async def factory():
        async with session_factory() as db:
            yield LoadBalancerRepository(db)
    
    return factory
