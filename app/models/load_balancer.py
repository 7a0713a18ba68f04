"""DNS load balancer models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Float
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class LoadBalancerAlgorithm(str, enum.Enum):
    """Server selection algorithm"""
    ROUND_ROBIN = "round-robin"
    WEIGHTED = "weighted"
    HEALTH_BASED = "health-based"

    @classmethod
    def parse(cls, value) -> "LoadBalancerAlgorithm":
        """Unknown values fall back to round-robin"""
        try:
            return cls(value)
        except ValueError:
            return cls.ROUND_ROBIN


class HealthStatus(str, enum.Enum):
    """Composite server health status"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


class DNSLoadBalancer(Base):
    """DNS load balancer bound to one domain"""
    __tablename__ = "dns_load_balancers"
    
    id = Column(Integer, primary_key=True, index=True)
    # Advertised as <name>.<domain>
    name = Column(String(63), nullable=False)
    domain_id = Column(Integer, ForeignKey("domains.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # Stored as the wire value so unknown algorithms survive a round trip
    algorithm = Column(String(20), default=LoadBalancerAlgorithm.ROUND_ROBIN.value, nullable=False)
    health_check_interval = Column(Integer, default=30000, nullable=False)  # ms
    health_check_timeout = Column(Integer, default=5000, nullable=False)  # ms
    max_retries = Column(Integer, default=3, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    domain = relationship("Domain", back_populates="load_balancers")
    servers = relationship(
        "DNSServer",
        back_populates="load_balancer",
        cascade="all, delete-orphan",
        order_by="DNSServer.id",
    )
    records = relationship("DNSRecord", back_populates="load_balancer", passive_deletes=True)

    @property
    def hostname(self) -> str:
        return f"{self.name}.{self.domain.name}"


class DNSServer(Base):
    """Backend server behind a load balancer"""
    __tablename__ = "dns_servers"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    ip = Column(String(15), nullable=False)  # IPv4 literal
    port = Column(Integer, default=80, nullable=False)
    weight = Column(Integer, default=100, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    load_balancer_id = Column(
        Integer,
        ForeignKey("dns_load_balancers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    load_balancer = relationship("DNSLoadBalancer", back_populates="servers")
    health = relationship(
        "DNSServerHealth",
        back_populates="server",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def status(self) -> str:
        if self.health is None:
            return HealthStatus.UNKNOWN.value
        return self.health.status


class DNSServerHealth(Base):
    """Latest health snapshot of a server (one row per server, updated in place)"""
    __tablename__ = "dns_server_health"
    
    id = Column(Integer, primary_key=True, index=True)
    server_id = Column(
        Integer,
        ForeignKey("dns_servers.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    
    status = Column(String(20), default=HealthStatus.UNKNOWN.value, nullable=False)
    last_check = Column(DateTime, default=datetime.utcnow, nullable=False)
    response_time = Column(Integer, default=-1, nullable=False)  # ms, -1 when not measured
    uptime = Column(Float, default=0, nullable=False)  # seconds
    load = Column(Float, default=0, nullable=False)
    memory_usage = Column(Float, default=0, nullable=False)  # percent
    disk_usage = Column(Float, default=0, nullable=False)  # percent
    
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    server = relationship("DNSServer", back_populates="health")
