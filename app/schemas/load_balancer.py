"""DNS load balancer schemas"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from app.schemas.health import ServerHealthResponse

ALGORITHM_PATTERN = "^(round-robin|weighted|health-based)$"
IPV4_PATTERN = r"^((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)$"


class DNSLoadBalancerCreate(BaseModel):
    """Schema for load balancer creation.

    ``health_check_timeout`` (ms) bounds each probe of the balancer's servers.
    ``health_check_interval`` and ``max_retries`` are informational; the global
    scheduler interval applies and probes are not retried within a cycle.
    """
    name: str = Field(..., min_length=1, max_length=63, pattern=r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?$")
    domain_id: int
    algorithm: str = Field(default="round-robin", pattern=ALGORITHM_PATTERN)
    health_check_interval: int = Field(default=30000, ge=1000)
    health_check_timeout: int = Field(default=5000, ge=100)
    max_retries: int = Field(default=3, ge=0, le=10)
    is_active: bool = True


class DNSServerCreate(BaseModel):
    """Schema for adding a server to a load balancer"""
    name: str = Field(..., min_length=1, max_length=255)
    ip: str = Field(..., pattern=IPV4_PATTERN)
    port: int = Field(default=80, ge=1, le=65535)
    weight: int = Field(default=100, ge=1, le=65535)
    is_active: bool = True


class DNSServerResponse(BaseModel):
    """Server with its latest health"""
    id: int
    name: str
    ip: str
    port: int
    weight: int
    is_active: bool
    health: Optional[ServerHealthResponse] = None

    class Config:
        from_attributes = True


class DNSLoadBalancerResponse(BaseModel):
    """Load balancer response"""
    id: int
    name: str
    domain_id: int
    algorithm: str
    health_check_interval: int
    health_check_timeout: int
    max_retries: int
    is_active: bool
    created_at: datetime
    servers: List[DNSServerResponse] = []

    class Config:
        from_attributes = True


class LoadBalancerStatus(BaseModel):
    """Health summary of a load balancer, computed from stored health rows"""
    id: int
    name: str
    algorithm: str
    is_active: bool
    total_servers: int
    healthy_servers: int
    unhealthy_servers: int
    health_percentage: float
    servers: List[DNSServerResponse] = []


class ServerCheckResult(BaseModel):
    """Result of a manual health check for one server"""
    server_id: int
    name: str
    status: str
    response_time: int


class ZoneSyncResult(BaseModel):
    """Outcome of a resync"""
    domains_written: List[str] = []
    domains_skipped: List[str] = []


class PropagationResult(BaseModel):
    """Answers currently served for a balanced hostname"""
    hostname: str
    record_type: str
    answers: List[str] = []
