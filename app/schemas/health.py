"""Health check schemas"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.load_balancer import HealthStatus


class ProbeResult(BaseModel):
    """Outcome of a single network probe"""
    reachable: bool
    response_time: int = Field(..., ge=-1)  # ms, -1 when the probe failed

    @classmethod
    def failed(cls) -> "ProbeResult":
        return cls(reachable=False, response_time=-1)


class SystemMetrics(BaseModel):
    """Auxiliary host metrics"""
    uptime: float = Field(0, ge=0)  # seconds
    load: float = Field(0, ge=0)
    memory_usage: float = Field(0, ge=0, le=100)
    disk_usage: float = Field(0, ge=0, le=100)


class HealthSnapshot(BaseModel):
    """Evaluated health of one server"""
    status: HealthStatus
    response_time: int = Field(..., ge=-1)
    uptime: float = 0
    load: float = 0
    memory_usage: float = 0
    disk_usage: float = 0

    @classmethod
    def unhealthy(cls) -> "HealthSnapshot":
        return cls(status=HealthStatus.UNHEALTHY, response_time=-1)


class ServerHealthResponse(BaseModel):
    """Persisted server health"""
    status: str
    last_check: Optional[datetime] = None
    response_time: int
    uptime: float
    load: float
    memory_usage: float
    disk_usage: float

    class Config:
        from_attributes = True
