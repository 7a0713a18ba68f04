"""DNS schemas"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

# Hostname labels joined by dots, alphabetic TLD, optional trailing dot
DOMAIN_NAME_PATTERN = r"^([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z][A-Za-z0-9-]{0,61}[A-Za-z0-9]\.?$"


class DomainCreate(BaseModel):
    """Schema for domain creation"""
    name: str = Field(..., min_length=1, max_length=253, pattern=DOMAIN_NAME_PATTERN)


class DomainResponse(BaseModel):
    """Schema for domain response"""
    id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class DNSRecordCreate(BaseModel):
    """Schema for DNS record creation"""
    type: str = Field(..., pattern="^(A|AAAA|CNAME|MX|TXT|SRV|NS|CAA)$")
    name: str = Field(..., max_length=255)
    value: str = Field(..., min_length=1)
    ttl: int = Field(default=300, ge=60, le=86400)
    priority: Optional[int] = Field(None, ge=0, le=65535)
    weight: Optional[int] = Field(None, ge=0, le=65535)
    port: Optional[int] = Field(None, ge=0, le=65535)
    is_load_balanced: bool = False
    load_balancer_id: Optional[int] = None


class DNSRecordUpdate(BaseModel):
    """Schema for DNS record update"""
    type: Optional[str] = Field(None, pattern="^(A|AAAA|CNAME|MX|TXT|SRV|NS|CAA)$")
    name: Optional[str] = Field(None, max_length=255)
    value: Optional[str] = None
    ttl: Optional[int] = Field(None, ge=60, le=86400)
    priority: Optional[int] = Field(None, ge=0, le=65535)
    weight: Optional[int] = Field(None, ge=0, le=65535)
    port: Optional[int] = Field(None, ge=0, le=65535)
    is_load_balanced: Optional[bool] = None
    load_balancer_id: Optional[int] = None


class DNSRecordResponse(BaseModel):
    """Schema for DNS record response"""
    id: int
    domain_id: int
    type: str
    name: str
    value: str
    ttl: int
    priority: Optional[int] = None
    weight: Optional[int] = None
    port: Optional[int] = None
    is_load_balanced: bool
    load_balancer_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
