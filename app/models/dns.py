"""DNS record models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text
from sqlalchemy.orm import relationship

from app.core.database import Base


class DNSRecord(Base):
    """DNS record model"""
    __tablename__ = "dns_records"
    
    id = Column(Integer, primary_key=True, index=True)
    domain_id = Column(Integer, ForeignKey("domains.id", ondelete="CASCADE"), nullable=False, index=True)
    
    # DNS fields
    type = Column(String(10), nullable=False)  # A, AAAA, CNAME, MX, TXT, SRV, NS, CAA
    name = Column(String(255), nullable=False, index=True)  # relative, absolute or @
    value = Column(Text, nullable=False)
    ttl = Column(Integer, default=300, nullable=False)
    
    # MX / SRV fields
    priority = Column(Integer, nullable=True)
    weight = Column(Integer, nullable=True)
    port = Column(Integer, nullable=True)
    
    # Value is recomputed from the balancer on every zone render
    is_load_balanced = Column(Boolean, default=False, nullable=False)
    load_balancer_id = Column(
        Integer,
        ForeignKey("dns_load_balancers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    domain = relationship("Domain", back_populates="dns_records")
    load_balancer = relationship("DNSLoadBalancer", back_populates="records")
