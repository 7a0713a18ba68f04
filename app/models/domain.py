"""Domain models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from app.core.database import Base


class Domain(Base):
    """Domain (zone apex) model"""
    __tablename__ = "domains"
    
    id = Column(Integer, primary_key=True, index=True)
    # Fully-qualified, stored without the trailing dot
    name = Column(String(255), unique=True, nullable=False, index=True)
    
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    dns_records = relationship(
        "DNSRecord",
        back_populates="domain",
        cascade="all, delete-orphan",
        order_by="DNSRecord.id",
    )
    load_balancers = relationship(
        "DNSLoadBalancer",
        back_populates="domain",
        cascade="all, delete-orphan",
        order_by="DNSLoadBalancer.id",
    )
