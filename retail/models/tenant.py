"""Tenant model - represents each retail business using the platform."""
import enum
from sqlalchemy import Column, String, DateTime, Enum
from sqlalchemy.sql import func
from retail.database import Base, IdType


class TenantStatus(enum.Enum):
    """Tenant lifecycle status."""
    ACTIVE = 'ACTIVE'
    SUSPENDED = 'SUSPENDED'


class Tenant(Base):
    """Tenant model - each retail business."""

    __tablename__ = 'tenant'

    id = Column(IdType, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # URL-safe identifier
    name = Column(String(200), nullable=False)  # Display name
    status = Column(Enum(TenantStatus, name='tenant_status'), nullable=False, default=TenantStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_suspended(self):
        return self.status == TenantStatus.SUSPENDED

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', status={self.status.value if self.status else None})>"
