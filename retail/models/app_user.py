"""AppUser model - platform users, each carrying one role and an optional tenant."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from retail.database import Base, IdType


class AppUser(Base):
    """AppUser model.

    tenant_id is NULL only for platform-wide roles (SUPERADMIN). A
    tenant-scoped role with a NULL tenant can reach no tenant data.
    """

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(20), nullable=False, default='VENDEUR')
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    tenant = relationship('Tenant')

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role='{self.role}')>"
