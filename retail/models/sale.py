"""Sale model."""
from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from retail.database import Base, IdType
import enum


class SaleStatus(enum.Enum):
    """Sale status enum.

    COMPLETED is the initial state; CANCELLED is terminal and only reached
    through retail.services.sales_service.cancel_sale.
    """
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Sale(Base):
    """Sale (point-of-sale ticket, settled on creation)."""

    __tablename__ = 'sale'

    id = Column(IdType, primary_key=True, autoincrement=True)
    # Unique across all tenants; the final guard against reference races
    reference = Column(String(40), nullable=False, unique=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    seller_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(SaleStatus, name='sale_status'), nullable=False, default=SaleStatus.COMPLETED)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=True)

    # Relationships
    tenant = relationship('Tenant')
    seller = relationship('AppUser', foreign_keys=[seller_id])
    cancelled_by = relationship('AppUser', foreign_keys=[cancelled_by_id])
    items = relationship(
        'SaleItem',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleItem.id'
    )

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'reference': self.reference,
            'tenant_id': self.tenant_id,
            'seller_id': self.seller_id,
            'total_amount': str(self.total_amount),
            'status': self.status.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'cancelled_by_id': self.cancelled_by_id,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Sale(id={self.id}, reference='{self.reference}', status={self.status.value})>"
