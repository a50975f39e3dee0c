"""Category model."""
from sqlalchemy import Column, BigInteger, String, ForeignKey, UniqueConstraint
from retail.database import Base, IdType


class Category(Base):
    """Product category (tenant-scoped)."""

    __tablename__ = 'category'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'name', name='category_tenant_name_key'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False)
    name = Column(String(120), nullable=False)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
