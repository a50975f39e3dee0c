"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from retail.database import Base, IdType


def _opening_stock(context):
    return context.get_current_parameters().get('stock_qty') or 0


class Product(Base):
    """Product model.

    stock_qty is only ever changed through the stock ledger
    (retail.services.stock_service.apply_movement), which pairs every change
    with a StockTransaction row. initial_stock_qty + sum(ledger) == stock_qty
    holds for every product.
    """

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock_qty >= 0', name='product_stock_qty_non_negative'),
        CheckConstraint('min_stock >= 0', name='product_min_stock_non_negative'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    category_id = Column(BigInteger, ForeignKey('category.id'), nullable=True)
    sku = Column(String(64), nullable=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_qty = Column(Integer, nullable=False, default=0, server_default='0')
    # Stock the product was created with; the ledger holds every change since
    initial_stock_qty = Column(Integer, nullable=False, default=_opening_stock, server_default='0')
    min_stock = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    category = relationship('Category', foreign_keys=[category_id])

    @property
    def is_low_stock(self):
        """True when stock has reached the alert threshold."""
        return self.stock_qty <= self.min_stock

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'category_id': self.category_id,
            'category_name': self.category.name if self.category else None,
            'sku': self.sku,
            'name': self.name,
            'price': str(self.price),
            'stock_qty': self.stock_qty,
            'min_stock': self.min_stock,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock_qty={self.stock_qty})>"
