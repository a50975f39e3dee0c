"""Stock Transaction model (inventory ledger)."""
from sqlalchemy import Column, BigInteger, Integer, DateTime, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from retail.database import Base, IdType
import enum


class StockTransactionType(enum.Enum):
    """Stock movement type enum."""
    RESTOCK = "RESTOCK"
    ADJUSTMENT = "ADJUSTMENT"
    SALE = "SALE"
    RETURN = "RETURN"


class StockTransaction(Base):
    """Stock Transaction - append-only record of one inventory movement.

    quantity is signed: positive increases stock, negative decreases it.
    Rows are never updated or deleted.
    """

    __tablename__ = 'stock_transaction'

    id = Column(IdType, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    type = Column(Enum(StockTransactionType, name='stock_transaction_type'), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    product = relationship('Product')
    user = relationship('AppUser')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'user_id': self.user_id,
            'type': self.type.value,
            'quantity': self.quantity,
            'reason': self.reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<StockTransaction(id={self.id}, type={self.type.value}, quantity={self.quantity})>"
