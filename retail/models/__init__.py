"""Models package - exports all SQLAlchemy models."""
# SaaS Core Models
from retail.models.tenant import Tenant, TenantStatus
from retail.models.app_user import AppUser

# Business Models
from retail.models.category import Category
from retail.models.product import Product
from retail.models.sale import Sale, SaleStatus
from retail.models.sale_item import SaleItem
from retail.models.stock_transaction import StockTransaction, StockTransactionType

__all__ = [
    # SaaS Core
    'Tenant', 'TenantStatus', 'AppUser',
    # Business
    'Category', 'Product',
    'Sale', 'SaleStatus', 'SaleItem',
    'StockTransaction', 'StockTransactionType',
]
