"""
Stock service - Multi-Tenant.

apply_movement is the single rule for changing Product.stock_qty: every
change is a guarded atomic UPDATE paired with one StockTransaction row, run
inside the caller's transaction. The remaining functions are the restock /
adjustment operations and ledger reads built on top of it.
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import update, func

from retail.models import Product, StockTransaction, StockTransactionType
from retail.exceptions import (
    SaasError, AccessDeniedError, InvalidRequestError, NotFoundError,
    InsufficientStockError, UnauthorizedError, StorageFailureError
)
from retail.decorators.permissions import actor_can, is_platform_role, STOCK_RESTOCK, STOCK_ADJUST
from retail.services.tenant_isolation import can_access_tenant, get_tenant_filter
from retail.services.cache_service import get_cache, invalidate_stock_views, ALL_TENANTS

logger = logging.getLogger(__name__)

PRODUCT_HISTORY_LIMIT = 100


def apply_movement(session, product_id: int, actor_id: int, movement_type: StockTransactionType,
                   quantity: int, reason: Optional[str]) -> StockTransaction:
    """
    Change a product's stock and append the matching ledger entry.

    Must run inside the caller's transaction: it flushes but never commits
    or rolls back. Tenant scope is the caller's responsibility.

    Args:
        session: SQLAlchemy session (in transaction)
        product_id: Product to move
        actor_id: AppUser responsible for the movement
        movement_type: StockTransactionType
        quantity: Signed quantity (positive = in, negative = out)
        reason: Free text stored on the ledger entry

    Returns:
        StockTransaction: the flushed ledger row

    Raises:
        InvalidRequestError: quantity is zero
        NotFoundError: product does not exist
        InsufficientStockError: the movement would drive stock below zero
    """
    if quantity == 0:
        raise InvalidRequestError('Stock movement quantity cannot be zero')

    # Guarded increment: the row only changes if the result stays >= 0
    result = session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock_qty + quantity >= 0)
        .values(stock_qty=Product.stock_qty + quantity)
        .execution_options(synchronize_session=False)
    )

    # Refresh any copy of the product already loaded in this session
    product = session.query(Product).populate_existing().filter(Product.id == product_id).first()

    if result.rowcount == 0:
        if not product:
            raise NotFoundError(f'Product {product_id} not found')
        raise InsufficientStockError(product.name, requested=abs(quantity), available=product.stock_qty)

    transaction = StockTransaction(
        product_id=product_id,
        user_id=actor_id,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        created_at=datetime.now()
    )
    session.add(transaction)
    session.flush()

    logger.debug(
        f"Stock movement {movement_type.value} {quantity:+d} on product {product_id} "
        f"(now {product.stock_qty})"
    )
    return transaction


def restock(session, actor, product_id: int, quantity, reason: Optional[str] = None) -> StockTransaction:
    """
    Add stock to a product (RESTOCK movement). Commits.

    Raises:
        UnauthorizedError, NotFoundError, AccessDeniedError, InvalidRequestError
    """
    if not actor_can(actor, STOCK_RESTOCK):
        raise UnauthorizedError('Your role cannot restock products')

    quantity = coerce_quantity(quantity)
    if quantity <= 0:
        raise InvalidRequestError('Quantity must be positive')

    try:
        product = _lock_product_in_scope(session, actor, product_id)

        transaction = apply_movement(
            session, product.id, actor.id, StockTransactionType.RESTOCK,
            quantity, reason or 'Restock'
        )
        tenant_id = product.tenant_id
        session.commit()

    except SaasError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"Error restocking product {product_id}: {e}")
        raise StorageFailureError()

    after_movements(tenant_id, StockTransactionType.RESTOCK)
    logger.info(f"Product {product_id} restocked by {quantity} (user {actor.id})")
    return transaction


def adjust_stock(session, actor, product_id: int, quantity, reason: Optional[str]) -> StockTransaction:
    """
    Correct a product's stock up or down (ADJUSTMENT movement). Commits.

    Raises:
        UnauthorizedError, NotFoundError, AccessDeniedError,
        InvalidRequestError, InsufficientStockError
    """
    if not actor_can(actor, STOCK_ADJUST):
        raise UnauthorizedError('Your role cannot adjust stock')

    quantity = coerce_quantity(quantity)
    if quantity == 0:
        raise InvalidRequestError('Quantity cannot be zero')
    if not reason or not str(reason).strip():
        raise InvalidRequestError('A reason is required for stock adjustments')

    try:
        product = _lock_product_in_scope(session, actor, product_id)

        if product.stock_qty + quantity < 0:
            raise InsufficientStockError(product.name, requested=abs(quantity), available=product.stock_qty)

        transaction = apply_movement(
            session, product.id, actor.id, StockTransactionType.ADJUSTMENT,
            quantity, str(reason).strip()
        )
        tenant_id = product.tenant_id
        session.commit()

    except SaasError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"Error adjusting stock of product {product_id}: {e}")
        raise StorageFailureError()

    after_movements(tenant_id, StockTransactionType.ADJUSTMENT)
    logger.info(f"Product {product_id} adjusted by {quantity:+d} (user {actor.id})")
    return transaction


def get_stock_history(session, actor, page: int = 1, limit: int = 10, product_id: Optional[int] = None,
                      movement_type: Optional[str] = None, start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None) -> dict:
    """
    Paginated stock ledger, newest first, restricted to the actor's scope.

    Returns:
        dict: {'transactions': [StockTransaction], 'pagination': {...}}
    """
    query = session.query(StockTransaction).join(Product).filter_by(**get_tenant_filter(actor))

    if product_id:
        query = query.filter(StockTransaction.product_id == product_id)

    if movement_type:
        try:
            query = query.filter(StockTransaction.type == StockTransactionType(movement_type))
        except ValueError:
            raise InvalidRequestError(f'Unknown stock movement type: {movement_type}')

    if start_date:
        query = query.filter(StockTransaction.created_at >= start_date)
    if end_date:
        query = query.filter(StockTransaction.created_at <= end_date)

    total = query.count()
    transactions = (
        query.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'transactions': transactions,
        'pagination': paginate_info(page, limit, total)
    }


def get_product_stock_history(session, actor, product_id: int):
    """Last movements of one product, or None when missing or out of scope."""
    product = session.query(Product).filter_by(id=product_id).first()
    if not product or not can_access_tenant(actor, product.tenant_id):
        return None

    return (
        session.query(StockTransaction)
        .filter(StockTransaction.product_id == product_id)
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .limit(PRODUCT_HISTORY_LIMIT)
        .all()
    )


def get_stock_alerts(session, actor) -> list:
    """
    Products at or below their min_stock threshold (cached per tenant).

    Returns:
        list of product dicts ordered by stock_qty then name
    """
    if is_platform_role(actor.role):
        cache_scope = ALL_TENANTS
    elif actor.tenant_id is None:
        return []
    else:
        cache_scope = actor.tenant_id

    def _load():
        products = (
            session.query(Product)
            .filter_by(**get_tenant_filter(actor))
            .filter(Product.stock_qty <= Product.min_stock)
            .order_by(Product.stock_qty.asc(), Product.name.asc())
            .all()
        )
        return [p.to_dict() for p in products]

    try:
        cache = get_cache()
    except RuntimeError:
        return _load()

    if not cache.is_available():
        return _load()

    from flask import current_app
    ttl = current_app.config.get('CACHE_STOCK_ALERTS_TTL')
    return cache.memoize(cache_scope, 'stock', 'alerts', _load, ttl)


def get_ledger_balance(session, product_id: int) -> int:
    """Sum of all ledger quantities for a product (stock change since creation)."""
    return session.query(
        func.coalesce(func.sum(StockTransaction.quantity), 0)
    ).filter(StockTransaction.product_id == product_id).scalar()


def coerce_quantity(value) -> int:
    """Accept whole-number quantities only."""
    if isinstance(value, bool):
        raise InvalidRequestError('Quantity must be an integer')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value.strip())
    raise InvalidRequestError('Quantity must be an integer')


def after_movements(tenant_id: int, movement_type: StockTransactionType, count: int = 1):
    """Post-commit bookkeeping: metrics and cache invalidation."""
    from retail.blueprints.metrics import stock_movements_total
    stock_movements_total.labels(type=movement_type.value).inc(count)
    invalidate_stock_views(tenant_id)


def paginate_info(page: int, limit: int, total: int) -> dict:
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': (total + limit - 1) // limit if limit else 0,
    }


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _lock_product_in_scope(session, actor, product_id) -> Product:
    """Lock a product row FOR UPDATE and check the actor may touch it."""
    product = (
        session.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    if not can_access_tenant(actor, product.tenant_id):
        raise AccessDeniedError('Access denied to this product')
    return product
