"""
Sales service with transactional logic - Multi-Tenant.
Handles sale creation, cancellation and sale queries.

create_sale and cancel_sale each run as one database transaction: every
product row is locked in the order the items were submitted, stock changes
go through the stock ledger, and any failure rolls back the whole sale.
"""
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import List, Dict, Optional, Any, Tuple
import logging

from sqlalchemy.exc import IntegrityError

from retail.models import Product, Sale, SaleItem, SaleStatus, StockTransactionType
from retail.exceptions import (
    SaasError, AccessDeniedError, InvalidRequestError, InvalidStateError, NotFoundError,
    InsufficientStockError, UnauthorizedError, ReferenceCollisionError, StorageFailureError
)
from retail.decorators.permissions import (
    actor_can, is_platform_role, SALES_CREATE, SALES_CANCEL, SALES_VIEW, SALES_VIEW_OWN
)
from retail.services.tenant_isolation import can_access_tenant, get_tenant_filter, validate_tenant_access
from retail.services.reference_service import generate_sale_reference, reference_exists, DEFAULT_MAX_ATTEMPTS
from retail.services.stock_service import apply_movement, after_movements, paginate_info

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def create_sale(session, actor, tenant_id: Optional[int], items: List[Dict[str, Any]],
                max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> dict:
    """
    Commit a sale: validate stock, price the items, decrement stock.

    Args:
        session: Database session
        actor: Actor creating the sale
        tenant_id: Tenant the sale belongs to
        items: Ordered list of {'product_id': int, 'quantity': int}
        max_attempts: Reference candidates tried before giving up

    Returns:
        dict: {'sale_id': int, 'reference': str}

    Raises:
        AccessDeniedError: tenant or product outside the actor's scope
        UnauthorizedError: actor lacks 'sales.create'
        InvalidRequestError: empty or malformed items
        NotFoundError: a product does not exist
        InsufficientStockError: not enough stock for an item
        StorageFailureError: unexpected storage error, nothing was applied
    """
    from retail.blueprints.metrics import sales_created_total, sale_failures_total

    try:
        access_error = validate_tenant_access(session, actor, tenant_id)
        if access_error:
            raise access_error

        if not actor_can(actor, SALES_CREATE):
            raise UnauthorizedError('Your role cannot create sales')

        lines = _normalize_items(items)

        if tenant_id is None:
            raise InvalidRequestError('tenant_id is required')

        # 1. Lock products in submission order, validate and price
        priced_lines, total_amount = _price_lines(session, tenant_id, lines)

        # 2. Header + items, retried on reference collision
        sale = _insert_sale(session, actor, tenant_id, priced_lines, total_amount, max_attempts)

        # 3. Stock out, one ledger entry per item
        for product_id, quantity, _, _ in priced_lines:
            apply_movement(
                session, product_id, actor.id, StockTransactionType.SALE,
                -quantity, f'Sale {sale.reference}'
            )

        result = {'sale_id': sale.id, 'reference': sale.reference}
        session.commit()

    except ReferenceCollisionError as e:
        session.rollback()
        sale_failures_total.labels(reason='reference_collision').inc()
        logger.error(f"Sale aborted for tenant {tenant_id}: {e.message}")
        raise StorageFailureError()
    except SaasError as e:
        session.rollback()
        sale_failures_total.labels(reason=type(e).__name__).inc()
        logger.info(f"Sale rejected for tenant {tenant_id} (user {actor.id}): {e.message}")
        raise
    except Exception as e:
        session.rollback()
        sale_failures_total.labels(reason='StorageFailureError').inc()
        logger.exception(f"Error creating sale for tenant {tenant_id}: {e}")
        raise StorageFailureError()

    sales_created_total.inc()
    after_movements(tenant_id, StockTransactionType.SALE, len(priced_lines))
    logger.info(f"Sale {result['reference']} created for tenant {tenant_id} by user {actor.id}")
    return result


def cancel_sale(session, actor, sale_id: int) -> Sale:
    """
    Cancel a completed sale and put its stock back.

    Each item produces a RETURN ledger entry. Only COMPLETED sales can be
    cancelled.

    Raises:
        NotFoundError, AccessDeniedError, UnauthorizedError, InvalidStateError,
        StorageFailureError
    """
    from retail.blueprints.metrics import sales_cancelled_total

    try:
        sale = (
            session.query(Sale)
            .filter(Sale.id == sale_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not sale:
            raise NotFoundError(f'Sale {sale_id} not found')

        if not can_access_tenant(actor, sale.tenant_id):
            raise AccessDeniedError('Access denied to this sale')

        if not actor_can(actor, SALES_CANCEL):
            raise UnauthorizedError('Your role cannot cancel sales')

        if sale.status != SaleStatus.COMPLETED:
            raise InvalidStateError(f'Sale {sale.reference} is already {sale.status.value.lower()}')

        sale.status = SaleStatus.CANCELLED
        sale.cancelled_at = datetime.now()
        sale.cancelled_by_id = actor.id
        session.flush()

        for item in sale.items:
            apply_movement(
                session, item.product_id, actor.id, StockTransactionType.RETURN,
                item.quantity, f'Cancellation of sale {sale.reference}'
            )

        tenant_id = sale.tenant_id
        item_count = len(sale.items)
        reference = sale.reference
        session.commit()

    except SaasError:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception(f"Error cancelling sale {sale_id}: {e}")
        raise StorageFailureError()

    sales_cancelled_total.inc()
    after_movements(tenant_id, StockTransactionType.RETURN, item_count)
    logger.info(f"Sale {reference} cancelled by user {actor.id}")
    return sale


def get_sales(session, actor, tenant_id: Optional[int] = None, page: int = 1, limit: int = 10,
              start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> dict:
    """
    Paginated sales in the actor's scope, newest first.

    Actors that may only see their own sales get those only. Platform actors
    may narrow the list to one tenant.
    """
    query = _visible_sales_query(session, actor)

    if tenant_id and is_platform_role(actor.role):
        query = query.filter(Sale.tenant_id == tenant_id)
    if start_date:
        query = query.filter(Sale.created_at >= start_date)
    if end_date:
        query = query.filter(Sale.created_at <= end_date)

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        'sales': sales,
        'pagination': paginate_info(page, limit, total)
    }


def get_sale(session, actor, sale_id: int) -> Sale:
    """Fetch one sale the actor may see."""
    if not (actor_can(actor, SALES_VIEW) or actor_can(actor, SALES_VIEW_OWN)):
        raise UnauthorizedError('Your role cannot view sales')

    sale = session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError(f'Sale {sale_id} not found')

    if not can_access_tenant(actor, sale.tenant_id):
        raise AccessDeniedError('Access denied to this sale')

    if not actor_can(actor, SALES_VIEW) and sale.seller_id != actor.id:
        raise AccessDeniedError('Access denied to this sale')

    return sale


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_items(items) -> List[Tuple[int, int]]:
    """Validate raw items into (product_id, quantity) pairs, order kept."""
    if not items or not isinstance(items, (list, tuple)):
        raise InvalidRequestError('A sale needs at least one item')

    lines = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise InvalidRequestError(f'Item {position} is malformed')

        product_id = item.get('product_id')
        quantity = item.get('quantity')

        if not _is_integer(product_id):
            raise InvalidRequestError(f'Item {position}: product_id must be an integer')
        if not _is_integer(quantity) or quantity <= 0:
            raise InvalidRequestError(f'Item {position}: quantity must be a positive integer')

        lines.append((product_id, quantity))

    return lines


def _price_lines(session, tenant_id: int, lines: List[Tuple[int, int]]):
    """
    Lock each product FOR UPDATE (first occurrence order) and price the lines.

    A product listed twice is checked against the sum of its quantities.

    Returns:
        (list of (product_id, quantity, unit_price, total_price), total_amount)
    """
    products = {}
    requested = {}
    priced_lines = []
    total_amount = Decimal('0.00')

    for product_id, quantity in lines:
        product = products.get(product_id)
        if product is None:
            product = (
                session.query(Product)
                .filter(Product.id == product_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not product:
                raise NotFoundError(f'Product {product_id} not found')
            if product.tenant_id != tenant_id:
                raise AccessDeniedError(f'Product {product_id} does not belong to this tenant')
            products[product_id] = product

        requested[product_id] = requested.get(product_id, 0) + quantity
        if product.stock_qty < requested[product_id]:
            raise InsufficientStockError(
                product.name, requested=requested[product_id], available=product.stock_qty
            )

        unit_price = Decimal(product.price)
        total_price = (unit_price * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)
        total_amount += total_price
        priced_lines.append((product_id, quantity, unit_price, total_price))

    return priced_lines, total_amount.quantize(CENTS)


def _insert_sale(session, actor, tenant_id: int, priced_lines, total_amount: Decimal,
                 max_attempts: int) -> Sale:
    """
    Insert the sale header and its items inside a SAVEPOINT.

    A UNIQUE violation on the reference only rolls back the savepoint, so
    the product locks held by the outer transaction survive the retry. Any
    other integrity error is not a reference clash and propagates.
    """
    from retail.blueprints.metrics import sale_reference_collisions_total

    for attempt in range(max_attempts):
        try:
            reference = generate_sale_reference(
                session, tenant_id, max_attempts=max_attempts, sequence_offset=attempt
            )
        except ReferenceCollisionError:
            logger.warning(f"No free sale reference for tenant {tenant_id} (attempt {attempt + 1}/{max_attempts})")
            continue

        sale = Sale(
            reference=reference,
            tenant_id=tenant_id,
            seller_id=actor.id,
            total_amount=total_amount,
            status=SaleStatus.COMPLETED,
            created_at=datetime.now()
        )
        for product_id, quantity, unit_price, total_price in priced_lines:
            sale.items.append(SaleItem(
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                total_price=total_price
            ))

        try:
            with session.begin_nested():
                session.add(sale)
                session.flush()
        except IntegrityError as e:
            if not reference_exists(session, reference):
                raise
            sale_reference_collisions_total.inc()
            logger.warning(f"Sale insert with reference {reference} rejected (attempt {attempt + 1}): {e.orig}")
            continue

        return sale

    raise ReferenceCollisionError()


def _visible_sales_query(session, actor):
    """Base sales query restricted to what the actor may list."""
    if actor_can(actor, SALES_VIEW):
        return session.query(Sale).filter_by(**get_tenant_filter(actor))
    if actor_can(actor, SALES_VIEW_OWN):
        return session.query(Sale).filter_by(**get_tenant_filter(actor)).filter(Sale.seller_id == actor.id)
    raise UnauthorizedError('Your role cannot view sales')
