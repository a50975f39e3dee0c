"""Stock blueprint (JSON API) - Multi-Tenant."""
from flask import Blueprint, request, jsonify, current_app, g
from retail.database import get_session
from retail.decorators.permissions import (
    require_permission, STOCK_VIEW, STOCK_RESTOCK, STOCK_ADJUST, STOCK_HISTORY_VIEW
)
from retail.exceptions import InvalidRequestError, NotFoundError
from retail.services import stock_service
from retail.utils.request_params import parse_pagination, parse_int, parse_date

stock_bp = Blueprint('stock', __name__, url_prefix='/api/stock')


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequestError('Request body must be a JSON object')
    return payload


def _required_product_id(payload: dict) -> int:
    product_id = parse_int(payload.get('product_id'), 'product_id')
    if product_id is None:
        raise InvalidRequestError('product_id is required')
    return product_id


@stock_bp.route('', methods=['GET'])
@require_permission(STOCK_HISTORY_VIEW)
def stock_history():
    """Ledger history (page, limit, product_id, type, startDate, endDate)."""
    page, limit = parse_pagination(request.args)
    result = stock_service.get_stock_history(
        get_session(), g.actor,
        page=page,
        limit=limit,
        product_id=parse_int(request.args.get('product_id'), 'product_id'),
        movement_type=request.args.get('type') or None,
        start_date=parse_date(request.args.get('startDate'), 'startDate'),
        end_date=parse_date(request.args.get('endDate'), 'endDate', end_of_day=True)
    )

    return jsonify({
        'success': True,
        'data': {
            'transactions': [t.to_dict() for t in result['transactions']],
            'pagination': result['pagination']
        }
    })


@stock_bp.route('/alerts', methods=['GET'])
@require_permission(STOCK_VIEW)
def stock_alerts():
    """Products at or below their minimum stock."""
    alerts = stock_service.get_stock_alerts(get_session(), g.actor)
    return jsonify({'success': True, 'data': alerts})


@stock_bp.route('/<int:product_id>', methods=['GET'])
@require_permission(STOCK_HISTORY_VIEW)
def product_history(product_id: int):
    transactions = stock_service.get_product_stock_history(get_session(), g.actor, product_id)
    if transactions is None:
        raise NotFoundError('Product not found')

    return jsonify({'success': True, 'data': [t.to_dict() for t in transactions]})


@stock_bp.route('/restock', methods=['POST'])
@require_permission(STOCK_RESTOCK)
def restock():
    """Body: {"product_id": 1, "quantity": 10, "reason": "Delivery 42"}"""
    payload = _json_body()
    transaction = stock_service.restock(
        get_session(), g.actor,
        _required_product_id(payload),
        payload.get('quantity'),
        payload.get('reason')
    )
    current_app.logger.info(f"Restock via API: product {transaction.product_id} +{transaction.quantity}")
    return jsonify({'success': True, 'data': transaction.to_dict()})


@stock_bp.route('/adjust', methods=['POST'])
@require_permission(STOCK_ADJUST)
def adjust():
    """Body: {"product_id": 1, "quantity": -2, "reason": "Broken items"}"""
    payload = _json_body()
    transaction = stock_service.adjust_stock(
        get_session(), g.actor,
        _required_product_id(payload),
        payload.get('quantity'),
        payload.get('reason')
    )
    current_app.logger.info(f"Stock adjusted via API: product {transaction.product_id} {transaction.quantity:+d}")
    return jsonify({'success': True, 'data': transaction.to_dict()})
