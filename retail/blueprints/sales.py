"""Sales blueprint (JSON API) - Multi-Tenant."""
from flask import Blueprint, request, jsonify, current_app, g
from retail.database import get_session
from retail.decorators.permissions import require_actor
from retail.exceptions import InvalidRequestError
from retail.services import sales_service
from retail.services.tenant_isolation import get_valid_tenant_id
from retail.utils.request_params import parse_pagination, parse_int, parse_date

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


@sales_bp.route('', methods=['POST'])
@require_actor
def create_sale():
    """
    Create a sale.

    Body: {"items": [{"product_id": 1, "quantity": 2}], "tenant_id": 1}
    tenant_id is only read for platform-wide actors. The service checks
    tenant access before the sales.create capability.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequestError('Request body must be a JSON object')

    requested_tenant = parse_int(payload.get('tenant_id'), 'tenant_id')
    tenant_id = get_valid_tenant_id(g.actor, requested_tenant)

    result = sales_service.create_sale(
        get_session(), g.actor, tenant_id, payload.get('items'),
        max_attempts=current_app.config.get('SALE_REFERENCE_MAX_ATTEMPTS', 5)
    )

    return jsonify({
        'success': True,
        'data': {'saleId': result['sale_id'], 'reference': result['reference']}
    })


@sales_bp.route('/<int:sale_id>/cancel', methods=['POST'])
@require_actor
def cancel_sale(sale_id: int):
    """Cancel a sale and restore its stock."""
    sale = sales_service.cancel_sale(get_session(), g.actor, sale_id)
    current_app.logger.info(f"Sale {sale_id} cancelled via API by user {g.actor.id}")
    return jsonify({'success': True, 'data': sale.to_dict()})


@sales_bp.route('', methods=['GET'])
@require_actor
def list_sales():
    """List sales (page, limit, startDate, endDate, tenant_id)."""
    page, limit = parse_pagination(request.args)
    result = sales_service.get_sales(
        get_session(), g.actor,
        tenant_id=parse_int(request.args.get('tenant_id'), 'tenant_id'),
        page=page,
        limit=limit,
        start_date=parse_date(request.args.get('startDate'), 'startDate'),
        end_date=parse_date(request.args.get('endDate'), 'endDate', end_of_day=True)
    )

    return jsonify({
        'success': True,
        'data': {
            'sales': [sale.to_dict(include_items=False) for sale in result['sales']],
            'pagination': result['pagination']
        }
    })


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_actor
def detail_sale(sale_id: int):
    sale = sales_service.get_sale(get_session(), g.actor, sale_id)
    return jsonify({'success': True, 'data': sale.to_dict()})
