"""
HTTP surface: JSON envelopes, status codes and actor resolution.
"""

from retail.models import AppUser, Product, Sale, SaleStatus


class TestCreateSaleEndpoint:

    def test_success_envelope(self, seller_client, product_tenant1, reload):
        response = seller_client.post('/api/sales', json={
            'items': [{'product_id': product_tenant1.id, 'quantity': 3}]
        })

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert set(body['data']) == {'saleId', 'reference'}
        assert body['data']['reference'].startswith('SALE-')
        assert reload(Product, product_tenant1.id).stock_qty == 2

    def test_insufficient_stock_is_400_with_quantities(self, seller_client, product_tenant1):
        response = seller_client.post('/api/sales', json={
            'items': [{'product_id': product_tenant1.id, 'quantity': 9}]
        })

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert body['available'] == 5
        assert body['requested'] == 9
        assert 'error' in body

    def test_body_tenant_is_ignored_for_scoped_actor(self, seller_client, product_tenant2, reload):
        response = seller_client.post('/api/sales', json={
            'tenant_id': product_tenant2.tenant_id,
            'items': [{'product_id': product_tenant2.id, 'quantity': 1}]
        })

        # Sale stays in the seller's own tenant, so the foreign product is refused
        assert response.status_code == 403
        assert response.get_json()['success'] is False
        assert reload(Product, product_tenant2.id).stock_qty == 20

    def test_superadmin_sells_for_requested_tenant(self, superadmin_client, product_tenant1, reload):
        response = superadmin_client.post('/api/sales', json={
            'tenant_id': product_tenant1.tenant_id,
            'items': [{'product_id': product_tenant1.id, 'quantity': 1}]
        })

        assert response.status_code == 200
        sale = reload(Sale, response.get_json()['data']['saleId'])
        assert sale.tenant_id == product_tenant1.tenant_id

    def test_missing_product_is_404(self, seller_client):
        response = seller_client.post('/api/sales', json={'items': [{'product_id': 987654321, 'quantity': 1}]})
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_invalid_bodies_are_400(self, seller_client):
        assert seller_client.post('/api/sales', json={'items': []}).status_code == 400
        assert seller_client.post('/api/sales', json={'items': [{'product_id': 1, 'quantity': 0}]}).status_code == 400
        assert seller_client.post('/api/sales', data='not json', content_type='text/plain').status_code == 400

    def test_anonymous_is_401(self, client, product_tenant1):
        response = client.post('/api/sales', json={'items': [{'product_id': product_tenant1.id, 'quantity': 1}]})
        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Authentication required'}

    def test_role_without_capability_is_403(self, storekeeper_client, product_tenant1):
        response = storekeeper_client.post('/api/sales', json={
            'items': [{'product_id': product_tenant1.id, 'quantity': 1}]
        })
        assert response.status_code == 403

    def test_tenant_access_is_checked_before_capability(self, client, suspended_tenant, user_factory,
                                                          product_factory):
        storekeeper = user_factory(suspended_tenant.id, 'MAGASINIER')
        product = product_factory(suspended_tenant.id)

        with client.session_transaction() as sess:
            sess['user_id'] = storekeeper.id

        response = client.post('/api/sales', json={'items': [{'product_id': product.id, 'quantity': 1}]})

        assert response.status_code == 403
        assert 'suspended' in response.get_json()['error']

    def test_inactive_user_is_anonymous(self, client, session, seller1, product_tenant1, reload):
        reload(AppUser, seller1.id).active = False
        session.commit()

        with client.session_transaction() as sess:
            sess['user_id'] = seller1.id

        response = client.post('/api/sales', json={'items': [{'product_id': product_tenant1.id, 'quantity': 1}]})
        assert response.status_code == 401


class TestCancelSaleEndpoint:

    def test_cancel_returns_sale(self, manager_client, manager_actor, tenant1, product_tenant1, sale_for, reload):
        sale = sale_for(manager_actor, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 3}])

        response = manager_client.post(f'/api/sales/{sale.id}/cancel')

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['status'] == SaleStatus.CANCELLED.value
        assert body['data']['reference'] == sale.reference
        assert reload(Product, product_tenant1.id).stock_qty == 5

    def test_second_cancel_is_400(self, manager_client, manager_actor, tenant1, product_tenant1, sale_for):
        sale = sale_for(manager_actor, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])

        assert manager_client.post(f'/api/sales/{sale.id}/cancel').status_code == 200
        response = manager_client.post(f'/api/sales/{sale.id}/cancel')

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_seller_cannot_cancel(self, seller_client, seller_actor, tenant1, product_tenant1, sale_for):
        sale = sale_for(seller_actor, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        assert seller_client.post(f'/api/sales/{sale.id}/cancel').status_code == 403

    def test_unknown_sale_is_404(self, manager_client):
        assert manager_client.post('/api/sales/987654321/cancel').status_code == 404


class TestSaleReadEndpoints:

    def test_list_and_detail(self, manager_client, manager_actor, tenant1, product_tenant1, sale_for):
        sale = sale_for(manager_actor, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])

        listing = manager_client.get('/api/sales?page=1&limit=5')
        detail = manager_client.get(f'/api/sales/{sale.id}')

        assert listing.status_code == 200
        data = listing.get_json()['data']
        assert [s['id'] for s in data['sales']] == [sale.id]
        assert data['pagination']['total'] == 1

        assert detail.status_code == 200
        assert detail.get_json()['data']['items'][0]['product_id'] == product_tenant1.id

    def test_bad_query_params_are_400(self, manager_client):
        assert manager_client.get('/api/sales?page=zero').status_code == 400
        assert manager_client.get('/api/sales?startDate=yesterday').status_code == 400

    def test_anonymous_listing_is_401(self, client):
        assert client.get('/api/sales').status_code == 401


class TestStockEndpoints:

    def test_restock_and_history(self, storekeeper_client, product_tenant1, reload):
        response = storekeeper_client.post('/api/stock/restock', json={
            'product_id': product_tenant1.id, 'quantity': 4, 'reason': 'Delivery 42'
        })

        assert response.status_code == 200
        assert response.get_json()['data']['type'] == 'RESTOCK'
        assert reload(Product, product_tenant1.id).stock_qty == 9

        history = storekeeper_client.get(f'/api/stock?product_id={product_tenant1.id}')
        assert history.status_code == 200
        assert [t['reason'] for t in history.get_json()['data']['transactions']] == ['Delivery 42']

        product_history = storekeeper_client.get(f'/api/stock/{product_tenant1.id}')
        assert product_history.status_code == 200
        assert len(product_history.get_json()['data']) == 1

    def test_adjust_below_zero_is_400(self, storekeeper_client, product_tenant1):
        response = storekeeper_client.post('/api/stock/adjust', json={
            'product_id': product_tenant1.id, 'quantity': -10, 'reason': 'Count'
        })

        assert response.status_code == 400
        assert response.get_json()['available'] == 5

    def test_restock_requires_product_id(self, storekeeper_client):
        response = storekeeper_client.post('/api/stock/restock', json={'quantity': 1})
        assert response.status_code == 400

    def test_foreign_product_history_is_404(self, storekeeper_client, product_tenant2):
        assert storekeeper_client.get(f'/api/stock/{product_tenant2.id}').status_code == 404

    def test_alerts(self, seller_client, tenant1, product_factory):
        low = product_factory(tenant1.id, name='Low', stock_qty=1, min_stock=3)

        response = seller_client.get('/api/stock/alerts')

        assert response.status_code == 200
        assert [p['id'] for p in response.get_json()['data']] == [low.id]

    def test_seller_cannot_restock(self, seller_client, product_tenant1):
        response = seller_client.post('/api/stock/restock', json={'product_id': product_tenant1.id, 'quantity': 1})
        assert response.status_code == 403


class TestMiscEndpoints:

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_metrics_exposition(self, seller_client, product_tenant1, client):
        seller_client.post('/api/sales', json={'items': [{'product_id': product_tenant1.id, 'quantity': 1}]})

        response = client.get('/metrics')

        assert response.status_code == 200
        text = response.get_data(as_text=True)
        assert 'sales_created_total' in text
        assert 'stock_movements_total' in text
