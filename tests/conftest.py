import pytest
from decimal import Decimal
import uuid

from retail import create_app
from retail.database import get_session, create_all, drop_all
from retail.models import Tenant, TenantStatus, AppUser, Product, Category, Sale, StockTransaction
from retail.services.auth_service import actor_from_user


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (fresh schema per run)."""
    app = create_app('config.TestConfig')
    drop_all()
    create_all()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


def detach(session, obj, *relations):
    """
    Load a committed row completely and take it out of the session.

    The app and the tests share one scoped session, so a rolled back request
    would otherwise expire fixture rows and its teardown would detach them
    half loaded.
    """
    session.refresh(obj)
    for name in relations:
        getattr(obj, name)
    session.expunge(obj)
    # End the read transaction refresh opened so other threads can write
    session.commit()
    return obj


def fresh(session, model, object_id):
    """Reload a row from the database, bypassing the identity map."""
    session.expire_all()
    return session.get(model, object_id)


def make_tenant(session, label='tenant', status=TenantStatus.ACTIVE):
    suffix = str(uuid.uuid4())[:8]
    tenant = Tenant(
        slug=f'test-{label}-{suffix}',
        name=f'Test {label} {suffix}',
        status=status
    )
    session.add(tenant)
    session.commit()
    return detach(session, tenant)


def make_user(session, tenant_id, role):
    suffix = str(uuid.uuid4())[:8]
    user = AppUser(
        email=f'{role.lower()}-{suffix}@test.com',
        full_name=f'{role.title()} {suffix}',
        role=role,
        tenant_id=tenant_id,
        active=True
    )
    session.add(user)
    session.commit()
    return detach(session, user)


def make_product(session, tenant_id, name='Product', stock_qty=5, price='10.00', min_stock=2, category_id=None):
    suffix = str(uuid.uuid4())[:8]
    product = Product(
        tenant_id=tenant_id,
        category_id=category_id,
        name=f'{name} {suffix}',
        sku=f'SKU-{suffix}',
        price=Decimal(price),
        stock_qty=stock_qty,
        min_stock=min_stock
    )
    session.add(product)
    session.commit()
    return detach(session, product, 'category')


def ledger_rows(session, product_id):
    session.expire_all()
    return (
        session.query(StockTransaction)
        .filter_by(product_id=product_id)
        .order_by(StockTransaction.id)
        .all()
    )


# =====================================================
# TENANTS
# =====================================================

@pytest.fixture(scope='function')
def tenant1(session):
    """Create first test tenant."""
    return make_tenant(session, 'tenant-1')


@pytest.fixture(scope='function')
def tenant2(session):
    """Create second test tenant for isolation tests."""
    return make_tenant(session, 'tenant-2')


@pytest.fixture(scope='function')
def suspended_tenant(session):
    return make_tenant(session, 'suspended', status=TenantStatus.SUSPENDED)


# =====================================================
# USERS / ACTORS
# =====================================================

@pytest.fixture(scope='function')
def seller1(session, tenant1):
    """VENDEUR of tenant1 (may sell, may not cancel)."""
    return make_user(session, tenant1.id, 'VENDEUR')


@pytest.fixture(scope='function')
def manager1(session, tenant1):
    """GERANT of tenant1 (may sell and cancel)."""
    return make_user(session, tenant1.id, 'GERANT')


@pytest.fixture(scope='function')
def storekeeper1(session, tenant1):
    """MAGASINIER of tenant1 (stock management, no sales)."""
    return make_user(session, tenant1.id, 'MAGASINIER')


@pytest.fixture(scope='function')
def seller2(session, tenant2):
    """VENDEUR of tenant2."""
    return make_user(session, tenant2.id, 'VENDEUR')


@pytest.fixture(scope='function')
def superadmin(session):
    """Platform-wide user without a tenant."""
    return make_user(session, None, 'SUPERADMIN')


@pytest.fixture(scope='function')
def orphan_seller(session):
    """Tenant-scoped role with no tenant: reaches nothing."""
    return make_user(session, None, 'VENDEUR')


@pytest.fixture(scope='function')
def seller_actor(seller1):
    return actor_from_user(seller1)


@pytest.fixture(scope='function')
def manager_actor(manager1):
    return actor_from_user(manager1)


@pytest.fixture(scope='function')
def storekeeper_actor(storekeeper1):
    return actor_from_user(storekeeper1)


@pytest.fixture(scope='function')
def seller2_actor(seller2):
    return actor_from_user(seller2)


@pytest.fixture(scope='function')
def superadmin_actor(superadmin):
    return actor_from_user(superadmin)


# =====================================================
# CATALOG
# =====================================================

@pytest.fixture(scope='function')
def category_tenant1(session, tenant1):
    """Create test category for tenant1."""
    category = Category(
        tenant_id=tenant1.id,
        name=f'Test Category {str(uuid.uuid4())[:8]}'
    )
    session.add(category)
    session.commit()
    return detach(session, category)


@pytest.fixture(scope='function')
def product_tenant1(session, tenant1, category_tenant1):
    """Product P of tenant1: stock 5, price 10.00, min_stock 2."""
    return make_product(session, tenant1.id, 'Product T1', category_id=category_tenant1.id)


@pytest.fixture(scope='function')
def second_product_tenant1(session, tenant1):
    return make_product(session, tenant1.id, 'Second T1', stock_qty=1, price='2.50', min_stock=0)


@pytest.fixture(scope='function')
def product_tenant2(session, tenant2):
    """Create test product for tenant2."""
    return make_product(session, tenant2.id, 'Product T2', stock_qty=20, price='200.00', min_stock=5)


# =====================================================
# HTTP CLIENTS
# =====================================================

def login(client, user):
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
    return client


@pytest.fixture(scope='function')
def seller_client(client, seller1):
    """Authenticated client for the tenant1 seller."""
    return login(client, seller1)


@pytest.fixture(scope='function')
def manager_client(client, manager1):
    """Authenticated client for the tenant1 manager."""
    return login(client, manager1)


@pytest.fixture(scope='function')
def storekeeper_client(client, storekeeper1):
    return login(client, storekeeper1)


@pytest.fixture(scope='function')
def superadmin_client(client, superadmin):
    return login(client, superadmin)


@pytest.fixture(scope='function')
def sale_for(session):
    """Factory: commit a sale through the service and return the Sale row."""
    from retail.services.sales_service import create_sale

    def _sale_for(actor, tenant_id, items):
        result = create_sale(session, actor, tenant_id, items)
        return detach(session, fresh(session, Sale, result['sale_id']), 'items')

    return _sale_for


# =====================================================
# HELPERS EXPOSED AS FIXTURES
# =====================================================

@pytest.fixture(scope='function')
def reload(session):
    """reload(Model, id): read the row again from the database."""
    return lambda model, object_id: fresh(session, model, object_id)


@pytest.fixture(scope='function')
def ledger(session):
    """ledger(product_id): the product's stock transactions, oldest first."""
    return lambda product_id: ledger_rows(session, product_id)


@pytest.fixture(scope='function')
def product_factory(session):
    return lambda tenant_id, **kwargs: make_product(session, tenant_id, **kwargs)


@pytest.fixture(scope='function')
def user_factory(session):
    return lambda tenant_id, role: make_user(session, tenant_id, role)


@pytest.fixture(scope='function')
def tenant_factory(session):
    return lambda label='tenant': make_tenant(session, label)
