"""
Capability-based permission checks.

Roles are never compared by name outside this module: callers ask
``actor_can(actor, 'sales.create')`` and the role -> capability map below
decides. Adding a role only means adding an entry to ROLE_PERMISSIONS.
"""

from functools import wraps
from flask import g


# Capability codes
TENANTS_VIEW = 'tenants.view'
TENANTS_CREATE = 'tenants.create'
TENANTS_UPDATE = 'tenants.update'
TENANTS_DELETE = 'tenants.delete'
TENANTS_SUSPEND = 'tenants.suspend'

USERS_VIEW = 'users.view'
USERS_CREATE = 'users.create'
USERS_UPDATE = 'users.update'
USERS_DELETE = 'users.delete'
USERS_ACTIVATE = 'users.activate'
USERS_DEACTIVATE = 'users.deactivate'

PRODUCTS_VIEW = 'products.view'
PRODUCTS_CREATE = 'products.create'
PRODUCTS_UPDATE = 'products.update'
PRODUCTS_DELETE = 'products.delete'
PRODUCTS_MANAGE_PRICES = 'products.manage_prices'

CATEGORIES_VIEW = 'categories.view'
CATEGORIES_CREATE = 'categories.create'
CATEGORIES_UPDATE = 'categories.update'
CATEGORIES_DELETE = 'categories.delete'

STOCK_VIEW = 'stock.view'
STOCK_UPDATE = 'stock.update'
STOCK_RESTOCK = 'stock.restock'
STOCK_ADJUST = 'stock.adjust'
STOCK_HISTORY_VIEW = 'stock.history_view'

SALES_VIEW = 'sales.view'
SALES_CREATE = 'sales.create'
SALES_UPDATE = 'sales.update'
SALES_CANCEL = 'sales.cancel'
SALES_REFUND = 'sales.refund'
SALES_VIEW_OWN = 'sales.view_own'

STATS_VIEW_GLOBAL = 'stats.view_global'
STATS_VIEW_TENANT = 'stats.view_tenant'
STATS_VIEW_SALES = 'stats.view_sales'

ROLES_VIEW = 'roles.view'
PERMISSIONS_VIEW = 'permissions.view'

ALL = 'all'

# Roles whose scope is the whole platform rather than one tenant
PLATFORM_ROLES = frozenset({'SUPERADMIN'})

ROLE_PERMISSIONS = {
    'SUPERADMIN': ALL,
    'DIRECTEUR': frozenset({
        USERS_VIEW, USERS_CREATE, USERS_UPDATE, USERS_DELETE, USERS_ACTIVATE, USERS_DEACTIVATE,
        PRODUCTS_VIEW, PRODUCTS_CREATE, PRODUCTS_UPDATE, PRODUCTS_DELETE, PRODUCTS_MANAGE_PRICES,
        CATEGORIES_VIEW, CATEGORIES_CREATE, CATEGORIES_UPDATE, CATEGORIES_DELETE,
        STOCK_VIEW, STOCK_UPDATE, STOCK_RESTOCK, STOCK_ADJUST, STOCK_HISTORY_VIEW,
        SALES_VIEW,
        STATS_VIEW_TENANT,
        ROLES_VIEW, PERMISSIONS_VIEW,
    }),
    'GERANT': frozenset({
        PRODUCTS_VIEW, CATEGORIES_VIEW, STOCK_VIEW,
        SALES_VIEW, SALES_CREATE, SALES_UPDATE, SALES_CANCEL,
        STATS_VIEW_SALES,
    }),
    'VENDEUR': frozenset({
        PRODUCTS_VIEW, CATEGORIES_VIEW, STOCK_VIEW,
        SALES_CREATE, SALES_VIEW_OWN,
    }),
    'MAGASINIER': frozenset({
        PRODUCTS_VIEW, CATEGORIES_VIEW,
        STOCK_VIEW, STOCK_UPDATE, STOCK_RESTOCK, STOCK_ADJUST, STOCK_HISTORY_VIEW,
    }),
}


def is_platform_role(role):
    """Check whether a role spans every tenant."""
    return role in PLATFORM_ROLES


def actor_can(actor, capability):
    """
    Check whether the actor's role grants a capability.

    Args:
        actor: Actor (anything with a ``role`` attribute)
        capability: Capability code, e.g. 'sales.create'

    Returns:
        bool: True if granted; unknown roles are granted nothing
    """
    if actor is None:
        return False

    granted = ROLE_PERMISSIONS.get(actor.role)
    if granted is None:
        return False
    if granted == ALL:
        return True
    return capability in granted


def require_permission(capability):
    """
    Decorator to check for a capability on the request's actor.

    Usage:
        @require_permission('sales.create')
        @require_permission('stock.restock')

    Raises:
        AuthenticationRequiredError: no actor on the request
        UnauthorizedError: the actor's role lacks the capability
    """
    from retail.exceptions import AuthenticationRequiredError, UnauthorizedError

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor = g.get('actor')
            if actor is None:
                raise AuthenticationRequiredError()

            if not actor_can(actor, capability):
                raise UnauthorizedError(f'Missing permission: {capability}')

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_actor(f):
    """
    Decorator for views whose service checks tenant scope and capability itself.

    Raises:
        AuthenticationRequiredError: no actor on the request
    """
    from retail.exceptions import AuthenticationRequiredError

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('actor') is None:
            raise AuthenticationRequiredError()
        return f(*args, **kwargs)

    return decorated_function
