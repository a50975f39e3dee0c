"""
Tenant isolation policy.

Decides which tenant scope an actor may read or write. Every function here
is a pure check except validate_tenant_access, which also looks the tenant
up. Expected denials are returned, never raised.
"""
from typing import Optional
from retail.models import Tenant
from retail.decorators.permissions import is_platform_role
from retail.exceptions import AccessDeniedError, NotFoundError, SaasError


def can_access_tenant(actor, tenant_id) -> bool:
    """
    Check if the actor may operate on a tenant's data.

    Platform-wide actors reach every tenant. Everyone else needs an exact
    tenant match; a tenant-scoped actor without a tenant reaches nothing.
    """
    if is_platform_role(actor.role):
        return True

    if actor.tenant_id is None:
        return False

    return actor.tenant_id == tenant_id


def get_tenant_filter(actor) -> dict:
    """
    Build the filter_by() keywords that scope a query to the actor.

    Returns an empty dict (no restriction) for platform-wide actors. For a
    tenant-scoped actor without a tenant the filter pins tenant_id to None,
    which matches no row.
    """
    if is_platform_role(actor.role):
        return {}

    return {'tenant_id': actor.tenant_id}


def get_valid_tenant_id(actor, requested_tenant_id=None) -> Optional[int]:
    """Tenant an actor operates in: the requested one for platform actors, its own otherwise."""
    if is_platform_role(actor.role):
        return requested_tenant_id or None

    return actor.tenant_id


def validate_tenant_access(session, actor, tenant_id) -> Optional[SaasError]:
    """
    Validate that an operation on a tenant is allowed.

    Scope is checked first. The tenant must then exist and be active, for
    platform-wide actors too.

    Args:
        session: Database session
        actor: Actor performing the operation
        tenant_id: Target tenant

    Returns:
        None when allowed, otherwise an AccessDeniedError (out of scope or
        suspended tenant) or NotFoundError instance for the caller to raise
        or report.
    """
    if not can_access_tenant(actor, tenant_id):
        return AccessDeniedError('Access denied to this tenant')

    # Only a platform actor gets here without a tenant; the caller decides
    if tenant_id is None:
        return None

    tenant = session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        return NotFoundError('Tenant not found')
    if tenant.is_suspended:
        return AccessDeniedError('Access denied: tenant is suspended')

    return None
