"""
Authentication boundary.

Turns the persisted AppUser behind a request into the explicit ``Actor``
that every core service receives. Login itself lives outside this service.
"""
from typing import NamedTuple, Optional
from retail.models import AppUser
import logging

logger = logging.getLogger(__name__)


class Actor(NamedTuple):
    """The authenticated caller of a core operation."""
    id: int
    role: str
    tenant_id: Optional[int] = None


def actor_from_user(user: AppUser) -> Actor:
    """Build the Actor for a loaded user."""
    return Actor(id=user.id, role=user.role, tenant_id=user.tenant_id)


def load_actor(session, user_id) -> Optional[Actor]:
    """
    Resolve an Actor from a user id.

    Args:
        session: Database session
        user_id: AppUser id stored in the request session

    Returns:
        Actor, or None when the user is missing or inactive
    """
    if not user_id:
        return None

    user = session.query(AppUser).filter_by(id=user_id, active=True).first()
    if not user:
        logger.warning(f"Session references missing or inactive user {user_id}")
        return None

    return actor_from_user(user)
