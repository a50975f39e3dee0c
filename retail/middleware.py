"""Middleware for authentication and tenant context."""
from flask import session, g, current_app
from retail.database import get_session
from retail.services.auth_service import load_actor


def load_actor_context():
    """
    Load the current actor into g (Flask's per-request global).

    Called before each request. Sets g.actor to an Actor built from the
    logged-in user, or None for anonymous requests. Services never read the
    Flask session themselves; blueprints pass g.actor down explicitly.
    """
    g.actor = None

    user_id = session.get('user_id')
    if not user_id:
        return

    db_session = get_session()
    if not db_session:
        current_app.logger.error("Database session not initialized; request runs anonymous")
        return

    g.actor = load_actor(db_session, user_id)
    if g.actor is None:
        # Stale session (deleted or deactivated user)
        session.pop('user_id', None)
