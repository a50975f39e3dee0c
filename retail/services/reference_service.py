"""
Sale reference generator.

References look like ``SALE-2025-0314-093015-0007``: the local date and time
of the attempt followed by the tenant's daily sequence number.
"""
from datetime import datetime
import logging

from sqlalchemy import func

from retail.models import Sale
from retail.exceptions import ReferenceCollisionError

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = 'SALE'
DEFAULT_MAX_ATTEMPTS = 5


def format_reference(moment: datetime, sequence: int) -> str:
    """Render a reference for a moment and a daily sequence number."""
    return (
        f"{REFERENCE_PREFIX}-{moment:%Y}-{moment:%m%d}-{moment:%H%M%S}-{sequence:04d}"
    )


def count_sales_today(session, tenant_id: int, now: datetime) -> int:
    """Number of the tenant's sales created since local midnight."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return session.query(func.count(Sale.id)).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= midnight
    ).scalar() or 0


def reference_exists(session, reference: str) -> bool:
    return session.query(Sale.id).filter(Sale.reference == reference).first() is not None


def highest_sequence_at(session, moment: datetime) -> int:
    """Largest sequence number already used by any tenant within this second."""
    prefix = format_reference(moment, 0).rsplit('-', 1)[0] + '-'
    references = session.query(Sale.reference).filter(Sale.reference.like(f'{prefix}%')).all()

    highest = 0
    for (reference,) in references:
        suffix = reference[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def generate_sale_reference(session, tenant_id: int, max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                            sequence_offset: int = 0, clock=datetime.now) -> str:
    """
    Produce a reference not used by any persisted sale.

    The first candidate carries the tenant's daily sequence. References are
    unique across tenants, so when a candidate is taken the next one reads
    the clock again and jumps past the highest sequence already used in that
    second. The check only sees committed rows (plus this session's own);
    the UNIQUE constraint on sale.reference catches the rest.

    Args:
        session: Database session (inside the sale transaction)
        tenant_id: Tenant the sale belongs to
        max_attempts: Candidates to try before giving up
        sequence_offset: Extra steps to skip, used when an insert already
            collided with a candidate from an earlier call
        clock: Callable returning the current local datetime

    Returns:
        str: unused reference

    Raises:
        ReferenceCollisionError: every candidate was taken
    """
    from retail.blueprints.metrics import sale_reference_collisions_total

    moment = clock()
    sequence = count_sales_today(session, tenant_id, moment) + 1 + sequence_offset

    for attempt in range(max_attempts):
        candidate = format_reference(moment, sequence)
        if not reference_exists(session, candidate):
            return candidate

        sale_reference_collisions_total.inc()
        logger.warning(f"Sale reference {candidate} already taken (attempt {attempt + 1}/{max_attempts})")

        moment = clock()
        sequence = max(sequence + 1, highest_sequence_at(session, moment) + 1)

    raise ReferenceCollisionError()
