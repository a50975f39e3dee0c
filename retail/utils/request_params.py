"""
Parsing helpers for query-string and JSON parameters of the API blueprints.
Invalid input raises InvalidRequestError so the error handlers answer 400.
"""
from datetime import datetime, date, time
from typing import Optional, Tuple

from flask import current_app

from retail.exceptions import InvalidRequestError


def parse_pagination(args) -> Tuple[int, int]:
    """
    Read page/limit from request args.

    Examples:
        ?page=2&limit=20 -> (2, 20)
        (nothing)        -> (1, DEFAULT_PAGE_SIZE)
        ?limit=5000      -> (1, MAX_PAGE_SIZE)
    """
    default_size = current_app.config.get('DEFAULT_PAGE_SIZE', 10)
    max_size = current_app.config.get('MAX_PAGE_SIZE', 100)

    page = parse_int(args.get('page'), 'page', default=1)
    limit = parse_int(args.get('limit'), 'limit', default=default_size)

    if page < 1:
        raise InvalidRequestError('page must be >= 1')
    if limit < 1:
        raise InvalidRequestError('limit must be >= 1')

    return page, min(limit, max_size)


def parse_int(value, name: str, default: Optional[int] = None) -> Optional[int]:
    """Parse an optional integer parameter (query string or JSON)."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise InvalidRequestError(f'{name} must be an integer')
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidRequestError(f'{name} must be an integer')


def parse_date(value, name: str, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse an ISO date or datetime.

    A bare date (YYYY-MM-DD) means the start of that day, or its last
    instant when end_of_day is set, so ranges include the whole end date.
    """
    if not value:
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min)
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidRequestError(f'{name} must be an ISO date (YYYY-MM-DD)')
