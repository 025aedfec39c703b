"""Shared utility functions for services and blueprints.

parse_date:   lenient, returns None on bad input
require_date: strict, raises ValidationError naming the field
json_body:    request JSON as a dict, never None
"""
from datetime import date, datetime

from flask import request

from hrdesk.core.exceptions import ValidationError


def parse_date(value):
    """Parse a date string (ISO or DD/MM/YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD/MM/YYYY and DD-MM-YYYY (form input format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    for fmt in ("%d/%m/%Y", "%d-%m-%Y"):
        try:
            return datetime.strptime(str(value), fmt).date()
        except (ValueError, TypeError):
            continue
    return None


def require_date(value, field):
    """Same as parse_date() but raises ValidationError on missing or bad input."""
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"{field} must be a valid date", details={field: value})
    return parsed


def json_body() -> dict:
    """Parsed JSON body of the current request; {} when absent or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
