"""Request-body validation helpers.

Every failure aborts with 400 and a short description, matching the error shape the
application handler renders.
"""
from __future__ import annotations
import html
import math
import re
from datetime import date
from typing import Any, Iterable, Optional
from flask import abort, request

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
# Numeric(10, 2) columns hold at most 8 integer digits
AMOUNT_MAX = 10 ** 8
# SQLite INTEGER is a signed 64-bit value
INT_MIN, INT_MAX = -(2 ** 63), 2 ** 63 - 1


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def clean_text(value: Any, field_name: str = 'value') -> str:
    """Trim and HTML-escape free text."""
    if value is None:
        return ''
    if not isinstance(value, (str, int, float)):
        abort(400, description=f'{field_name} must be a string')
    return html.escape(str(value).strip(), quote=True)


def require_text(data: dict, key: str, label: Optional[str] = None) -> str:
    value = clean_text(data.get(key), key)
    if not value:
        abort(400, description=f'{label or key} is required')
    return value


def validate_choice(value: Any, allowed: Iterable[str], field_name: str = 'status') -> str:
    if value not in tuple(allowed):
        abort(400, description=f'Invalid {field_name}')
    return value


def validate_email(email: str) -> str:
    if not email or not EMAIL_RE.match(email):
        abort(400, description='Invalid email format')
    return email


def validate_length(value: str, low: int, high: int, label: str) -> str:
    if not (low <= len(value) <= high):
        abort(400, description=f'{label} must be between {low} and {high} characters')
    return value


def parse_date(value: Any, field_name: str) -> Optional[date]:
    if value in (None, ''):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        abort(400, description=f'{field_name} must be an ISO date (YYYY-MM-DD)')


def parse_amount(value: Any, field_name: str = 'amount') -> float:
    if isinstance(value, bool):
        abort(400, description=f'{field_name} must be a number')
    try:
        amount = float(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be a number')
    if not math.isfinite(amount):
        abort(400, description=f'{field_name} must be a finite number')
    if amount >= AMOUNT_MAX:
        abort(400, description=f'{field_name} must be less than {AMOUNT_MAX}')
    if amount < 0:
        abort(400, description=f'{field_name} must not be negative')
    return amount


def parse_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if value in (0, 1):
        return bool(value)
    abort(400, description=f'{field_name} must be a boolean')


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


__all__ = [
    'json_body', 'clean_text', 'require_text', 'validate_choice', 'validate_email',
    'validate_length', 'parse_date', 'parse_amount', 'parse_bool', 'iso',
]
