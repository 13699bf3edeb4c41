"""Shared helpers for the page services: toast payloads, validation errors, dates."""
import datetime
import logging
from typing import Any, Dict, Optional


class ValidationError(ValueError):
    """Raised when user input fails a client-side check before any API call."""


def toast(kind: str, message: str, **extra: Any) -> Dict[str, Any]:
    """Build the notification payload shown to the user.

    *kind* is one of ``success``, ``warning``, ``error`` or ``info``.
    """
    payload: Dict[str, Any] = {'type': kind, 'message': message}
    payload.update(extra)
    return payload


def parse_date(value: Any) -> Optional[datetime.date]:
    """Turn an ISO date/datetime string (or a date) into a ``date``.

    Returns ``None`` for empty or unparseable values.
    """
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value).strip()
    try:
        return datetime.date.fromisoformat(text[:10])
    except ValueError:
        return None


class BaseService:
    """Gives every service a logger named ``alumni.service.<ClassName>``."""

    def __init__(self) -> None:
        self._log = logging.getLogger(f'alumni.service.{type(self).__name__}')
