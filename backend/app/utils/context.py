# backend/app/utils/context.py
"""
Request-scoped context (correlation ID, acting user).

Backed by contextvars so values follow the request through sync and async
code without being passed around explicitly.

Usage:
    from app.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")      # middleware
    get_correlation_id()               # anywhere -> "abc-123"
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


def get_current_user_id() -> str | None:
    """Return the user id the current request operates on, if a router set it."""
    return _user_id_var.get()


def set_current_user_id(user_id: str | None) -> None:
    _user_id_var.set(user_id)
