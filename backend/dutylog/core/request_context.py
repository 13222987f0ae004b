"""Request context utilities.

Carries the correlation/request ID and, once resolved, the acting principal's
ID so every log line emitted while handling a request can be tied back to it.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_principal_id_var: ContextVar[str | None] = ContextVar("principal_id", default=None)


def get_request_id() -> str | None:
    """Get the current request correlation ID (if any)."""

    return _request_id_var.get()


def set_request_id(request_id: str | None) -> Token[str | None]:
    """Set the current request correlation ID and return the reset token."""

    return _request_id_var.set(request_id)


def reset_request_id(token: Token[str | None]) -> None:
    _request_id_var.reset(token)


def new_request_id() -> str:
    """Generate a new correlation ID."""

    return str(uuid4())


def get_principal_id() -> str | None:
    return _principal_id_var.get()


def bind_principal_id(principal_id: str | None) -> None:
    """Attach the authenticated principal to the current request context.

    Called by the identity dependency; the value lives until the enclosing
    ``request_id_context`` exits.
    """

    _principal_id_var.set(principal_id)


@contextmanager
def request_id_context(request_id: str | None):
    """Context manager that scopes the correlation ID and principal binding."""

    token = set_request_id(request_id)
    principal_token = _principal_id_var.set(None)
    try:
        yield
    finally:
        _principal_id_var.reset(principal_token)
        reset_request_id(token)
