"""Bearer token guard for protected routes."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, request

from auth.sessions import Identity
from errors.errors import Unauthorized


def bearer_token() -> str:
    """Return the bearer token from the Authorization header.

    Raises:
        Unauthorized: If the header is missing or not a bearer credential.
    """
    header = request.headers.get("Authorization", "")
    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("No token provided, authorization denied")
    return parts[1]


def auth_required(view):
    """Reject the request with 401 unless it carries a valid bearer token.

    On success the caller's identity is available as ``g.identity`` inside
    the view.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        g.identity = current_app.session_issuer.verify(bearer_token())
        return view(*args, **kwargs)

    return wrapper


def current_identity() -> Identity:
    return g.identity
