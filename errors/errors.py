"""Application errors.

Every failure the API reports to a client is one of these exceptions. Each
carries the HTTP status it maps to and a human-readable message; the error
handlers registered in ``app.py`` turn them into the JSON envelope.
"""
from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """Base class for errors that are reported to the client."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


# Malformed requests and validation failures are the same thing to clients.
BadRequest = ValidationError


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Not authorized"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class AlreadySaved(ApiError):
    status_code = 400
    default_message = "Movie already saved to your list"


class NotSaved(ApiError):
    status_code = 400
    default_message = "Movie not in your saved list"


class UpstreamError(ApiError):
    status_code = 502
    default_message = "Movie provider request failed"


class ConfigError(ApiError):
    status_code = 500
    default_message = "Server is misconfigured"
