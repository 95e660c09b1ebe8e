"""Domain errors raised by the service layer.

Routers translate these into HTTP responses:
ValidationError -> 400, NotAuthenticatedError -> 401,
NotFoundError -> 404, UpstreamError -> 500.
"""
from typing import Optional


class AppError(Exception):
    """Base class for add-on app errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or malformed add-on fields."""

    status_code = 400


class NotAuthenticatedError(AppError):
    """No stored access credential for the shop."""

    status_code = 401


class NotFoundError(AppError):
    """Unknown record id."""

    status_code = 404


class UpstreamError(AppError):
    """Shopify API returned a non-2xx response or was unreachable."""

    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
