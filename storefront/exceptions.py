"""Storefront errors."""
from __future__ import annotations

from typing import Optional


class StorefrontError(Exception):
    """Base class for storefront errors."""


class CartError(StorefrontError):
    """Cart endpoint unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AddonApiError(StorefrontError):
    """Add-on backend unreachable or answered with an error."""


class MatchAmbiguous(StorefrontError):
    """No single stored selection clears the fuzzy match threshold."""
