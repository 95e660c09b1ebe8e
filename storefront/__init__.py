"""Storefront side of the product add-ons app.

Works on rendered storefront HTML and the Shopify AJAX cart endpoints:
product pages get add-on controls, cart and checkout pages get their
add-on price applied through the surrogate adjustment line.
"""
from storefront.config import StorefrontSettings
from storefront.selections import Selection, ChosenAddon, SelectionStore
from storefront.cart import CartLine, Cart, CartClient
from storefront.reconciler import CartReconciler, ReconcileResult, ReconcileState
from storefront.renderer import StorefrontRenderer
from storefront.scheduler import SyncScheduler

__all__ = [
    "StorefrontSettings",
    "Selection",
    "ChosenAddon",
    "SelectionStore",
    "CartLine",
    "Cart",
    "CartClient",
    "CartReconciler",
    "ReconcileResult",
    "ReconcileState",
    "StorefrontRenderer",
    "SyncScheduler",
]
