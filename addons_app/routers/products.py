"""Shopify passthrough router."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from addons_app.database import get_db
from addons_app.exceptions import AppError
from addons_app.schemas import ResolveShopResponse
from addons_app.services import session_service, shopify_service
from addons_app.services.shopify_service import normalize_shop_domain

router = APIRouter()


@router.get("/products")
async def get_products(
    shop: str,
    limit: int = 250,
    db: Session = Depends(get_db)
):
    """Product list straight from the shop's Admin API."""
    try:
        shop = normalize_shop_domain(shop)
        session = session_service.require_session(db, shop)
        return shopify_service.get_products(shop, session.access_token, limit=limit)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/resolve-shop", response_model=ResolveShopResponse)
async def resolve_shop(
    domain: str,
    db: Session = Depends(get_db)
):
    """Map a storefront custom domain to its myshopify.com domain."""
    try:
        shop = session_service.resolve_domain(db, domain)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"domain": domain, "shop": shop}
