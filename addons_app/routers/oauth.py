"""Shopify OAuth flow for app installation and token management."""
import logging
from fastapi import APIRouter, Request, HTTPException, Depends
from fastapi.responses import RedirectResponse, HTMLResponse
from sqlalchemy.orm import Session

from addons_app.config import settings
from addons_app.database import get_db
from addons_app.exceptions import AppError, UpstreamError
from addons_app.schemas import ShopStatusResponse
from addons_app.services import session_service, shopify_service
from addons_app.services.shopify_service import normalize_shop_domain, verify_shopify_hmac

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def install_app(shop: str = None):
    """
    Step 1: Redirect the merchant to the Shopify authorization page.

    Usage: https://your-app.com/auth?shop=yourstore.myshopify.com
    """
    try:
        shop = normalize_shop_domain(shop)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if not settings.shopify_api_key:
        raise HTTPException(status_code=500, detail="Shopify API key not configured")

    # Must match the redirect URL configured in the Partner Dashboard
    redirect_uri = f"{settings.app_url.rstrip('/')}/auth/callback"
    auth_url = shopify_service.build_authorize_url(shop, redirect_uri, state=shop)

    logger.info("Starting OAuth install for %s", shop)
    return RedirectResponse(url=auth_url)


@router.get("/callback")
async def oauth_callback(
    request: Request,
    code: str = None,
    shop: str = None,
    state: str = None,
    db: Session = Depends(get_db)
):
    """
    Step 2: Shopify redirects here after the merchant approves.
    Exchange the authorization code for an access token and store it.
    """
    if not code or not shop:
        raise HTTPException(status_code=400, detail="Missing code or shop parameter")

    try:
        shop = normalize_shop_domain(shop)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    if settings.verify_oauth_hmac and settings.shopify_api_secret:
        if not verify_shopify_hmac(dict(request.query_params), settings.shopify_api_secret):
            logger.warning("Rejected OAuth callback with invalid HMAC for %s", shop)
            raise HTTPException(status_code=403, detail="Invalid HMAC signature")

    if state and state != shop:
        raise HTTPException(status_code=400, detail="OAuth state does not match shop")

    if not settings.shopify_api_key or not settings.shopify_api_secret:
        raise HTTPException(status_code=500, detail="Shopify credentials not configured")

    try:
        token_response = shopify_service.exchange_token(shop, code)
        access_token = token_response["access_token"]
        scope = token_response.get("scope")

        domain = None
        try:
            domain = shopify_service.get_shop(shop, access_token).get("domain")
        except UpstreamError as e:
            logger.warning("Could not fetch shop details for %s: %s", shop, e.message)

        session_service.store_session(db, shop, access_token, scope=scope, domain=domain)

        if settings.storefront_script_url:
            shopify_service.ensure_script_tag(shop, access_token, settings.storefront_script_url)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info("App installed for %s (scopes: %s)", shop, scope)
    return HTMLResponse(content=f"""
    <!DOCTYPE html>
    <html>
    <head><title>App Installed Successfully</title></head>
    <body>
        <h1>App Installed Successfully!</h1>
        <p><strong>Shop:</strong> {shop}</p>
        <p><strong>Scopes:</strong> {scope}</p>
        <p>Product add-ons can now be managed for this store.</p>
    </body>
    </html>
    """)


@router.get("/status", response_model=ShopStatusResponse)
async def oauth_status(shop: str, db: Session = Depends(get_db)):
    """Check whether a shop has completed the install."""
    try:
        shop = normalize_shop_domain(shop)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    session = session_service.get_session(db, shop)
    return {
        "shop": shop,
        "installed": bool(session and session.access_token),
        "scope": session.scope if session else None,
        "domain": session.domain if session else None,
        "installed_at": session.created_at if session else None,
    }
