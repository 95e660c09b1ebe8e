"""Add-on CRUD router."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from addons_app.database import get_db
from addons_app.exceptions import AppError
from addons_app.schemas import AddonCreate, AddonUpdate, AddonResponse, DeleteResponse
from addons_app.services import addon_catalog

router = APIRouter()


@router.get("", response_model=List[AddonResponse])
async def list_shop_addons(
    shop: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Get all active add-ons of a shop."""
    return addon_catalog.list_for_shop(db, shop=shop)


@router.get("/{product_id}", response_model=List[AddonResponse])
async def list_product_addons(
    product_id: str,
    shop: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Get active add-ons for a product.
    Called by the storefront script on product pages.
    """
    return addon_catalog.list(db, product_id=product_id, shop=shop)


@router.post("", response_model=AddonResponse)
async def create_addon(
    request: AddonCreate,
    db: Session = Depends(get_db)
):
    """Create an add-on definition."""
    try:
        return addon_catalog.create(db, request.model_dump())
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{addon_id}", response_model=AddonResponse)
async def update_addon(
    addon_id: int,
    request: AddonUpdate,
    db: Session = Depends(get_db)
):
    """Partially update an add-on; omitted fields are left as they are."""
    try:
        return addon_catalog.update(db, addon_id, request.model_dump(exclude_unset=True))
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{addon_id}", response_model=DeleteResponse)
async def delete_addon(
    addon_id: int,
    db: Session = Depends(get_db)
):
    """Soft-delete an add-on. Repeating the call is harmless."""
    try:
        addon = addon_catalog.soft_delete(db, addon_id)
    except AppError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"id": addon.id, "active": addon.active, "message": "Add-on deleted successfully"}
