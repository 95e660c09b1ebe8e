"""Pydantic schemas for request/response validation."""
from datetime import datetime
from enum import Enum
from typing import Optional, List, Any
from pydantic import BaseModel, Field


# ============================================================================
# Add-on Schemas
# ============================================================================

class AddonType(str, Enum):
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"


class AddonOption(BaseModel):
    label: str
    value: str
    price: float = 0.0


class AddonCreate(BaseModel):
    """Create payload.

    Fields are loose on purpose here; the catalog service does the
    validation so the same rules apply to API and direct callers.
    """
    product_id: Optional[Any] = Field(None, alias="productId")
    name: Optional[Any] = None
    price: Optional[Any] = None
    type: Optional[Any] = None
    required: Optional[Any] = False
    options: Optional[Any] = None
    shop: Optional[Any] = None

    class Config:
        populate_by_name = True


class AddonUpdate(BaseModel):
    product_id: Optional[Any] = Field(None, alias="productId")
    name: Optional[Any] = None
    price: Optional[Any] = None
    type: Optional[Any] = None
    required: Optional[Any] = None
    options: Optional[Any] = None
    active: Optional[Any] = None

    class Config:
        populate_by_name = True


class AddonResponse(BaseModel):
    id: int
    product_id: str = Field(alias="productId")
    shop: str
    name: str
    price: float
    type: AddonType
    required: bool = False
    options: List[AddonOption] = []
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class DeleteResponse(BaseModel):
    id: int
    active: bool
    message: str


# ============================================================================
# Shop / OAuth Schemas
# ============================================================================

class ShopStatusResponse(BaseModel):
    shop: str
    installed: bool
    scope: Optional[str] = None
    domain: Optional[str] = None
    installed_at: Optional[datetime] = None


class ResolveShopResponse(BaseModel):
    domain: str
    shop: str


# ============================================================================
# Health Schemas
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    shopify_app_configured: bool
