"""SQLAlchemy database models."""
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, JSON, Index
from sqlalchemy.sql import func

from addons_app.database import Base


class Addon(Base):
    """Add-on definition attached to a product of one shop."""
    __tablename__ = "addons"

    id = Column(Integer, primary_key=True, index=True)
    # Numeric Shopify product id, or a product handle pending resolution
    product_id = Column(String(255), nullable=False, index=True)
    shop = Column(String(255), nullable=False, index=True, default="default")

    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)  # dropdown: base offset added to every option
    type = Column(String(20), nullable=False)  # checkbox, dropdown
    required = Column(Boolean, default=False)
    options = Column(JSON, default=list)  # [{label, value, price}], dropdown only

    # Soft-delete flag; rows are never removed
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_addon_shop_product_active', 'shop', 'product_id', 'active'),
    )


class ShopSession(Base):
    """Offline access credential stored per shop after OAuth install."""
    __tablename__ = "shop_sessions"

    id = Column(Integer, primary_key=True, index=True)
    shop = Column(String(255), unique=True, nullable=False, index=True)
    access_token = Column(Text, nullable=False)
    scope = Column(Text)
    domain = Column(String(255), index=True)  # primary storefront domain

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
