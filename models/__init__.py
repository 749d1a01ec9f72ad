"""
Database models and record types for the jewelry quote system.
"""

from .base import (
    Base, BaseModel, EntityType, GoldColor, PriceKind, ProductCategory, PurityTier
)
from .product import Product, NUMERIC_PRECISION
from .price_history import PriceHistory
from .app_config import AppConfig
from .records import (
    ConfigEntry, CurrentUser, LocalSnapshot, PriceHistoryRecord, ProductFilter, ProductRecord
)

__all__ = [
    "Base",
    "BaseModel",
    "EntityType",
    "GoldColor",
    "PriceKind",
    "ProductCategory",
    "PurityTier",
    "Product",
    "NUMERIC_PRECISION",
    "PriceHistory",
    "AppConfig",
    "ConfigEntry",
    "CurrentUser",
    "LocalSnapshot",
    "ProductFilter",
    "PriceHistoryRecord",
    "ProductRecord"
]
