"""
Pydantic schemas package.
"""
from app.schemas.catalog import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalVariant,
    Cart,
    CartItem,
    Category,
    MarketEntry,
    MirrorRecord,
    ReplicaProduct,
    ReplicaVariant,
    StockRollup,
)
from app.schemas.reports import (
    CartFanOutResult,
    DeletionReport,
    DriftReport,
    MirrorUpdate,
    PropagationResult,
    ReplicaRef,
    SecondaryEffect,
    StorefrontOutcome,
    VariantSyncResult,
)

__all__ = [
    # Catalog
    "CanonicalImage",
    "CanonicalProduct",
    "CanonicalVariant",
    "MirrorRecord",
    "MarketEntry",
    "ReplicaProduct",
    "ReplicaVariant",
    "StockRollup",
    "Cart",
    "CartItem",
    "Category",
    # Reports
    "SecondaryEffect",
    "ReplicaRef",
    "StorefrontOutcome",
    "PropagationResult",
    "CartFanOutResult",
    "MirrorUpdate",
    "DeletionReport",
    "DriftReport",
    "VariantSyncResult",
]
