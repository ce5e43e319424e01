"""
Services package for the reconciliation pipeline.
"""
from app.services.deletion import DeletionCascade
from app.services.drift_corrector import DriftCorrector
from app.services.mirror_updater import MirrorUpdater
from app.services.replica_propagator import ReplicaPropagator
from app.services.shopify_client import ShopifyAdminClient, ShopifyAPIError, ShopifyNotFoundError
from app.services.storefronts import StorefrontRegistry

__all__ = [
    "ShopifyAdminClient",
    "ShopifyAPIError",
    "ShopifyNotFoundError",
    "StorefrontRegistry",
    "MirrorUpdater",
    "ReplicaPropagator",
    "DeletionCascade",
    "DriftCorrector",
]
