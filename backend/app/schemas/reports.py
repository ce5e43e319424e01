"""
Result schemas returned by the reconciliation services and the API.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.catalog import MirrorRecord


class SecondaryEffect(BaseModel):
    """Outcome of a best-effort side effect (auto-publish, cart fan-out)."""

    name: str
    ok: bool = True
    skipped: bool = False
    detail: Optional[str] = None


class ReplicaRef(BaseModel):
    """A replica product touched by propagation."""

    replica_id: str = Field(alias="replicaId")
    storefront: str

    model_config = ConfigDict(populate_by_name=True)


class StorefrontOutcome(BaseModel):
    """Per-storefront propagation result."""

    storefront: str
    succeeded: bool = True
    replica_ids: list[str] = Field(default_factory=list, alias="replicaIds")
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CartFanOutResult(BaseModel):
    carts_scanned: int = Field(0, alias="cartsScanned")
    carts_updated: int = Field(0, alias="cartsUpdated")
    items_updated: int = Field(0, alias="itemsUpdated")

    model_config = ConfigDict(populate_by_name=True)


class PropagationResult(BaseModel):
    """Everything propagation did for one canonical product."""

    shopify_id: str = Field(alias="shopifyId")
    outcomes: list[StorefrontOutcome] = Field(default_factory=list)
    cart_fan_out: Optional[SecondaryEffect] = Field(None, alias="cartFanOut")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def updated(self) -> list[ReplicaRef]:
        return [
            ReplicaRef(replica_id=replica_id, storefront=outcome.storefront)
            for outcome in self.outcomes
            for replica_id in outcome.replica_ids
        ]

    @property
    def succeeded_storefronts(self) -> list[str]:
        return [o.storefront for o in self.outcomes if o.succeeded]

    @property
    def failed_storefronts(self) -> list[str]:
        return [o.storefront for o in self.outcomes if not o.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed_storefronts


class MirrorUpdate(BaseModel):
    """Merged mirror state plus the deltas downstream callers act on."""

    mirror: MirrorRecord
    markets_changed: bool = Field(False, alias="marketsChanged")
    publication_changed: bool = Field(False, alias="publicationChanged")
    created: bool = False
    auto_publish: SecondaryEffect = Field(
        default_factory=lambda: SecondaryEffect(name="auto_publish", skipped=True),
        alias="autoPublish",
    )

    model_config = ConfigDict(populate_by_name=True)


class DeletionReport(BaseModel):
    """Counts of documents removed or rewritten by a deletion cascade."""

    shopify_id: Optional[str] = Field(None, alias="shopifyId")
    deleted_mirrors: int = Field(0, alias="deletedMirrors")
    deleted_products: int = Field(0, alias="deletedProducts")
    deleted_variants: int = Field(0, alias="deletedVariants")
    updated_products: int = Field(0, alias="updatedProducts")
    updated_categories: int = Field(0, alias="updatedCategories")
    deleted_categories: int = Field(0, alias="deletedCategories")

    model_config = ConfigDict(populate_by_name=True)


class DriftReport(BaseModel):
    """Summary of one drift-correction pass."""

    updated: int = 0
    skipped: int = 0
    errors: int = 0
    variant_updates: int = Field(0, alias="variantUpdates")

    model_config = ConfigDict(populate_by_name=True)


class VariantSyncResult(BaseModel):
    """Outcome of syncing a single variant's inventory."""

    action: str
    shopify_id: Optional[str] = Field(None, alias="shopifyId")
    quantity: Optional[int] = None
    updated_replicas: int = Field(0, alias="updatedReplicas")
    deletion: Optional[DeletionReport] = None

    model_config = ConfigDict(populate_by_name=True)
