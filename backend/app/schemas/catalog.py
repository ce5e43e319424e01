"""
Catalog Pydantic schemas: canonical Shopify payloads, mirror records,
storefront replicas, carts and categories.

Legacy field aliases are resolved here, once, at the ingestion boundary.
Stored documents use the camelCase aliases (``by_alias=True``).
"""
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from app.core.exceptions import PayloadError
# Quantity field names in priority order (first present wins)
QUANTITY_FIELDS = ("inventory_quantity", "inventoryQuantity", "stock")

BACKORDER_POLICY = "continue"


def normalize_shopify_id(value: Any) -> Optional[str]:
    """Normalize a Shopify id (int, numeric string or GID) to a plain string."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if text.startswith("gid://"):
        text = text.rsplit("/", 1)[-1]
    return text or None


def parse_price(value: Any) -> Optional[float]:
    """Parse a price, returning None for missing or non-finite values."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) else None


def resolve_quantity(data: Any) -> int:
    """Resolve a stock quantity from a mapping using the legacy field priority."""
    for name in QUANTITY_FIELDS:
        raw = data.get(name) if isinstance(data, dict) else getattr(data, name, None)
        if raw is None:
            continue
        try:
            return int(raw)
        except (TypeError, ValueError):
            return 0
    return 0


class CanonicalImage(BaseModel):
    """Product image as sent by Shopify."""

    id: Optional[str] = None
    src: str
    variant_ids: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_url(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"src": data}
        if isinstance(data, dict) and not data.get("src") and data.get("url"):
            return {**data, "src": data["url"]}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("variant_ids", mode="before")
    @classmethod
    def _normalize_variant_ids(cls, value: Any) -> list[str]:
        return [vid for vid in (normalize_shopify_id(v) for v in (value or [])) if vid]


class CanonicalVariant(BaseModel):
    """Variant as sent by Shopify, with quantity aliases resolved."""

    id: str
    title: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = None
    inventory_quantity: int = 0
    inventory_item_id: Optional[str] = None
    inventory_policy: Optional[str] = None
    option1: Optional[str] = None
    option2: Optional[str] = None
    option3: Optional[str] = None
    image_id: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _resolve_quantity_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["inventory_quantity"] = resolve_quantity(data)
        for alias in QUANTITY_FIELDS[1:]:
            data.pop(alias, None)
        return data

    @field_validator("id", "inventory_item_id", "image_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Optional[float]:
        return parse_price(value)

    @property
    def option_values(self) -> list[str]:
        """Populated option values in slot order."""
        return [o for o in (self.option1, self.option2, self.option3) if o and o.strip()]

    @property
    def quantity(self) -> int:
        return self.inventory_quantity

    @property
    def location_levels(self) -> Optional[list[dict[str, Any]]]:
        """Per-location `inventory_levels` attached by an inventory sync, if any."""
        return (self.model_extra or {}).get("inventory_levels")

    @property
    def allows_backorder(self) -> bool:
        return self.inventory_policy == BACKORDER_POLICY


class CanonicalProduct(BaseModel):
    """Shopify's view of a product (webhook payload or REST resource)."""

    id: str
    title: Optional[str] = None
    handle: Optional[str] = None
    status: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    options: list[Any] = Field(default_factory=list)
    images: list[CanonicalImage] = Field(default_factory=list)
    variants: list[CanonicalVariant] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return [str(t).strip() for t in value if str(t).strip()]

    @field_validator("images", "variants", "options", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    def image_urls(self) -> list[str]:
        return [img.src for img in self.images if img.src]

    def image_urls_for_variant(self, variant_id: str) -> list[str]:
        """Images explicitly tagged for one variant, in product order."""
        return [img.src for img in self.images if img.src and variant_id in img.variant_ids]

    def first_variant_price(self) -> Optional[float]:
        return self.variants[0].price if self.variants else None

    def find_variant(self, variant_id: Optional[str]) -> Optional[CanonicalVariant]:
        variant_id = normalize_shopify_id(variant_id)
        if not variant_id:
            return None
        return next((v for v in self.variants if v.id == variant_id), None)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy stored as the mirror's `rawProduct`."""
        return self.model_dump(mode="json")


def parse_canonical_product(payload: Any) -> CanonicalProduct:
    """
    Parse an inbound product payload.

    Raises:
        PayloadError: Payload is not a product with an id
    """
    try:
        return CanonicalProduct.model_validate(payload)
    except ValidationError as e:
        raise PayloadError(f"Invalid product payload: {e.error_count()} validation error(s)") from e


class MarketEntry(BaseModel):
    """Per-market availability and shipping data."""

    available: bool = True
    currency: str = "EUR"
    shipping_rate: Optional[str] = Field(None, alias="shippingRate")
    shipping_estimate: Optional[str] = Field(None, alias="shippingEstimate")
    express_shipping_rate: Optional[str] = Field(None, alias="expressShippingRate")
    is_shipping_estimate: bool = Field(True, alias="isShippingEstimate")
    delivery_estimate_days: Optional[str] = Field(None, alias="deliveryEstimateDays")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class StockRollup(BaseModel):
    """Product-level stock summary derived from variants."""

    total_stock: int = Field(0, alias="totalStock")
    has_in_stock_variants: bool = Field(False, alias="hasInStockVariants")
    in_stock_variant_count: int = Field(0, alias="inStockVariantCount")
    total_variant_count: int = Field(0, alias="totalVariantCount")

    model_config = ConfigDict(populate_by_name=True)

    def as_fields(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class MirrorRecord(BaseModel):
    """The single raw mirror document of a Shopify product (`shopifyItems`)."""

    doc_id: Optional[str] = Field(None, exclude=True)
    shopify_id: str = Field(alias="shopifyId")
    title: Optional[str] = None
    handle: Optional[str] = None
    status: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = Field(None, alias="productType")
    tags: list[str] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list, alias="imageUrls")
    raw_product: Optional[CanonicalProduct] = Field(None, alias="rawProduct")
    markets: list[str] = Field(default_factory=list)
    markets_object: dict[str, MarketEntry] = Field(default_factory=dict, alias="marketsObject")
    published_to_online_store: bool = Field(False, alias="publishedToOnlineStore")
    storefronts: list[str] = Field(default_factory=list)
    processed_storefronts: list[str] = Field(default_factory=list, alias="processedStorefronts")
    storefront_usage_count: int = Field(0, alias="storefrontUsageCount")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("shopify_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("markets", "storefronts", "processed_storefronts", "tags", "image_urls", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("markets_object", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return value or {}

    def assign_storefronts(self, storefronts: list[str]) -> None:
        """
        Record the storefronts this product is published to.

        `processedStorefronts` and `storefrontUsageCount` only ever grow.
        """
        new = [s for s in storefronts if s not in self.processed_storefronts]
        self.storefronts = list(dict.fromkeys(storefronts))
        self.processed_storefronts = [*self.processed_storefronts, *new]
        self.storefront_usage_count += len(new)

    def markets_object_fields(self) -> dict[str, Any]:
        return {code: entry.model_dump(by_alias=True) for code, entry in self.markets_object.items()}


class ReplicaVariant(BaseModel):
    """Storefront variant document (child of a ReplicaProduct)."""

    id: Optional[str] = Field(None, exclude=True)
    sku: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    type: Optional[str] = None
    shopify_variant_id: Optional[str] = Field(None, alias="shopifyVariantId")
    shopify_inventory_item_id: Optional[str] = Field(None, alias="shopifyInventoryItemId")
    stock: int = 0
    price: Optional[float] = None
    inventory_policy: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    default_photo: Optional[str] = Field(None, alias="defaultPhoto")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _resolve_stock(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {**data, "stock": resolve_quantity(data)}
        return data

    @field_validator("shopify_variant_id", "shopify_inventory_item_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Optional[float]:
        return parse_price(value)

    @field_validator("images", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [img for img in (value or []) if isinstance(img, str)]

    @property
    def quantity(self) -> int:
        return self.stock

    @property
    def allows_backorder(self) -> bool:
        return self.inventory_policy == BACKORDER_POLICY


class ReplicaProduct(BaseModel):
    """Storefront product document, partially admin-curated."""

    id: Optional[str] = Field(None, exclude=True)
    storefront: Optional[str] = Field(None, exclude=True)
    name: Optional[str] = None
    slug: Optional[str] = None
    source_shopify_id: Optional[str] = Field(None, alias="sourceShopifyId")
    source_shopify_item_doc_id: Optional[str] = Field(None, alias="sourceShopifyItemDocId")
    base_price: Optional[float] = Field(None, alias="basePrice")
    default_variant_id: Optional[str] = Field(None, alias="defaultVariantId")
    default_variant_price: Optional[float] = Field(None, alias="defaultVariantPrice")
    images: list[str] = Field(default_factory=list)
    markets: list[str] = Field(default_factory=list)
    markets_object: dict[str, MarketEntry] = Field(default_factory=dict, alias="marketsObject")
    published_to_online_store: Optional[bool] = Field(None, alias="publishedToOnlineStore")
    manually_edited: bool = Field(False, alias="manuallyEdited")
    category_ids: list[str] = Field(default_factory=list, alias="categoryIds")
    total_stock: int = Field(0, alias="totalStock")
    has_in_stock_variants: bool = Field(False, alias="hasInStockVariants")
    in_stock_variant_count: int = Field(0, alias="inStockVariantCount")
    total_variant_count: int = Field(0, alias="totalVariantCount")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _legacy_category(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("categoryIds") and data.get("categoryId"):
            data = {**data, "categoryIds": [data["categoryId"]]}
        return data

    @field_validator("source_shopify_id", "default_variant_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("base_price", "default_variant_price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Optional[float]:
        return parse_price(value)

    @field_validator("images", "markets", "category_ids", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("markets_object", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return value or {}

    def rollup(self) -> StockRollup:
        return StockRollup(
            total_stock=self.total_stock,
            has_in_stock_variants=self.has_in_stock_variants,
            in_stock_variant_count=self.in_stock_variant_count,
            total_variant_count=self.total_variant_count,
        )


class CartItem(BaseModel):
    """Line item of a cart."""

    product_id: Optional[str] = Field(None, alias="productId")
    variant_id: Optional[str] = Field(None, alias="variantId")
    shopify_variant_id: Optional[str] = Field(None, alias="shopifyVariantId")
    quantity: int = 1
    price_at_add: Optional[float] = Field(None, alias="priceAtAdd")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("shopify_variant_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Optional[str]:
        return normalize_shopify_id(value)

    @field_validator("price_at_add", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> Optional[float]:
        return parse_price(value)


class Cart(BaseModel):
    """A shopper's cart document (`carts/{id}`)."""

    id: Optional[str] = Field(None, exclude=True)
    items: list[CartItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("items", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []


class Category(BaseModel):
    """Storefront category document."""

    id: Optional[str] = Field(None, exclude=True)
    name: Optional[str] = None
    preview_product_ids: list[str] = Field(default_factory=list, alias="previewProductIds")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("preview_product_ids", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []
