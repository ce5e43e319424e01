"""
Product-level stock rollup.
"""
from typing import Any, Iterable, Optional

from app.schemas.catalog import BACKORDER_POLICY, StockRollup, resolve_quantity


def _quantity(variant: Any) -> int:
    if isinstance(variant, dict):
        return resolve_quantity(variant)
    return variant.quantity


def _allows_backorder(variant: Any) -> bool:
    if isinstance(variant, dict):
        policy = variant.get("inventory_policy", variant.get("inventoryPolicy"))
        return policy == BACKORDER_POLICY
    return variant.allows_backorder


def aggregate_stock(variants: Optional[Iterable[Any]]) -> StockRollup:
    """
    Compute the stock rollup for a set of variants.

    Accepts canonical variants, replica variants or raw variant dicts.
    A variant is in stock when its quantity is positive or its inventory
    policy allows backorders.
    """
    variants = list(variants or [])
    total = 0
    in_stock = 0
    for variant in variants:
        quantity = _quantity(variant)
        total += quantity
        if quantity > 0 or _allows_backorder(variant):
            in_stock += 1

    return StockRollup(
        total_stock=total,
        has_in_stock_variants=in_stock > 0,
        in_stock_variant_count=in_stock,
        total_variant_count=len(variants),
    )
