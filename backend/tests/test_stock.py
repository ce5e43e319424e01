"""
Tests for the stock rollup.
"""
from app.schemas.catalog import CanonicalVariant, ReplicaVariant
from app.services.stock import aggregate_stock


def test_empty():
    rollup = aggregate_stock([])
    assert rollup.total_stock == 0
    assert rollup.has_in_stock_variants is False
    assert rollup.total_variant_count == 0


def test_counts_positive_and_backorder_variants():
    variants = [
        CanonicalVariant(id="1", inventory_quantity=5),
        CanonicalVariant(id="2", inventory_quantity=0),
        CanonicalVariant(id="3", inventory_quantity=0, inventory_policy="continue"),
    ]

    rollup = aggregate_stock(variants)

    assert rollup.total_stock == 5
    assert rollup.in_stock_variant_count == 2
    assert rollup.has_in_stock_variants is True
    assert rollup.total_variant_count == 3


def test_negative_quantities_count_toward_total():
    rollup = aggregate_stock([CanonicalVariant(id="1", inventory_quantity=-2), CanonicalVariant(id="2", inventory_quantity=3)])
    assert rollup.total_stock == 1
    assert rollup.in_stock_variant_count == 1


def test_quantity_alias_priority():
    variants = [
        {"inventory_quantity": 4, "inventoryQuantity": 9, "stock": 1},
        {"inventoryQuantity": 2, "stock": 7},
        {"stock": 3},
    ]
    assert aggregate_stock(variants).total_stock == 9


def test_replica_variants_resolve_legacy_fields():
    variant = ReplicaVariant.model_validate({"id": "v", "inventory_quantity": 6, "stock": 1})
    assert variant.stock == 6
    assert aggregate_stock([variant]).as_fields() == {
        "totalStock": 6,
        "hasInStockVariants": True,
        "inStockVariantCount": 1,
        "totalVariantCount": 1,
    }
