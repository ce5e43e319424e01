"""
Match canonical Shopify variants to storefront replica variants.

Matching never creates replica variants; an unmatched canonical variant is
simply left alone until an admin saves it into a storefront.
"""
from typing import Optional, Sequence

from app.schemas.catalog import CanonicalVariant, ReplicaVariant


def _token(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def option_tokens(variant: CanonicalVariant) -> tuple[str, str]:
    """
    Derive (color, size) tokens from a variant's option values.

    The first populated option slot is taken as color/style and the next
    one as size. With a single populated slot both tokens use it.
    """
    values = variant.option_values
    if not values:
        return "", ""
    color = _token(values[0])
    size = _token(values[1]) if len(values) > 1 else color
    return color, size


def match_by_sku(
    canonical: CanonicalVariant,
    existing: Sequence[ReplicaVariant],
) -> Optional[ReplicaVariant]:
    """Replica variant whose SKU equals the canonical SKU exactly, if the canonical has one."""
    if not canonical.sku:
        return None
    for replica in existing:
        if replica.sku == canonical.sku:
            return replica
    return None


def match_variant(
    canonical: CanonicalVariant,
    existing: Sequence[ReplicaVariant],
) -> Optional[ReplicaVariant]:
    """
    Find the replica variant a canonical variant corresponds to.

    1. Exact, case-sensitive SKU equality when the canonical SKU is set.
    2. Attribute similarity: a size match is sufficient. Among size matches
       one whose color also matches is preferred.
    """
    replica = match_by_sku(canonical, existing)
    if replica is not None:
        return replica

    color, size = option_tokens(canonical)
    if not size:
        return None

    size_matches = [r for r in existing if _token(r.size) == size]
    for replica in size_matches:
        if _token(replica.color) == color:
            return replica
    return size_matches[0] if size_matches else None


def match_variant_by_ids(
    replica: ReplicaVariant,
    canonical_variants: Sequence[CanonicalVariant],
) -> Optional[CanonicalVariant]:
    """Match a replica variant to its canonical variant by inventory item id, then variant id."""
    if replica.shopify_inventory_item_id:
        for variant in canonical_variants:
            if variant.inventory_item_id == replica.shopify_inventory_item_id:
                return variant
    if replica.shopify_variant_id:
        for variant in canonical_variants:
            if variant.id == replica.shopify_variant_id:
                return variant
    return None


def pair_variants(
    canonical_variants: Sequence[CanonicalVariant],
    replicas: Sequence[ReplicaVariant],
) -> list[tuple[ReplicaVariant, CanonicalVariant]]:
    """
    Pair each replica variant with at most one canonical variant.

    Exact SKU matches are assigned first across all canonical variants, so
    an attribute match from an earlier variant never takes a replica whose
    SKU belongs to a later one. Attribute matching then runs over the
    replicas left, and remaining replicas fall back to their recorded ids.
    """
    pairs: list[tuple[ReplicaVariant, CanonicalVariant]] = []
    claimed: set[int] = set()
    used: set[str] = set()

    def claim(replica: ReplicaVariant, canonical: CanonicalVariant) -> None:
        claimed.add(id(replica))
        used.add(canonical.id)
        pairs.append((replica, canonical))

    for matcher in (match_by_sku, match_variant):
        for canonical in canonical_variants:
            if canonical.id in used:
                continue
            replica = matcher(canonical, [r for r in replicas if id(r) not in claimed])
            if replica is not None:
                claim(replica, canonical)

    unused = [c for c in canonical_variants if c.id not in used]
    for replica in replicas:
        if id(replica) in claimed:
            continue
        canonical = match_variant_by_ids(replica, unused)
        if canonical is not None:
            unused = [c for c in unused if c.id != canonical.id]
            claim(replica, canonical)

    return pairs
