"""
Image list reconciliation.

Shopify CDN URLs carry signed query parameters that change over time, so
images are compared on their URL without the query string.
"""
from typing import Sequence

from app.core.logging import get_logger

logger = get_logger(__name__)


def normalize_image_url(url: str) -> str:
    """Strip the query string; used for comparison only."""
    return url.split("?")[0]


def _replace_fresher(existing: Sequence[str], candidates: Sequence[str]) -> list[str]:
    fresher = {}
    for url in candidates:
        if url:
            fresher.setdefault(normalize_image_url(url), url)
    return [fresher.get(normalize_image_url(url), url) for url in existing]


def reconcile_product_images(
    existing: Sequence[str],
    canonical: Sequence[str],
    manually_edited: bool,
) -> list[str]:
    """
    Merge canonical product images into a replica's image list.

    Replicas not edited by hand take the canonical list verbatim (unless it
    is empty). Manually edited replicas keep their curated list and only
    get fresher URLs for images that are the same photo.
    """
    if not manually_edited:
        return list(canonical) if canonical else list(existing)
    return _replace_fresher(existing, canonical)


def reconcile_variant_images(
    existing: Sequence[str],
    candidates: Sequence[str],
) -> list[str]:
    """
    Refresh URLs in a variant's curated image list.

    Never adds or removes entries. If the result length would differ from
    the input, the input is returned unchanged.
    """
    result = _replace_fresher(existing, candidates)
    if len(result) != len(existing):
        logger.warning(
            "Variant image length anomaly, keeping existing images",
            existing_count=len(existing),
            result_count=len(result),
        )
        return list(existing)
    return result
