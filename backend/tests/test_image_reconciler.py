"""
Tests for image list reconciliation.
"""
from app.services.image_reconciler import (
    normalize_image_url,
    reconcile_product_images,
    reconcile_variant_images,
)

CDN = "https://cdn.shopify.com/s/files/1/products"


def test_normalize_strips_query():
    assert normalize_image_url(f"{CDN}/a.jpg?v=1") == f"{CDN}/a.jpg"


class TestProductImages:
    def test_unedited_takes_canonical(self):
        existing = [f"{CDN}/old.jpg"]
        canonical = [f"{CDN}/a.jpg?v=2", f"{CDN}/b.jpg?v=2"]
        assert reconcile_product_images(existing, canonical, manually_edited=False) == canonical

    def test_unedited_keeps_existing_when_canonical_empty(self):
        existing = [f"{CDN}/a.jpg?v=1"]
        assert reconcile_product_images(existing, [], manually_edited=False) == existing

    def test_manually_edited_keeps_curation(self):
        existing = [f"{CDN}/b.jpg?v=1", "https://example.com/custom.png"]
        canonical = [f"{CDN}/a.jpg?v=2", f"{CDN}/b.jpg?v=2"]

        result = reconcile_product_images(existing, canonical, manually_edited=True)

        assert result == [f"{CDN}/b.jpg?v=2", "https://example.com/custom.png"]

    def test_idempotent(self):
        existing = [f"{CDN}/b.jpg?v=1", "https://example.com/custom.png"]
        canonical = [f"{CDN}/b.jpg?v=2"]
        once = reconcile_product_images(existing, canonical, manually_edited=True)
        assert reconcile_product_images(once, canonical, manually_edited=True) == once


class TestVariantImages:
    def test_refreshes_matching_urls_only(self):
        existing = [f"{CDN}/a.jpg?v=1", f"{CDN}/z.jpg?v=1"]
        candidates = [f"{CDN}/a.jpg?v=9", f"{CDN}/b.jpg?v=9"]

        result = reconcile_variant_images(existing, candidates)

        assert result == [f"{CDN}/a.jpg?v=9", f"{CDN}/z.jpg?v=1"]

    def test_never_adds_images(self):
        assert reconcile_variant_images([], [f"{CDN}/a.jpg"]) == []

    def test_first_candidate_wins_for_duplicates(self):
        candidates = [f"{CDN}/a.jpg?v=2", f"{CDN}/a.jpg?v=3"]
        assert reconcile_variant_images([f"{CDN}/a.jpg?v=1"], candidates) == [f"{CDN}/a.jpg?v=2"]
