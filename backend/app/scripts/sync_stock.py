"""
Batch drift correction.

Re-applies every mirror record's stock rollup and variant quantities to
its storefront replicas.

Usage:
    python -m app.scripts.sync_stock
    python -m app.scripts.sync_stock --shopify-id 123 --shopify-id 456
"""
import argparse
import asyncio
import sys
from typing import Optional, Sequence

from app.core.config import settings
from app.core.database import async_session_factory, close_db, init_db, is_db_available
from app.core.logging import configure_logging, get_logger
from app.repositories import CatalogRepository, DocumentStore, SqlDocumentStore
from app.schemas.reports import DriftReport
from app.services.drift_corrector import DriftCorrector
from app.services.shopify_client import ShopifyAdminClient
from app.services.storefronts import StorefrontRegistry

logger = get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync storefront replica stock with mirror records")
    parser.add_argument(
        "--shopify-id",
        dest="shopify_ids",
        action="append",
        default=None,
        help="Only correct this Shopify product id (repeatable)",
    )
    return parser.parse_args(argv)


async def run(
    store: DocumentStore,
    shopify_ids: Optional[Sequence[str]] = None,
    registry: Optional[StorefrontRegistry] = None,
    commerce: Optional[ShopifyAdminClient] = None,
) -> DriftReport:
    corrector = DriftCorrector(
        CatalogRepository(store),
        registry or StorefrontRegistry.from_settings(),
        commerce or ShopifyAdminClient(),
    )
    return await corrector.correct(shopify_ids)


def print_summary(report: DriftReport) -> None:
    print("=" * 50)
    print("Stock sync summary")
    print(f"  Products updated: {report.updated}")
    print(f"  Variant updates:  {report.variant_updates}")
    print(f"  Skipped:          {report.skipped}")
    print(f"  Errors:           {report.errors}")
    print("=" * 50)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging()

    await init_db()
    if not is_db_available():
        logger.error("Database unavailable, nothing to sync", environment=settings.environment)
        return 1

    store = SqlDocumentStore(async_session_factory)
    try:
        report = await run(store, args.shopify_ids)
    except Exception as e:
        logger.exception("Stock sync failed", error=str(e))
        return 1
    finally:
        await store.close()
        await close_db()

    print_summary(report)
    return 1 if report.errors > 0 else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
