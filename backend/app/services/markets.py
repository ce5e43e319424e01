"""
Market resolution: per-market availability, currency and shipping data
stored on mirror records and copied to storefront replicas.

Prices are never resolved here; variant prices are global.
"""
from typing import Any, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.catalog import MarketEntry

logger = get_logger(__name__)


class MarketConfig(BaseModel):
    """Static defaults for one market."""

    code: str
    name: str
    currency: str = "EUR"
    locale: Optional[str] = None
    shipping_estimate: Optional[str] = Field(None, alias="shippingEstimate")
    delivery_estimate_days: Optional[str] = Field(None, alias="deliveryEstimateDays")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ShippingMethod(BaseModel):
    name: str
    price: float
    currency: str = "EUR"


class ShippingRates(BaseModel):
    """Resolved shipping rates for one country."""

    standard: str
    express: str
    currency: str = "EUR"
    has_actual_rates: bool = Field(True, alias="hasActualRates")
    all_rates: list[ShippingMethod] = Field(default_factory=list, alias="allRates")

    model_config = ConfigDict(populate_by_name=True)


def _market(code: str, name: str, currency: str, locale: str) -> MarketConfig:
    return MarketConfig(
        code=code,
        name=name,
        currency=currency,
        locale=locale,
        shipping_estimate="2.90",
        delivery_estimate_days="7-10",
    )


MARKET_CONFIG: dict[str, MarketConfig] = {
    m.code: m
    for m in (
        _market("FI", "Finland", "EUR", "fi-FI"),
        _market("DE", "Germany", "EUR", "de-DE"),
        _market("SE", "Sweden", "SEK", "sv-SE"),
        _market("NO", "Norway", "NOK", "nb-NO"),
        _market("DK", "Denmark", "DKK", "da-DK"),
        _market("FR", "France", "EUR", "fr-FR"),
        _market("IT", "Italy", "EUR", "it-IT"),
        _market("ES", "Spain", "EUR", "es-ES"),
        _market("NL", "Netherlands", "EUR", "nl-NL"),
        _market("BE", "Belgium", "EUR", "nl-BE"),
        _market("AT", "Austria", "EUR", "de-AT"),
        _market("CH", "Switzerland", "CHF", "de-CH"),
        _market("PL", "Poland", "PLN", "pl-PL"),
        _market("IE", "Ireland", "EUR", "en-IE"),
    )
}

SUPPORTED_MARKETS: list[str] = list(MARKET_CONFIG)

DEFAULT_MARKET = "DE"


def get_market_config(
    code: Optional[str],
    market_config: Mapping[str, MarketConfig] = MARKET_CONFIG,
) -> MarketConfig:
    """Config for a market code, defaulting to Germany."""
    config = market_config.get((code or "").upper())
    if config is None:
        config = market_config.get(DEFAULT_MARKET) or MARKET_CONFIG[DEFAULT_MARKET]
    return config


def build_markets_array(flags: Mapping[str, Any]) -> list[str]:
    """Market codes whose `publishedIn{CODE}` flag is truthy, in config order."""
    return [code for code in SUPPORTED_MARKETS if flags.get(f"publishedIn{code}")]


def parse_delivery_profiles(data: Mapping[str, Any]) -> dict[str, ShippingRates]:
    """
    Build the per-country rate table from a `deliveryProfiles` query result.

    The standard rate is the method named "standard", else the cheapest.
    The express rate is the method named "express", else the most
    expensive, else the standard price.
    """
    rates: dict[str, ShippingRates] = {}
    profiles = (data.get("deliveryProfiles") or {}).get("edges") or []

    for profile in profiles:
        for group in (profile.get("node") or {}).get("profileLocationGroups") or []:
            for zone_edge in (group.get("locationGroupZones") or {}).get("edges") or []:
                zone = zone_edge.get("node") or {}
                methods = []
                for method_edge in (zone.get("methodDefinitions") or {}).get("edges") or []:
                    node = method_edge.get("node") or {}
                    provider = node.get("rateProvider")
                    if not node.get("active") or not provider:
                        continue
                    price = provider.get("price") or {}
                    try:
                        amount = float(price.get("amount") or 0)
                    except (TypeError, ValueError):
                        continue
                    if amount < 0:
                        continue
                    methods.append(
                        ShippingMethod(
                            name=node.get("name") or "",
                            price=amount,
                            currency=price.get("currencyCode") or "EUR",
                        )
                    )
                if not methods:
                    continue

                by_price = sorted(methods, key=lambda m: m.price)
                standard = next((m for m in methods if "standard" in m.name.lower()), by_price[0])
                express = next((m for m in methods if "express" in m.name.lower()), by_price[-1])

                for country in (zone.get("zone") or {}).get("countries") or []:
                    code = (country.get("code") or {}).get("countryCode")
                    if not code:
                        continue
                    rates[code] = ShippingRates(
                        standard=f"{standard.price:.2f}",
                        express=f"{express.price:.2f}",
                        currency=standard.currency,
                        has_actual_rates=True,
                        all_rates=methods,
                    )
    return rates


async def load_shipping_rates(commerce: Any) -> Optional[dict[str, ShippingRates]]:
    """Fetch the rate table, returning None (estimates everywhere) on failure."""
    try:
        return await commerce.get_shipping_rates()
    except Exception as e:
        logger.warning("Failed to fetch shipping rates, using market estimates", error=str(e))
        return None


async def resolve_markets(
    product_id: str,
    markets: Sequence[str],
    shipping_rates: Optional[Mapping[str, ShippingRates]],
    market_config: Mapping[str, MarketConfig] = MARKET_CONFIG,
    commerce: Any = None,
) -> dict[str, MarketEntry]:
    """
    Build the marketsObject for a product.

    Availability and currency come from the per-market storefront lookup
    when it answers, otherwise the market is assumed available in EUR.
    """
    markets_object: dict[str, MarketEntry] = {}

    for market in markets:
        config = get_market_config(market, market_config)
        availability = None
        if commerce is not None:
            try:
                availability = await commerce.get_market_availability(product_id, market)
            except Exception as e:
                logger.warning(
                    "Failed to fetch market availability",
                    shopify_id=product_id,
                    market=market,
                    error=str(e),
                )

        rates = (shipping_rates or {}).get(market)
        if rates is not None:
            shipping_rate = rates.standard
            express_rate = rates.express or rates.standard
            is_estimate = not rates.has_actual_rates
        else:
            shipping_rate = config.shipping_estimate or "0.00"
            express_rate = shipping_rate
            is_estimate = True

        markets_object[market] = MarketEntry(
            available=bool(availability.get("available", True)) if availability else True,
            currency=(availability or {}).get("currency") or "EUR",
            shipping_rate=shipping_rate,
            shipping_estimate=shipping_rate,
            express_shipping_rate=express_rate,
            is_shipping_estimate=is_estimate,
            delivery_estimate_days=config.delivery_estimate_days or settings.default_delivery_estimate_days,
        )

    return markets_object
