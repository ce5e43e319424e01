"""
Tests for market resolution and delivery profile parsing.
"""
from unittest.mock import AsyncMock

import pytest

from app.services.markets import (
    MARKET_CONFIG,
    MarketConfig,
    ShippingRates,
    build_markets_array,
    get_market_config,
    load_shipping_rates,
    parse_delivery_profiles,
    resolve_markets,
)

DE_CONFIG = {
    "DE": MarketConfig(code="DE", name="Germany", shipping_estimate="5.90", delivery_estimate_days="5-7"),
}


def delivery_profiles(methods: list[tuple[str, str]], countries: list[str]) -> dict:
    return {
        "deliveryProfiles": {
            "edges": [
                {
                    "node": {
                        "profileLocationGroups": [
                            {
                                "locationGroupZones": {
                                    "edges": [
                                        {
                                            "node": {
                                                "zone": {
                                                    "countries": [
                                                        {"code": {"countryCode": c}} for c in countries
                                                    ]
                                                },
                                                "methodDefinitions": {
                                                    "edges": [
                                                        {
                                                            "node": {
                                                                "name": name,
                                                                "active": True,
                                                                "rateProvider": {
                                                                    "price": {"amount": amount, "currencyCode": "EUR"}
                                                                },
                                                            }
                                                        }
                                                        for name, amount in methods
                                                    ]
                                                },
                                            }
                                        }
                                    ]
                                }
                            }
                        ]
                    }
                }
            ]
        }
    }


def test_markets_array_follows_config_order():
    flags = {"publishedInSE": True, "publishedInFI": True, "publishedInDE": False}
    assert build_markets_array(flags) == ["FI", "SE"]


def test_unknown_market_defaults_to_germany():
    assert get_market_config("XX").code == "DE"
    assert get_market_config(None).code == "DE"
    assert get_market_config("se").currency == "SEK"


def test_parse_delivery_profiles_picks_named_methods():
    data = delivery_profiles([("Express", "12.00"), ("Standard", "4.50"), ("Cargo", "30.00")], ["DE", "AT"])

    rates = parse_delivery_profiles(data)

    assert set(rates) == {"DE", "AT"}
    assert rates["DE"].standard == "4.50"
    assert rates["DE"].express == "12.00"
    assert rates["DE"].has_actual_rates is True


def test_parse_delivery_profiles_falls_back_to_cheapest_and_dearest():
    rates = parse_delivery_profiles(delivery_profiles([("Post", "6"), ("Courier", "15")], ["FI"]))
    assert rates["FI"].standard == "6.00"
    assert rates["FI"].express == "15.00"


def test_parse_delivery_profiles_empty():
    assert parse_delivery_profiles({}) == {}


async def test_load_shipping_rates_failure_returns_none():
    commerce = AsyncMock()
    commerce.get_shipping_rates.side_effect = RuntimeError("boom")
    assert await load_shipping_rates(commerce) is None


async def test_market_fallback_when_rates_unavailable():
    """Shipping-rate fetch throws: the market's configured estimate is used."""
    commerce = AsyncMock()
    commerce.get_shipping_rates.side_effect = RuntimeError("rate fetch failed")
    commerce.get_market_availability.return_value = None

    rates = await load_shipping_rates(commerce)
    resolved = await resolve_markets("123", ["DE"], rates, DE_CONFIG, commerce=commerce)

    entry = resolved["DE"]
    assert entry.shipping_rate == "5.90"
    assert entry.is_shipping_estimate is True
    assert entry.delivery_estimate_days == "5-7"
    assert entry.model_dump(by_alias=True)["shippingRate"] == "5.90"


async def test_actual_rates_and_availability():
    commerce = AsyncMock()
    commerce.get_market_availability.return_value = {"available": False, "currency": "SEK"}
    rates = {"SE": ShippingRates(standard="49.00", express="99.00", currency="SEK")}

    resolved = await resolve_markets("123", ["SE"], rates, MARKET_CONFIG, commerce=commerce)

    entry = resolved["SE"]
    assert entry.available is False
    assert entry.currency == "SEK"
    assert entry.shipping_rate == "49.00"
    assert entry.express_shipping_rate == "99.00"
    assert entry.is_shipping_estimate is False


@pytest.mark.asyncio
async def test_availability_failure_assumes_available():
    commerce = AsyncMock()
    commerce.get_market_availability.side_effect = RuntimeError("storefront api down")

    resolved = await resolve_markets("123", ["FI"], None, MARKET_CONFIG, commerce=commerce)

    assert resolved["FI"].available is True
    assert resolved["FI"].currency == "EUR"
    assert resolved["FI"].shipping_rate == "2.90"
