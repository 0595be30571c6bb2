"""
Test suite for the tiered pricing engine.
"""
from decimal import Decimal, ROUND_UP

import pytest

from test_mocks import CHAIN_BASE, CHAIN_BSC, CHAIN_ETHEREUM, make_registry

from presale_client.engine.exceptions import (
    ConfigurationError,
    InvalidPurchaseAmountError,
    SaleClosedError,
    UnknownChainError,
    UnsupportedPaymentTokenError,
)
from presale_client.sale.pricing import DEFAULT_TIERS, PricingEngine, validate_tiers
from presale_client.schemas.bases import PricingTier


@pytest.fixture
def engine():
    return PricingEngine(make_registry())


def test_first_tier_usdt_quote(engine):
    quote = engine.quote(Decimal(1000), False, chain_id=CHAIN_BASE, payment_symbol="USDT")
    assert quote.usd_cost == Decimal("10.00")
    assert quote.payment_amount == Decimal("10")
    assert quote.payment_value == 10_000_000
    assert quote.tier.label == "Phase 1"
    assert not quote.discount_applied


def test_holder_discount(engine):
    quote = engine.quote(Decimal(1000), True, chain_id=CHAIN_BASE, payment_symbol="USDT")
    assert quote.usd_cost == Decimal("7.00")
    assert quote.payment_value == 7_000_000
    assert quote.discount_applied


@pytest.mark.parametrize("amount", [Decimal(1000), Decimal(1234), Decimal("98765.4321")])
def test_discounted_cost_is_seventy_percent(engine, amount):
    full = engine.usd_cost(amount, False)
    discounted = engine.usd_cost(amount, True)
    assert discounted == full * Decimal("0.7")


def test_stablecoin_decimals_follow_chain(engine):
    bsc = engine.quote(Decimal(1000), False, chain_id=CHAIN_BSC, payment_symbol="USDT")
    eth = engine.quote(Decimal(1000), False, chain_id=CHAIN_ETHEREUM, payment_symbol="USDT")
    assert bsc.payment_value == 10 * 10 ** 18
    assert eth.payment_value == 10_000_000


def test_native_quote_includes_safety_buffer(engine):
    quote = engine.quote(Decimal(1000), False, chain_id=CHAIN_BASE, payment_symbol="ETH")
    expected = (Decimal(10) / Decimal(3500) * Decimal("1.5")).quantize(Decimal("1e-18"), rounding=ROUND_UP)
    assert quote.payment_amount == expected
    assert quote.payment_value == int(expected.scaleb(18))
    assert quote.payment_symbol == "ETH"


def test_bnb_quote_uses_bnb_estimate(engine):
    quote = engine.quote(Decimal(60_000), False, chain_id=CHAIN_BSC, payment_symbol="BNB")
    # 600 USD at 600 USD/BNB, buffered
    assert quote.payment_amount == Decimal("1.5")


def test_sold_position_selects_tier(engine):
    engine.update_sold_position(Decimal(6_000_000))
    quote = engine.quote(Decimal(1000), False, chain_id=CHAIN_BASE, payment_symbol="USDT")
    assert quote.tier.label == "Phase 2"
    assert quote.usd_cost == Decimal(50)


def test_tier_boundaries(engine):
    assert engine.tier_for(Decimal(0)).label == "Phase 1"
    assert engine.tier_for(Decimal(4_999_999)).label == "Phase 1"
    assert engine.tier_for(Decimal(5_000_000)).label == "Phase 2"
    assert engine.tier_for(Decimal(24_999_999)).label == "Phase 5"
    assert engine.total_for_sale == Decimal(25_000_000)


def test_sale_closed_when_schedule_exhausted(engine):
    engine.update_sold_position(Decimal(25_000_000))
    with pytest.raises(SaleClosedError):
        engine.quote(Decimal(1000), False, chain_id=CHAIN_BASE, payment_symbol="USDT")


def test_negative_position_clamped(engine):
    engine.update_sold_position(Decimal(-5))
    assert engine.sold_position == 0


def test_minimum_purchase(engine):
    with pytest.raises(InvalidPurchaseAmountError):
        engine.quote(Decimal(999), False, chain_id=CHAIN_BASE, payment_symbol="USDT")


def test_unknown_chain_and_token(engine):
    with pytest.raises(UnknownChainError):
        engine.quote(Decimal(1000), False, chain_id=137, payment_symbol="USDT")
    with pytest.raises(UnsupportedPaymentTokenError):
        engine.quote(Decimal(1000), False, chain_id=CHAIN_BSC, payment_symbol="ETH")


def _tier(start, end, price):
    return PricingTier(range_start=Decimal(start), range_end=Decimal(end), usd_price_per_token=Decimal(price))


def test_validate_tiers_sorts_schedule():
    ordered = validate_tiers(list(reversed(DEFAULT_TIERS)))
    assert [tier.label for tier in ordered] == ["Phase 1", "Phase 2", "Phase 3", "Phase 4", "Phase 5"]


@pytest.mark.parametrize("tiers", [
    [],
    [_tier(10, 20, "0.01")],
    [_tier(0, 10, "0.01"), _tier(11, 20, "0.02")],
    [_tier(0, 10, "0.01"), _tier(5, 20, "0.02")],
    [_tier(0, 10, "0.05"), _tier(10, 20, "0.01")],
    [_tier(0, 10, "0.01"), _tier(10, 10, "0.02")],
])
def test_validate_tiers_rejects_bad_schedules(tiers):
    with pytest.raises(ConfigurationError):
        validate_tiers(tiers)
