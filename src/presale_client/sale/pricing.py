"""
Presale Pricing Engine

Advisory cost quotes under the tiered price schedule. The presale contract
is the pricing authority; quotes exist so the buyer sees a cost before
signing and so native-asset purchases can attach enough value.

Pricing rules:
    1. The active tier is the one containing the cumulative tokens-sold position.
    2. ``usd_cost = token_amount * tier price``, times 0.7 for holders.
    3. Stablecoin payments cost ``usd_cost`` (1:1), rounded up to the token's decimals.
    4. Native payments cost ``usd_cost / native_usd_estimate * 1.5``.
"""

import logging
from decimal import Decimal, ROUND_UP
from typing import Iterable, List, Optional, Sequence

from ..chains.constants import amount_to_value
from ..chains.registry import ChainRegistry
from ..engine.exceptions import (
    ConfigurationError,
    InvalidPurchaseAmountError,
    SaleClosedError,
)
from ..schemas.bases import PricingTier, Quote

logger = logging.getLogger(__name__)


def _tier(start: int, end: int, price: str, label: str) -> PricingTier:
    return PricingTier(
        range_start=Decimal(start),
        range_end=Decimal(end),
        usd_price_per_token=Decimal(price),
        label=label,
    )


#: Price schedule by cumulative tokens sold (25M tokens for sale)
DEFAULT_TIERS: List[PricingTier] = [
    _tier(0, 5_000_000, "0.01", "Phase 1"),
    _tier(5_000_000, 10_000_000, "0.05", "Phase 2"),
    _tier(10_000_000, 15_000_000, "0.10", "Phase 3"),
    _tier(15_000_000, 20_000_000, "0.15", "Phase 4"),
    _tier(20_000_000, 25_000_000, "0.30", "Phase 5"),
]

DEFAULT_HOLDER_DISCOUNT = Decimal("0.7")
DEFAULT_SAFETY_MULTIPLIER = Decimal("1.5")
DEFAULT_MINIMUM_PURCHASE = Decimal(1000)


def validate_tiers(tiers: Sequence[PricingTier]) -> List[PricingTier]:
    """
    Check that ``tiers`` partition ``[0, total)`` with non-decreasing prices.

    Returns:
        List[PricingTier]: Tiers sorted by ``range_start``

    Raises:
        ConfigurationError: On an empty schedule, gaps, overlaps, empty
            ranges or a price decrease.
    """
    ordered = sorted(tiers, key=lambda tier: tier.range_start)
    if not ordered:
        raise ConfigurationError("Pricing schedule has no tiers")
    if ordered[0].range_start != 0:
        raise ConfigurationError("Pricing schedule must start at position 0")

    previous: Optional[PricingTier] = None
    for tier in ordered:
        if tier.range_end <= tier.range_start:
            raise ConfigurationError(f"Tier {tier.label or tier.range_start} has an empty range")
        if previous is not None:
            if tier.range_start != previous.range_end:
                raise ConfigurationError(
                    f"Tiers must be contiguous: {previous.range_end} is followed by {tier.range_start}"
                )
            if tier.usd_price_per_token < previous.usd_price_per_token:
                raise ConfigurationError(f"Tier {tier.label or tier.range_start} lowers the price")
        previous = tier
    return ordered


class PricingEngine:
    """
    Quotes purchases against the tiered schedule.

    Example:
        engine = PricingEngine(registry)
        quote = engine.quote(Decimal(1000), False, chain_id=8453, payment_symbol="USDT")
        quote.usd_cost        # Decimal("10.00")
        quote.payment_value   # 10000000 (USDT has 6 decimals on Base)

    Args:
        registry: Chain table supplying payment token decimals and native estimates
        tiers: Price schedule; must partition [0, total) with non-decreasing prices
        safety_multiplier: Upward buffer on native-asset quotes
        holder_discount: Multiplier applied to holders' USD cost
        minimum_purchase: Smallest token amount accepted
    """

    def __init__(
        self,
        registry: ChainRegistry,
        tiers: Iterable[PricingTier] = DEFAULT_TIERS,
        safety_multiplier: Decimal = DEFAULT_SAFETY_MULTIPLIER,
        holder_discount: Decimal = DEFAULT_HOLDER_DISCOUNT,
        minimum_purchase: Decimal = DEFAULT_MINIMUM_PURCHASE,
    ):
        self._registry = registry
        self.tiers = validate_tiers(list(tiers))
        self.safety_multiplier = Decimal(safety_multiplier)
        self.holder_discount = Decimal(holder_discount)
        self.minimum_purchase = Decimal(minimum_purchase)
        self.sold_position = Decimal(0)

    @property
    def total_for_sale(self) -> Decimal:
        return self.tiers[-1].range_end

    def update_sold_position(self, sold: Decimal) -> None:
        """Set the cumulative tokens-sold position that selects the active tier."""
        self.sold_position = max(Decimal(sold), Decimal(0))

    def tier_for(self, position: Optional[Decimal] = None) -> PricingTier:
        """
        Tier containing ``position`` (defaults to the current sold position).

        Raises:
            SaleClosedError: Position is at or beyond the supply for sale
        """
        position = self.sold_position if position is None else Decimal(position)
        for tier in self.tiers:
            if tier.contains(position):
                return tier
        raise SaleClosedError(f"All {self.total_for_sale} tokens have been sold")

    def active_tier(self) -> PricingTier:
        return self.tier_for(self.sold_position)

    def usd_cost(self, token_amount: Decimal, is_holder_discount_eligible: bool) -> Decimal:
        tier = self.active_tier()
        cost = Decimal(token_amount) * tier.usd_price_per_token
        if is_holder_discount_eligible:
            cost *= self.holder_discount
        return cost

    def quote(
        self,
        token_amount: Decimal,
        is_holder_discount_eligible: bool,
        *,
        chain_id: int,
        payment_symbol: str,
    ) -> Quote:
        """
        Build an advisory quote.

        Raises:
            InvalidPurchaseAmountError: Below the minimum purchase
            SaleClosedError: Schedule exhausted
            UnknownChainError / UnsupportedPaymentTokenError: Bad chain or currency
        """
        token_amount = Decimal(token_amount)
        if token_amount < self.minimum_purchase:
            raise InvalidPurchaseAmountError(
                f"Minimum purchase is {self.minimum_purchase} tokens, requested {token_amount}"
            )

        chain = self._registry.get(chain_id)
        payment = chain.payment_token(payment_symbol)
        tier = self.active_tier()
        usd_cost = self.usd_cost(token_amount, is_holder_discount_eligible)

        if payment.is_native:
            raw_amount = usd_cost / chain.native_usd_estimate * self.safety_multiplier
        else:
            raw_amount = usd_cost

        quantum = Decimal(1).scaleb(-payment.decimals)
        payment_amount = raw_amount.quantize(quantum, rounding=ROUND_UP)
        payment_value = amount_to_value(amount=payment_amount, decimals=payment.decimals)

        logger.debug(
            "Quoted %s tokens at %s (%s): %s USD, %s %s",
            token_amount, tier.usd_price_per_token, tier.label, usd_cost, payment_amount, payment.symbol,
        )
        return Quote(
            token_amount=token_amount,
            tier=tier,
            usd_cost=usd_cost,
            payment_symbol=payment.symbol,
            payment_amount=payment_amount,
            payment_value=payment_value,
            discount_applied=is_holder_discount_eligible,
        )
