"""
Sale progress as displayed to buyers.

Reads ``tokensSold()`` from the canonical chain's presale contract and shows
``max(actual, marketing_floor)`` against the sale target. The unfloored
figure is kept in ``actual_sold`` and is what feeds tier selection.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..chains.constants import PRESALE_TOKEN_DECIMALS, get_marketing_floor_from_env, value_to_amount
from ..chains.registry import ChainRegistry
from ..clients.rpc_client import JsonRpcClient
from ..engine.exceptions import RpcError
from ..evm.codec import decode_uint256, encode_tokens_sold
from ..schemas.bases import SaleProgress
from .pricing import PricingEngine

logger = logging.getLogger(__name__)

DEFAULT_MARKETING_FLOOR = Decimal(1_650_000)
DEFAULT_SALE_TARGET = Decimal(25_000_000)

_HUNDRED = Decimal(100)


def percent_of(sold: Decimal, target: Decimal) -> Decimal:
    if target <= 0:
        return _HUNDRED
    return min(sold / target * _HUNDRED, _HUNDRED)


class SaleProgressMonitor:
    """
    Example:
        monitor = SaleProgressMonitor(registry, rpc, pricing=engine)
        progress = await monitor.fetch_progress()
        progress.sold, progress.percent_of_target

    Args:
        registry: Supplies the canonical chain and its endpoint
        rpc: Direct JSON-RPC client
        pricing: Optional engine whose sold position follows the actual figure
        marketing_floor: Displayed minimum; PRESALE_MARKETING_FLOOR or 1,650,000
            when omitted. 0 disables it.
        target: Tokens offered in total
    """

    def __init__(
        self,
        registry: ChainRegistry,
        rpc: JsonRpcClient,
        pricing: Optional[PricingEngine] = None,
        marketing_floor: Optional[Decimal] = None,
        target: Decimal = DEFAULT_SALE_TARGET,
    ):
        self._registry = registry
        self._rpc = rpc
        self._pricing = pricing
        if marketing_floor is None:
            marketing_floor = get_marketing_floor_from_env(DEFAULT_MARKETING_FLOOR)
        self.marketing_floor = max(Decimal(marketing_floor), Decimal(0))
        self.target = Decimal(target)

    async def fetch_actual_sold(self) -> Decimal:
        """
        Raises:
            RpcError: The read failed
            ValueError: The contract returned an undecodable value
        """
        chain = self._registry.canonical
        result = await self._rpc.call(
            chain.query_rpc_url(),
            "eth_call",
            [{"to": chain.presale_contract_address, "data": encode_tokens_sold()}, "latest"],
        )
        return value_to_amount(value=decode_uint256(result), decimals=PRESALE_TOKEN_DECIMALS)

    async def fetch_progress(self) -> SaleProgress:
        """
        Current progress. Never raises for a failed read: the floor is shown
        instead, flagged with ``is_fallback``.
        """
        try:
            actual = await self.fetch_actual_sold()
        except (RpcError, ValueError) as e:
            logger.warning("tokensSold read failed, showing marketing floor: %s", e)
            return SaleProgress(
                sold=self.marketing_floor,
                actual_sold=None,
                target=self.target,
                percent_of_target=percent_of(self.marketing_floor, self.target),
                is_fallback=True,
            )

        if self._pricing is not None:
            self._pricing.update_sold_position(actual)

        sold = max(actual, self.marketing_floor)
        return SaleProgress(
            sold=sold,
            actual_sold=actual,
            target=self.target,
            percent_of_target=percent_of(sold, self.target),
        )
