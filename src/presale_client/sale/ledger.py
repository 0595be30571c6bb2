"""
Purchase Ledger

Derives a buyer's purchase history from ``TokensPurchased`` logs on the
chain's direct RPC endpoint. Wallet providers are not used here: many do
not serve ``eth_getLogs`` over the full block range.

Every call scans the full history (``0x0`` to ``latest``) and recomputes the
total, so the result never depends on earlier calls or on log order.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List

from ..chains.registry import ChainRegistry
from ..clients.rpc_client import JsonRpcClient
from ..engine.exceptions import LogQueryError, RpcError
from ..evm.codec import TOKENS_PURCHASED_TOPIC, decode_purchase_log, encode_address_topic
from ..schemas.bases import PurchaseEvent, PurchaseSummary

logger = logging.getLogger(__name__)


class PurchaseLedger:
    """
    Reads purchase events for a buyer.

    Example:
        async with JsonRpcClient() as rpc:
            ledger = PurchaseLedger(registry, rpc)
            total = await ledger.fetch_purchase_total("0xBuyer...", 8453)   # Decimal("3500")
    """

    def __init__(self, registry: ChainRegistry, rpc: JsonRpcClient, event_topic: str = TOKENS_PURCHASED_TOPIC):
        self._registry = registry
        self._rpc = rpc
        self.event_topic = event_topic

    def build_filter(self, buyer: str, chain_id: int) -> Dict[str, Any]:
        chain = self._registry.get(chain_id)
        return {
            "address": chain.presale_contract_address,
            "topics": [self.event_topic, encode_address_topic(buyer)],
            "fromBlock": "0x0",
            "toBlock": "latest",
        }

    async def fetch_purchase_events(self, buyer: str, chain_id: int) -> List[PurchaseEvent]:
        """
        All decodable purchase events of ``buyer`` on ``chain_id``.

        A chain without a deployed presale contract has no history. Logs that
        cannot be decoded are skipped with a warning.

        Raises:
            UnknownChainError: ``chain_id`` is not registered
            LogQueryError: The log query failed
        """
        chain = self._registry.get(chain_id)
        if not chain.has_presale_contract:
            return []

        log_filter = self.build_filter(buyer, chain_id)
        url = chain.query_rpc_url()
        try:
            logs = await self._rpc.call(url, "eth_getLogs", [log_filter])
        except RpcError as e:
            raise LogQueryError(
                f"Purchase history query on {chain.display_name} failed: {e}",
                rpc_method="eth_getLogs",
                code=e.code,
            ) from e

        if not isinstance(logs, list):
            raise LogQueryError(f"eth_getLogs on {chain.display_name} returned {type(logs).__name__}",
                                rpc_method="eth_getLogs")

        events: List[PurchaseEvent] = []
        for log in logs:
            try:
                events.append(decode_purchase_log(log))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping undecodable purchase log %s: %s", _log_ref(log), e)
        logger.debug("Found %d purchase event(s) for %s on %s", len(events), buyer, chain.display_name)
        return events

    async def fetch_purchase_total(self, buyer: str, chain_id: int) -> Decimal:
        """Total presale tokens bought by ``buyer`` on ``chain_id``, in human units."""
        events = await self.fetch_purchase_events(buyer, chain_id)
        return sum((event.token_amount for event in events), Decimal(0))

    async def fetch_purchase_summary(self, buyer: str, chain_id: int) -> PurchaseSummary:
        """Events, total and vesting schedule for ``buyer`` on ``chain_id``."""
        events = await self.fetch_purchase_events(buyer, chain_id)
        return PurchaseSummary.from_events(buyer, chain_id, events)


def _log_ref(log: Any) -> str:
    if isinstance(log, dict):
        return f"{log.get('transactionHash')}#{log.get('logIndex')}"
    return repr(log)
