"""
ERC-20 allowance checks and approvals for stablecoin purchases.

The allowance is read fresh for every check: the owner may change it from
outside this client at any time, so nothing is cached between calls.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..chains.constants import amount_to_value
from ..chains.registry import PaymentTokenConfig
from ..engine.cancellation import CancellationToken
from ..engine.exceptions import UnsupportedPaymentTokenError
from ..engine.transactions import ReceiptPoller, TransactionSubmitter
from ..evm.codec import decode_uint256, encode_allowance, encode_approve
from ..providers.bases import WalletProvider
from ..schemas.bases import ApprovalState, PendingTransaction, TransactionKind

logger = logging.getLogger(__name__)

#: Approvals are sized to this much USD worth of stablecoin so repeat
#: purchases skip the approval step
DEFAULT_APPROVAL_CEILING_USD = Decimal(10_000)


class ApprovalManager:
    """
    Reads allowances and submits approvals through the wallet provider.

    Example:
        manager = ApprovalManager(provider, submitter, poller)
        pending = await manager.ensure_approved(owner, presale, usdt, quote.payment_value, chain_id=8453)
        # pending is None when the allowance already covered the purchase
    """

    def __init__(
        self,
        provider: WalletProvider,
        submitter: TransactionSubmitter,
        poller: ReceiptPoller,
        ceiling_usd: Decimal = DEFAULT_APPROVAL_CEILING_USD,
    ):
        self._provider = provider
        self._submitter = submitter
        self._poller = poller
        self.ceiling_usd = Decimal(ceiling_usd)

    async def check_allowance(self, owner: str, spender: str, token: PaymentTokenConfig) -> int:
        """
        Current allowance of ``spender`` over ``owner``'s ``token``, in smallest units.

        Raises:
            UnsupportedPaymentTokenError: ``token`` is the native asset
            ProviderRpcError: The read-only call failed
        """
        return (await self.approval_state(owner, spender, token)).allowance

    async def approval_state(self, owner: str, spender: str, token: PaymentTokenConfig) -> ApprovalState:
        if token.is_native or not token.address:
            raise UnsupportedPaymentTokenError(f"{token.symbol} is not an ERC-20 token and needs no approval")
        raw = await self._provider.request(
            "eth_call",
            [{"to": token.address, "data": encode_allowance(owner, spender)}, "latest"],
        )
        return ApprovalState(token=token.address, owner=owner, spender=spender, allowance=decode_uint256(raw))

    def approval_amount(self, token: PaymentTokenConfig, min_amount: int) -> int:
        """Approval size: the USD ceiling in token units, or ``min_amount`` if larger."""
        ceiling = amount_to_value(amount=self.ceiling_usd, decimals=token.decimals)
        return max(ceiling, int(min_amount))

    async def ensure_approved(
        self,
        owner: str,
        spender: str,
        token: PaymentTokenConfig,
        min_amount: int,
        *,
        chain_id: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> Optional[PendingTransaction]:
        """
        Make sure ``spender`` may pull at least ``min_amount`` of ``token``.

        Submits one approval and waits for its confirmation when the current
        allowance is short. Nothing is retried.

        Returns:
            PendingTransaction of the confirmed approval, or None if the
            allowance was already sufficient and no transaction was sent.

        Raises:
            TransactionRejectedError, TransactionRevertedError,
            TransactionTimeoutError, OperationCancelledError
        """
        state = await self.approval_state(owner, spender, token)
        if state.sufficient_for(min_amount):
            logger.debug("Allowance %s already covers %s", state.allowance, min_amount)
            return None

        amount = self.approval_amount(token, min_amount)
        logger.info("Approving %s %s units for %s", amount, token.symbol, spender)
        pending = await self._submitter.submit(
            {"from": owner, "to": token.address, "data": encode_approve(spender, amount), "value": "0x0"},
            TransactionKind.APPROVE,
            chain_id,
        )
        await self._poller.wait_for_receipt(pending, cancellation=cancellation)
        return pending
