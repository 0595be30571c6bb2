"""
Purchase Executor

Runs one presale purchase end to end:

    1. The wallet must be on the selected chain (NetworkMismatchError).
    2. Quote the purchase (minimum amount, active tier, holder discount).
    3. Stablecoin payments need an allowance covering the quote
       (InsufficientAllowanceError). Approval is a separate, explicit step.
    4. Advisory balance check against the session's last balance read.
    5. Submit ``buyTokens`` (native, value attached) or ``buyTokensWithUSDT``.
    6. Poll for the receipt, 2 seconds apart, 60 attempts.
    7. Refresh the buyer's purchase history and notify session listeners.
"""

import logging
from decimal import Decimal
from typing import Optional

from ..chains.constants import PRESALE_TOKEN_DECIMALS, amount_to_value
from ..chains.registry import ChainRegistry, PaymentTokenConfig
from ..engine.cancellation import CancellationToken
from ..engine.events import PurchaseConfirmedEvent
from ..engine.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidPurchaseAmountError,
    LogQueryError,
    NetworkMismatchError,
    PresaleError,
)
from ..engine.transactions import ReceiptPoller, TransactionSubmitter
from ..evm.codec import encode_buy_tokens, encode_buy_tokens_with_usdt
from ..schemas.bases import PurchaseResult, PurchaseSummary, Quote, TransactionKind, WalletState
from ..wallet.session import WalletSession
from .approvals import ApprovalManager
from .ledger import PurchaseLedger
from .pricing import PricingEngine

logger = logging.getLogger(__name__)


class PurchaseExecutor:
    """
    Example:
        executor = PurchaseExecutor(session, registry, pricing, approvals, submitter, poller, ledger)
        result = await executor.buy(Decimal(1000), "ETH", chain_id=8453)
        result.transaction.status   # TransactionStatus.CONFIRMED
    """

    def __init__(
        self,
        session: WalletSession,
        registry: ChainRegistry,
        pricing: PricingEngine,
        approvals: ApprovalManager,
        submitter: TransactionSubmitter,
        poller: ReceiptPoller,
        ledger: Optional[PurchaseLedger] = None,
    ):
        self._session = session
        self._registry = registry
        self._pricing = pricing
        self._approvals = approvals
        self._submitter = submitter
        self._poller = poller
        self._ledger = ledger

    async def buy(
        self,
        token_amount: Decimal,
        payment_symbol: str,
        *,
        chain_id: int,
        cancellation: Optional[CancellationToken] = None,
    ) -> PurchaseResult:
        """
        Purchase ``token_amount`` presale tokens paying with ``payment_symbol``.

        Args:
            token_amount: Tokens to buy, in human units
            payment_symbol: Currency accepted on ``chain_id`` (e.g. "ETH", "USDT")
            chain_id: Chain selected for the purchase
            cancellation: Defaults to the session's token, so an account or
                chain change aborts the wait

        Raises:
            WalletConnectionError: No wallet connected
            NetworkMismatchError: Wallet is on another chain
            InvalidPurchaseAmountError, SaleClosedError: Rejected by pricing
            InsufficientAllowanceError: Stablecoin allowance below the quote
            InsufficientBalanceError: Last known balance below the quote
            TransactionRejectedError, TransactionRevertedError,
            TransactionTimeoutError, OperationCancelledError: Submission outcome
        """
        buyer, connected_chain_id = self._session.require_connected()
        if connected_chain_id != chain_id:
            raise NetworkMismatchError(chain_id, connected_chain_id)

        token = cancellation or self._session.cancellation
        chain = self._registry.get(chain_id)
        payment = chain.payment_token(payment_symbol)
        quote = self._pricing.quote(
            token_amount,
            self._session.state.is_holder_discount_eligible,
            chain_id=chain_id,
            payment_symbol=payment.symbol,
        )

        if not payment.is_native:
            allowance = await self._approvals.check_allowance(buyer, chain.presale_contract_address, payment)
            if allowance < quote.payment_value:
                raise InsufficientAllowanceError(required=quote.payment_value, available=allowance)

        self._check_balance(self._session.state, payment, quote)

        try:
            token_value = amount_to_value(amount=quote.token_amount, decimals=PRESALE_TOKEN_DECIMALS)
        except ValueError as e:
            raise InvalidPurchaseAmountError(str(e)) from e

        if payment.is_native:
            tx_request = {
                "from": buyer,
                "to": chain.presale_contract_address,
                "data": encode_buy_tokens(token_value),
                "value": hex(quote.payment_value),
            }
        else:
            tx_request = {
                "from": buyer,
                "to": chain.presale_contract_address,
                "data": encode_buy_tokens_with_usdt(token_value),
                "value": "0x0",
            }

        token.raise_if_cancelled()
        logger.info(
            "Buying %s tokens for %s %s (%s USD) on %s",
            quote.token_amount, quote.payment_amount, payment.symbol, quote.usd_cost, chain.display_name,
        )
        pending = await self._submitter.submit(tx_request, TransactionKind.PURCHASE, chain_id)
        await self._poller.wait_for_receipt(pending, cancellation=token)

        summary = await self._refresh_history(buyer, chain_id)
        await self._session.events.publish(PurchaseConfirmedEvent(buyer=buyer, chain_id=chain_id, tx_hash=pending.hash))
        # Confirmed from here on: refresh failures are logged, never raised
        if self._session.is_connected:
            try:
                await self._session.refresh_balances()
            except PresaleError as e:
                logger.warning("Balance refresh after purchase failed: %s", e)

        return PurchaseResult(quote=quote, transaction=pending, summary=summary)

    @staticmethod
    def _check_balance(state: WalletState, payment: PaymentTokenConfig, quote: Quote) -> None:
        """Advisory: balances may be stale, the chain has the final word."""
        if not state.balances_loaded:
            return
        if payment.is_native:
            available = state.native_balance
        elif payment.symbol in state.erc20_balances:
            available = state.erc20_balances[payment.symbol]
        else:
            return
        if available < quote.payment_amount:
            raise InsufficientBalanceError(payment.symbol, quote.payment_amount, available)

    async def _refresh_history(self, buyer: str, chain_id: int) -> Optional[PurchaseSummary]:
        if self._ledger is None:
            return None
        try:
            return await self._ledger.fetch_purchase_summary(buyer, chain_id)
        except LogQueryError as e:
            logger.warning("Purchase confirmed but history refresh failed: %s", e)
            return None
