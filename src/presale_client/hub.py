"""
Presale Hub - Client Facade

Single entry point wiring every presale component around one wallet
provider. Components raise; the hub records a human-readable ``status`` line
for every failure (``describe_error``) and re-raises, so hosts can both show
the message and branch on the exception type.

Architecture:
    PresaleHub (you are here)
        ├── ChainRegistry (chain table)
        ├── WalletSession (connection state, balances, holder check)
        ├── ChainSwitcher (switch / add chain)
        ├── PricingEngine (tiered advisory quotes)
        ├── ApprovalManager (stablecoin allowance)
        ├── PurchaseExecutor (buy flow, receipt polling)
        ├── PurchaseLedger (purchase history from event logs)
        ├── SaleProgressMonitor (tokens sold vs target)
        └── EmailCaptureClient (optional marketing webhook)
"""

import logging
from decimal import Decimal
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from .chains.registry import ChainDescriptor, ChainRegistry
from .clients.rpc_client import JsonRpcClient
from .clients.webhook import EmailCaptureClient
from .engine.events import SessionReloadEvent
from .engine.exceptions import WalletConnectionError, describe_error
from .engine.transactions import DEFAULT_MAX_ATTEMPTS, DEFAULT_POLL_INTERVAL, ReceiptPoller, TransactionSubmitter
from .providers.bases import WalletProvider
from .sale.approvals import ApprovalManager
from .sale.executor import PurchaseExecutor
from .sale.ledger import PurchaseLedger
from .sale.pricing import DEFAULT_TIERS, PricingEngine
from .sale.progress import SaleProgressMonitor
from .schemas.bases import (
    PendingTransaction,
    PricingTier,
    PurchaseResult,
    PurchaseSummary,
    Quote,
    SaleProgress,
    WalletState,
)
from .wallet.session import WalletSession
from .wallet.switcher import ChainSwitcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PresaleHub:
    """
    Presale client facade.

    Usage:
        ```python
        async with PresaleHub(LocalWalletProvider(registry), registry) as hub:
            await hub.connect()
            await hub.select_chain(8453)
            hub.select_payment_token("USDT")
            quote = await hub.quote(Decimal(5000))
            await hub.approve(Decimal(5000))
            result = await hub.buy(Decimal(5000))
        ```
    """

    def __init__(
        self,
        provider: Optional[WalletProvider],
        registry: Optional[ChainRegistry] = None,
        rpc: Optional[JsonRpcClient] = None,
        tiers: Iterable[PricingTier] = DEFAULT_TIERS,
        marketing_floor: Optional[Decimal] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        email_capture: Optional[EmailCaptureClient] = None,
    ):
        """
        Args:
            provider: Wallet provider, None when no wallet is installed
            registry: Chain table, defaults to ChainRegistry.default()
            rpc: Direct JSON-RPC client; created (and closed) by the hub if omitted
            tiers: Price schedule
            marketing_floor: Displayed tokens-sold minimum (None reads the environment)
            poll_interval: Seconds between receipt polls
            max_attempts: Receipt poll attempts before timing out
            email_capture: Optional webhook client for post-purchase capture
        """
        self.registry = registry or ChainRegistry.default()
        self._owns_rpc = rpc is None
        self._rpc = rpc or JsonRpcClient()
        self.email_capture = email_capture

        self.session = WalletSession(provider, self.registry)
        self.pricing = PricingEngine(self.registry, tiers)
        self.ledger = PurchaseLedger(self.registry, self._rpc)
        self.progress_monitor = SaleProgressMonitor(
            self.registry, self._rpc, pricing=self.pricing, marketing_floor=marketing_floor
        )

        self.switcher: Optional[ChainSwitcher] = None
        self.approvals: Optional[ApprovalManager] = None
        self.executor: Optional[PurchaseExecutor] = None
        if provider is not None:
            submitter = TransactionSubmitter(provider)
            poller = ReceiptPoller(provider, poll_interval=poll_interval, max_attempts=max_attempts)
            self.switcher = ChainSwitcher(provider, self.registry)
            self.approvals = ApprovalManager(provider, submitter, poller)
            self.executor = PurchaseExecutor(
                self.session, self.registry, self.pricing, self.approvals, submitter, poller, self.ledger
            )

        canonical = self.registry.canonical
        self.selected_chain_id: int = canonical.chain_id
        self.selected_payment_symbol: str = canonical.native_symbol
        self.session.selected_payment_symbol = self.selected_payment_symbol
        self.status: str = ""
        self._reload_subscription = self.session.events.subscribe(SessionReloadEvent, self._on_reload)

    # =========================================================================
    # Status handling
    # =========================================================================

    async def _guard(self, awaitable: Awaitable[T]) -> T:
        try:
            result = await awaitable
        except Exception as e:
            self.status = describe_error(e)
            logger.info("Presale operation failed: %s", self.status)
            raise
        self.status = ""
        return result

    @property
    def selected_chain(self) -> ChainDescriptor:
        return self.registry.get(self.selected_chain_id)

    # =========================================================================
    # Wallet
    # =========================================================================

    async def connect(self) -> WalletState:
        state = await self._guard(self.session.connect())
        self._follow_wallet_chain()
        return state

    async def restore(self) -> Optional[WalletState]:
        state = await self._guard(self.session.restore())
        if state is not None:
            self._follow_wallet_chain()
        return state

    async def disconnect(self) -> None:
        await self.session.disconnect()

    def _follow_wallet_chain(self) -> None:
        if self.registry.is_supported(self.session.state.chain_id):
            self.select_chain_locally(self.session.state.chain_id)

    async def _on_reload(self, event: SessionReloadEvent) -> None:
        self._follow_wallet_chain()

    def select_chain_locally(self, chain_id: int) -> ChainDescriptor:
        """Select ``chain_id`` for quotes and purchases without touching the wallet."""
        descriptor = self.registry.get(chain_id)
        self.selected_chain_id = descriptor.chain_id
        if self.selected_payment_symbol not in descriptor.payment_tokens:
            self.selected_payment_symbol = descriptor.native_symbol
        self.session.selected_payment_symbol = self.selected_payment_symbol
        return descriptor

    async def select_chain(self, chain_id: int) -> ChainDescriptor:
        """
        Select ``chain_id`` and, when a wallet is connected on another chain,
        ask it to switch (adding the chain if the wallet does not know it).
        """
        async def _select() -> ChainDescriptor:
            descriptor = self.registry.get(chain_id)
            if self.session.is_connected and self.session.state.chain_id != descriptor.chain_id:
                await self._require(self.switcher).switch_to(descriptor.chain_id)
            return self.select_chain_locally(descriptor.chain_id)

        return await self._guard(_select())

    def select_payment_token(self, symbol: str) -> None:
        """
        Raises:
            UnsupportedPaymentTokenError: Not accepted on the selected chain
        """
        try:
            token = self.selected_chain.payment_token(symbol)
        except Exception as e:
            self.status = describe_error(e)
            raise
        self.selected_payment_symbol = token.symbol
        self.session.selected_payment_symbol = token.symbol

    @staticmethod
    def _require(component: Optional[T]) -> T:
        if component is None:
            raise WalletConnectionError("No wallet provider found, install a wallet to continue")
        return component

    # =========================================================================
    # Sale
    # =========================================================================

    async def quote(self, token_amount: Decimal) -> Quote:
        async def _quote() -> Quote:
            return self.pricing.quote(
                token_amount,
                self.session.state.is_holder_discount_eligible,
                chain_id=self.selected_chain_id,
                payment_symbol=self.selected_payment_symbol,
            )

        return await self._guard(_quote())

    async def approve(self, token_amount: Decimal) -> Optional[PendingTransaction]:
        """
        Approve the presale contract for the selected stablecoin.

        Returns None when the allowance already covers ``token_amount``.
        """
        async def _approve() -> Optional[PendingTransaction]:
            approvals = self._require(self.approvals)
            owner, _ = self.session.require_connected()
            chain = self.selected_chain
            payment = chain.payment_token(self.selected_payment_symbol)
            quote = self.pricing.quote(
                token_amount,
                self.session.state.is_holder_discount_eligible,
                chain_id=chain.chain_id,
                payment_symbol=payment.symbol,
            )
            return await approvals.ensure_approved(
                owner,
                chain.presale_contract_address,
                payment,
                quote.payment_value,
                chain_id=chain.chain_id,
                cancellation=self.session.cancellation,
            )

        return await self._guard(_approve())

    async def buy(self, token_amount: Decimal) -> PurchaseResult:
        async def _buy() -> PurchaseResult:
            executor = self._require(self.executor)
            return await executor.buy(
                token_amount,
                self.selected_payment_symbol,
                chain_id=self.selected_chain_id,
            )

        return await self._guard(_buy())

    async def purchase_summary(self) -> PurchaseSummary:
        async def _summary() -> PurchaseSummary:
            buyer, _ = self.session.require_connected()
            return await self.ledger.fetch_purchase_summary(buyer, self.selected_chain_id)

        return await self._guard(_summary())

    async def progress(self) -> SaleProgress:
        return await self._guard(self.progress_monitor.fetch_progress())

    async def submit_email(self, email: str) -> bool:
        """Fire-and-forget marketing capture for the connected wallet."""
        if self.email_capture is None or not self.session.is_connected:
            return False
        return await self.email_capture.submit(
            email, wallet=self.session.state.address, purchase_type=self.selected_payment_symbol
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        self._reload_subscription.dispose()
        await self.session.aclose()
        if self._owns_rpc:
            await self._rpc.aclose()

    async def __aenter__(self) -> "PresaleHub":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
