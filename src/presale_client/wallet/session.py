"""
Wallet Session

Connection state machine for one wallet provider:

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> DISCONNECTED   (empty accountsChanged, disconnect())

Every address is screened against the security blocklist before it is
accepted, including addresses adopted through ``restore()`` and addresses
delivered by ``accountsChanged``. A blocked address never reaches
WalletState.

A chain change is a full reload: in-flight work is cancelled, balances are
reset and re-read, and the host is told through ``SessionReloadEvent`` to
rebuild anything it derived from the old chain.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from ..chains.constants import value_to_amount
from ..chains.registry import ChainDescriptor, ChainRegistry, PaymentTokenConfig, parse_chain_id
from ..engine.cancellation import CancellationToken
from ..engine.events import (
    AccountsChangedEvent,
    ChainChangedEvent,
    EventBus,
    SessionConnectedEvent,
    SessionDisconnectedEvent,
    SessionReloadEvent,
    Subscription,
)
from ..engine.exceptions import (
    ProviderRpcError,
    REQUEST_ALREADY_PENDING,
    SecurityBlockError,
    USER_REJECTED_REQUEST,
    WalletConnectionError,
)
from ..evm.codec import (
    decode_address,
    decode_uint256,
    encode_balance_of,
    encode_owner_of,
    hex_to_int,
)
from ..providers.bases import WalletProvider
from ..schemas.bases import ConnectionStatus, WalletState

logger = logging.getLogger(__name__)

#: Address suffixes of known-compromised wallets (compared case-insensitively)
DEFAULT_BLOCKLIST_SUFFIXES = ("a0a5",)

#: Token ids probed with ownerOf when the holder collection rejects balanceOf
HOLDER_FALLBACK_TOKEN_IDS = range(1, 11)


class WalletSession:
    """
    Tracks the connected account and chain of one wallet provider.

    Example:
        async with WalletSession(provider, registry) as session:
            state = await session.connect()
            session.select_payment_token("USDT")
            await session.refresh_balances()

    Host listeners subscribe on ``session.events`` to SessionConnectedEvent,
    SessionDisconnectedEvent and SessionReloadEvent.
    """

    def __init__(
        self,
        provider: Optional[WalletProvider],
        registry: ChainRegistry,
        blocklist_suffixes: Iterable[str] = DEFAULT_BLOCKLIST_SUFFIXES,
    ):
        self._provider = provider
        self._registry = registry
        self._blocklist = tuple(suffix.lower() for suffix in blocklist_suffixes)
        self.state = WalletState()
        self.status = ConnectionStatus.DISCONNECTED
        self.events = EventBus()
        self.selected_payment_symbol: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self._subscriptions: List[Subscription] = []
        self._cancellation = CancellationToken()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def provider(self) -> WalletProvider:
        if self._provider is None:
            raise WalletConnectionError("No wallet provider found, install a wallet to continue")
        return self._provider

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def cancellation(self) -> CancellationToken:
        """Token cancelled on the next account or chain change."""
        return self._cancellation

    @property
    def chain(self) -> Optional[ChainDescriptor]:
        """Descriptor of the connected chain, None if unsupported or disconnected."""
        if not self._registry.is_supported(self.state.chain_id):
            return None
        return self._registry.get(self.state.chain_id)

    def is_blocked(self, address: str) -> bool:
        lowered = address.lower()
        return any(lowered.endswith(suffix) for suffix in self._blocklist)

    def require_connected(self) -> Tuple[str, int]:
        """
        Returns:
            Tuple[str, int]: Connected address and chain id

        Raises:
            WalletConnectionError: If no account is connected
        """
        if not self.is_connected or self.state.address is None or self.state.chain_id is None:
            raise WalletConnectionError("Connect your wallet first")
        return self.state.address, self.state.chain_id

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> WalletState:
        """
        Request account access and start tracking the wallet.

        Calling it on a connected session re-requests the accounts. A failed
        or blocked re-request leaves the existing connection as it was.

        Raises:
            WalletConnectionError: No provider, request rejected or already pending
            SecurityBlockError: The account is blocklisted; nothing is recorded
        """
        provider = self.provider
        if self.status == ConnectionStatus.CONNECTING:
            raise WalletConnectionError("A connection request is already pending")

        previous = self.status
        self.status = ConnectionStatus.CONNECTING
        try:
            accounts = await provider.request("eth_requestAccounts")
        except ProviderRpcError as e:
            self.status = previous
            if e.code == USER_REJECTED_REQUEST:
                raise WalletConnectionError("Connection request was rejected") from e
            if e.code == REQUEST_ALREADY_PENDING:
                raise WalletConnectionError("A connection request is already pending in your wallet") from e
            raise WalletConnectionError(f"Could not connect wallet: {e}") from e

        return await self._adopt(accounts, previous)

    async def restore(self) -> Optional[WalletState]:
        """
        Adopt an existing authorization without prompting.

        Returns:
            WalletState if the wallet already authorized an account, else None.
        """
        if self._provider is None or self.is_connected:
            return self.state if self.is_connected else None
        accounts = await self._provider.request("eth_accounts")
        if not accounts:
            return None
        self.status = ConnectionStatus.CONNECTING
        return await self._adopt(accounts, ConnectionStatus.DISCONNECTED)

    async def _adopt(self, accounts: List[str], previous: ConnectionStatus) -> WalletState:
        # Every rejection below restores ``previous`` and leaves state untouched
        if not accounts:
            self.status = previous
            raise WalletConnectionError("Wallet returned no accounts")

        address = accounts[0]
        if self.is_blocked(address):
            self.status = previous
            logger.warning("Refused blocklisted wallet %s", address)
            raise SecurityBlockError(address)

        try:
            chain_id = parse_chain_id(await self.provider.request("eth_chainId"))
        except ProviderRpcError as e:
            self.status = previous
            raise WalletConnectionError(f"Could not read the wallet network: {e}") from e

        if previous == ConnectionStatus.CONNECTED and (address, chain_id) == (self.state.address, self.state.chain_id):
            self.status = ConnectionStatus.CONNECTED
            logger.debug("Wallet %s already connected on chain %s", address, chain_id)
            await self._refresh_after_change()
            return self.state

        self._renew_cancellation("connected")
        self.state = WalletState(address=address, chain_id=chain_id)
        self._subscribe()
        self.status = ConnectionStatus.CONNECTED
        self.last_error = None
        logger.info("Wallet %s connected on chain %s", address, chain_id)

        await self.events.publish(SessionConnectedEvent(address=address, chain_id=chain_id))
        await self._refresh_after_change()
        return self.state

    async def disconnect(self, reason: str = "disconnected by user") -> None:
        """Clear local wallet state. Wallet authorization is left to the wallet."""
        if self.status == ConnectionStatus.DISCONNECTED and self.state.is_empty():
            return
        self._dispose_subscriptions()
        self._cancellation.cancel(reason)
        self.state.clear()
        self.status = ConnectionStatus.DISCONNECTED
        logger.info("Wallet session cleared: %s", reason)
        await self.events.publish(SessionDisconnectedEvent(reason=reason))

    async def aclose(self) -> None:
        """Release every provider subscription and cancel in-flight work."""
        self._dispose_subscriptions()
        self._cancellation.cancel("session closed")

    async def __aenter__(self) -> "WalletSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Provider events
    # ------------------------------------------------------------------

    def _subscribe(self) -> None:
        # A reconnect must not stack a second set of handlers
        self._dispose_subscriptions()
        self._subscriptions = [
            self.provider.subscribe(ChainChangedEvent, self._on_chain_changed),
            self.provider.subscribe(AccountsChangedEvent, self._on_accounts_changed),
        ]

    def _dispose_subscriptions(self) -> None:
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions = []

    def _renew_cancellation(self, reason: str) -> CancellationToken:
        self._cancellation.cancel(reason)
        self._cancellation = CancellationToken()
        return self._cancellation

    async def _on_chain_changed(self, event: ChainChangedEvent) -> None:
        if not self.is_connected:
            return
        self._renew_cancellation(f"chain changed to {event.chain_id}")
        self.state = WalletState(address=self.state.address, chain_id=event.chain_id)
        logger.info("Wallet chain changed to %s, reloading session state", event.chain_id)
        await self.events.publish(SessionReloadEvent(chain_id=event.chain_id))
        await self._refresh_after_change()

    async def _on_accounts_changed(self, event: AccountsChangedEvent) -> None:
        if not self.is_connected:
            return
        if not event.accounts:
            await self.disconnect("wallet disconnected")
            return

        address = event.accounts[0]
        if address == self.state.address:
            return
        if self.is_blocked(address):
            logger.warning("Wallet switched to blocklisted account %s, disconnecting", address)
            self.last_error = SecurityBlockError(address)
            await self.disconnect("blocklisted account")
            return

        self._renew_cancellation("account changed")
        self.state = WalletState(address=address, chain_id=self.state.chain_id)
        logger.info("Wallet account changed to %s", address)
        await self._refresh_after_change()

    async def _refresh_after_change(self) -> None:
        try:
            await self.refresh_balances()
        except ProviderRpcError as e:
            logger.warning("Balance refresh failed: %s", e)

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def select_payment_token(self, symbol: Optional[str]) -> Optional[PaymentTokenConfig]:
        """
        Choose the payment currency whose balance is tracked.

        Raises:
            UnsupportedPaymentTokenError: If the connected chain does not accept it
        """
        if symbol is None:
            self.selected_payment_symbol = None
            return None
        chain = self.chain
        token = chain.payment_token(symbol) if chain is not None else None
        self.selected_payment_symbol = token.symbol if token is not None else symbol.upper()
        return token

    async def refresh_balances(self, address: Optional[str] = None) -> WalletState:
        """
        Re-read balances for the connected chain.

        Reads the native balance, the selected ERC-20 payment token's balance
        and, where the chain carries the holder collection, the discount
        eligibility. The reads run concurrently. Results that arrive after an
        account or chain change are discarded.
        """
        connected_address, _ = self.require_connected()
        address = address or connected_address
        chain = self.chain
        if chain is None:
            return self.state

        token = self._cancellation
        erc20 = self._selected_erc20(chain)

        native_task = self._read_native_balance(chain, address)
        erc20_task = self._read_erc20_balance(erc20, address) if erc20 is not None else _none()
        holder_task = self.check_holder_discount(chain, address) if chain.holder_nft_address else _false()
        native_balance, erc20_balance, is_holder = await asyncio.gather(native_task, erc20_task, holder_task)

        if token.cancelled:
            logger.debug("Discarding balances read before %s", token.reason)
            return self.state

        self.state.native_balance = native_balance
        if erc20 is not None:
            self.state.erc20_balances[erc20.symbol] = erc20_balance
        self.state.is_holder_discount_eligible = is_holder
        self.state.balances_loaded = True
        return self.state

    def _selected_erc20(self, chain: ChainDescriptor) -> Optional[PaymentTokenConfig]:
        symbol = self.selected_payment_symbol
        if symbol is None or symbol not in chain.payment_tokens:
            return None
        token = chain.payment_tokens[symbol]
        return None if token.is_native else token

    async def _read_native_balance(self, chain: ChainDescriptor, address: str) -> Decimal:
        raw = await self.provider.request("eth_getBalance", [address, "latest"])
        return value_to_amount(value=hex_to_int(raw), decimals=chain.native_currency.decimals)

    async def _read_erc20_balance(self, token: PaymentTokenConfig, address: str) -> Decimal:
        raw = await self.provider.request("eth_call", [{"to": token.address, "data": encode_balance_of(address)}, "latest"])
        return value_to_amount(value=decode_uint256(raw), decimals=token.decimals)

    async def check_holder_discount(self, chain: ChainDescriptor, address: str) -> bool:
        """
        Whether ``address`` holds the discount collection on ``chain``.

        Uses ``balanceOf``; if the collection rejects it, probes ``ownerOf``
        for the first token ids. A collection that answers neither counts as
        not held.
        """
        nft = chain.holder_nft_address
        if not nft:
            return False
        try:
            raw = await self.provider.request("eth_call", [{"to": nft, "data": encode_balance_of(address)}, "latest"])
            return decode_uint256(raw) > 0
        except (ProviderRpcError, ValueError) as e:
            logger.warning("Holder balance check failed, probing ownerOf: %s", e)

        for token_id in HOLDER_FALLBACK_TOKEN_IDS:
            try:
                raw = await self.provider.request("eth_call", [{"to": nft, "data": encode_owner_of(token_id)}, "latest"])
                owner = decode_address(raw)
            except (ProviderRpcError, ValueError) as e:
                logger.debug("ownerOf(%d) failed: %s", token_id, e)
                continue
            if owner is not None and owner.lower() == address.lower():
                return True
        return False


async def _none() -> None:
    return None


async def _false() -> bool:
    return False
