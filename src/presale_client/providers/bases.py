"""
Abstract Base Class for Wallet Providers

Defines the request/event interface every wallet backend must implement. It
mirrors the EIP-1193 injected-provider contract: a single ``request`` entry
point keyed by JSON-RPC method name, plus ``chainChanged`` and
``accountsChanged`` notifications delivered through an EventBus.

Core Classes:
    - WalletProvider: Request routing and event subscription for one wallet

Methods the presale client relies on:
    - eth_requestAccounts / eth_accounts
    - eth_chainId
    - eth_getBalance, eth_call
    - eth_sendTransaction, eth_getTransactionReceipt
    - wallet_switchEthereumChain, wallet_addEthereumChain

Failures are raised as ProviderRpcError carrying the provider's numeric code.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..engine.events import EventBus, EventHandlerFunc, Subscription


class WalletProvider(ABC):
    """
    Abstract Base Class for wallet providers.

    Implementations own an EventBus and publish ``ChainChangedEvent`` and
    ``AccountsChangedEvent`` on it whenever the wallet's chain or authorized
    accounts change, whatever the cause.

    Example Implementation:
        class LocalWalletProvider(WalletProvider):
            # Private-key wallet backed by AsyncWeb3
            pass
    """

    def __init__(self) -> None:
        self.events = EventBus()

    @abstractmethod
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Execute one wallet request.

        Args:
            method: JSON-RPC method name (e.g. ``eth_chainId``)
            params: Positional params list, as in EIP-1193

        Returns:
            Any: Raw JSON-RPC result (hex strings for quantities)

        Raises:
            ProviderRpcError: With the provider error code on failure
        """
        pass

    def subscribe(self, event_class: type, handler: EventHandlerFunc) -> Subscription:
        """Subscribe to a provider event; dispose the returned handle on teardown."""
        return self.events.subscribe(event_class, handler)
