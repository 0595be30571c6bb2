"""
Chain switching with a single add-chain fallback.
"""

import logging

from ..chains.registry import ChainDescriptor, ChainRegistry
from ..engine.exceptions import ProviderRpcError, UNRECOGNIZED_CHAIN
from ..providers.bases import WalletProvider

logger = logging.getLogger(__name__)


class ChainSwitcher:
    """
    Moves the wallet to a registered chain.

    ``switch_to`` asks the wallet to switch; if the wallet does not know the
    chain (code 4902) it sends exactly one ``wallet_addEthereumChain`` with the
    full descriptor. Every other error propagates unchanged and nothing is
    retried.
    """

    def __init__(self, provider: WalletProvider, registry: ChainRegistry):
        self._provider = provider
        self._registry = registry

    async def switch_to(self, chain_id: int) -> ChainDescriptor:
        """
        Raises:
            UnknownChainError: ``chain_id`` is not registered (nothing is sent)
            ProviderRpcError: Any wallet failure other than the first 4902
        """
        descriptor = self._registry.get(chain_id)
        try:
            await self._provider.request("wallet_switchEthereumChain", [{"chainId": descriptor.hex_chain_id}])
        except ProviderRpcError as e:
            if e.code != UNRECOGNIZED_CHAIN:
                raise
            logger.info("Wallet does not know %s, adding it", descriptor.display_name)
            await self._provider.request("wallet_addEthereumChain", [descriptor.to_wallet_params()])
        return descriptor
