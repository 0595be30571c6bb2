"""
Local Wallet Provider

A WalletProvider backed by a private key and AsyncWeb3. It stands in for a
browser-injected wallet: requests are answered by signing locally and
forwarding reads and raw transactions to the chain's public RPC.

Only chains the wallet "knows" can be switched to. Asking for any other chain
fails with code 4902 until the chain has been registered through
``wallet_addEthereumChain``, which is how injected wallets behave.

Environment Variables:
    - PRESALE_PRIVATE_KEY: Account private key (required unless passed explicitly)
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from eth_account import Account
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from ..chains.constants import get_private_key_from_env
from ..chains.registry import ChainRegistry, parse_chain_id, to_hex_chain_id
from ..engine.events import AccountsChangedEvent, ChainChangedEvent
from ..engine.exceptions import (
    ConfigurationError,
    INTERNAL_ERROR,
    ProviderRpcError,
    UNAUTHORIZED,
    UNRECOGNIZED_CHAIN,
    UNSUPPORTED_METHOD,
    USER_REJECTED_REQUEST,
)
from ..evm.codec import hex_to_int
from .bases import WalletProvider

logger = logging.getLogger(__name__)

#: Gas limit used when estimation fails (e.g. zero balance on a fresh account)
DEFAULT_GAS_LIMIT = 300_000

TransactionApprover = Callable[[Dict[str, Any]], Awaitable[bool]]


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


class LocalWalletProvider(WalletProvider):
    """
    Private-key wallet speaking the EIP-1193 request interface.

    Example:
        provider = LocalWalletProvider(registry)        # key from PRESALE_PRIVATE_KEY
        await provider.request("eth_requestAccounts")   # ["0xAbc..."]
        await provider.request("wallet_switchEthereumChain", [{"chainId": "0x38"}])

    Args:
        registry: Chains whose RPC endpoints the wallet may use
        private_key: Overrides PRESALE_PRIVATE_KEY
        chain_id: Chain selected at start (defaults to the canonical chain)
        known_chain_ids: Chains the wallet already has configured; defaults to
            every registry chain
        approve_transaction: Optional async confirmation hook; returning False
            rejects the transaction with code 4001
        request_timeout: RPC request timeout in seconds
    """

    def __init__(
        self,
        registry: ChainRegistry,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        known_chain_ids: Optional[Iterable[int]] = None,
        approve_transaction: Optional[TransactionApprover] = None,
        request_timeout: int = 60,
    ):
        super().__init__()
        resolved_pk = private_key if private_key else get_private_key_from_env()
        if not resolved_pk:
            raise ConfigurationError(
                "Private key not provided. Either pass 'private_key' or set the "
                "'PRESALE_PRIVATE_KEY' environment variable."
            )

        self._registry = registry
        self.account = Account.from_key(resolved_pk)
        self.address = AsyncWeb3.to_checksum_address(self.account.address)
        self._chain_id = chain_id if chain_id is not None else registry.canonical.chain_id
        self._known_chains: Set[int] = set(known_chain_ids) if known_chain_ids is not None else set(registry.chain_ids)
        self._known_chains.add(self._chain_id)
        self._added_rpc_urls: Dict[int, str] = {}
        self._authorized = False
        self._approve_transaction = approve_transaction
        self._request_timeout = request_timeout
        self._web3_cache: Dict[int, AsyncWeb3] = {}

        self._handlers: Dict[str, Callable[[List[Any]], Awaitable[Any]]] = {
            "eth_requestAccounts": self._request_accounts,
            "eth_accounts": self._accounts,
            "eth_chainId": self._chain_id_hex,
            "eth_getBalance": self._get_balance,
            "eth_call": self._call,
            "eth_sendTransaction": self._send_transaction,
            "eth_getTransactionReceipt": self._get_transaction_receipt,
            "wallet_switchEthereumChain": self._switch_chain,
            "wallet_addEthereumChain": self._add_chain,
        }

    @property
    def chain_id(self) -> int:
        return self._chain_id

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        handler = self._handlers.get(method)
        if handler is None:
            raise ProviderRpcError(UNSUPPORTED_METHOD, f"Method {method} is not supported by this wallet")
        try:
            return await handler(list(params or []))
        except ProviderRpcError:
            raise
        except Exception as e:
            logger.warning("Wallet request %s failed: %s", method, e)
            raise ProviderRpcError(INTERNAL_ERROR, f"{method} failed: {e}") from e

    async def disconnect(self) -> None:
        """Revoke account authorization and notify subscribers."""
        if not self._authorized:
            return
        self._authorized = False
        await self.events.publish(AccountsChangedEvent(accounts=[]))

    # ------------------------------------------------------------------
    # RPC plumbing
    # ------------------------------------------------------------------

    def _rpc_url(self, chain_id: int) -> str:
        if chain_id in self._added_rpc_urls:
            return self._added_rpc_urls[chain_id]
        return self._registry.get(chain_id).rpc_urls[0]

    def _get_web3_instance(self, chain_id: int) -> AsyncWeb3:
        """AsyncWeb3 bound to the public RPC of ``chain_id`` (cached per chain)."""
        web3 = self._web3_cache.get(chain_id)
        if web3 is None:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                self._rpc_url(chain_id),
                request_kwargs={"timeout": self._request_timeout},
            ))
            self._web3_cache[chain_id] = web3
        return web3

    def _require_authorized(self) -> None:
        if not self._authorized:
            raise ProviderRpcError(UNAUTHORIZED, "Account access has not been granted")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _request_accounts(self, params: List[Any]) -> List[str]:
        self._authorized = True
        return [self.address]

    async def _accounts(self, params: List[Any]) -> List[str]:
        return [self.address] if self._authorized else []

    async def _chain_id_hex(self, params: List[Any]) -> str:
        return to_hex_chain_id(self._chain_id)

    async def _get_balance(self, params: List[Any]) -> str:
        address = AsyncWeb3.to_checksum_address(params[0])
        balance = await self._get_web3_instance(self._chain_id).eth.get_balance(address)
        return hex(balance)

    async def _call(self, params: List[Any]) -> str:
        call = params[0]
        tx = {"to": AsyncWeb3.to_checksum_address(call["to"]), "data": call.get("data", "0x")}
        if call.get("from"):
            tx["from"] = AsyncWeb3.to_checksum_address(call["from"])
        result = await self._get_web3_instance(self._chain_id).eth.call(tx)
        return _hex(result)

    async def _send_transaction(self, params: List[Any]) -> str:
        self._require_authorized()
        request = params[0]
        sender = AsyncWeb3.to_checksum_address(request.get("from", self.address))
        if sender != self.address:
            raise ProviderRpcError(UNAUTHORIZED, f"Account {sender} is not managed by this wallet")

        if self._approve_transaction is not None and not await self._approve_transaction(dict(request)):
            raise ProviderRpcError(USER_REJECTED_REQUEST, "User rejected the request.")

        chain_id = self._chain_id
        w3 = self._get_web3_instance(chain_id)
        tx: Dict[str, Any] = {
            "chainId": chain_id,
            "from": self.address,
            "to": AsyncWeb3.to_checksum_address(request["to"]),
            "data": request.get("data", "0x"),
            "value": hex_to_int(request.get("value")),
            "nonce": await w3.eth.get_transaction_count(self.address, "pending"),
        }

        # Gas estimation with 10% buffer
        try:
            gas_estimate = await w3.eth.estimate_gas(tx)
            tx["gas"] = int(gas_estimate * 1.1)
        except Exception as e:
            logger.debug("Gas estimation failed, using default limit: %s", e)
            tx["gas"] = DEFAULT_GAS_LIMIT
        tx["gasPrice"] = await w3.eth.gas_price

        signed_tx = self.account.sign_transaction(tx)
        tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        tx_hex = _hex(tx_hash)
        logger.info("Submitted transaction %s on chain %s", tx_hex, chain_id)
        return tx_hex

    async def _get_transaction_receipt(self, params: List[Any]) -> Optional[Dict[str, Any]]:
        try:
            receipt = await self._get_web3_instance(self._chain_id).eth.get_transaction_receipt(params[0])
        except TransactionNotFound:
            return None
        if not receipt:
            return None
        return {
            "transactionHash": _hex(receipt["transactionHash"]),
            "status": hex(receipt["status"]),
            "blockNumber": hex(receipt["blockNumber"]),
            "gasUsed": hex(receipt["gasUsed"]),
        }

    async def _switch_chain(self, params: List[Any]) -> None:
        target = parse_chain_id(params[0]["chainId"])
        if target not in self._known_chains:
            raise ProviderRpcError(
                UNRECOGNIZED_CHAIN,
                f"Unrecognized chain ID {to_hex_chain_id(target)}. Try adding the chain using wallet_addEthereumChain first.",
            )
        if target == self._chain_id:
            return None
        self._chain_id = target
        logger.info("Wallet switched to chain %s", target)
        await self.events.publish(ChainChangedEvent(chain_id=target))
        return None

    async def _add_chain(self, params: List[Any]) -> None:
        chain_params = params[0]
        chain_id = parse_chain_id(chain_params["chainId"])
        rpc_urls = chain_params.get("rpcUrls") or []
        if not rpc_urls:
            raise ProviderRpcError(INTERNAL_ERROR, "wallet_addEthereumChain requires rpcUrls")
        self._added_rpc_urls[chain_id] = rpc_urls[0]
        self._web3_cache.pop(chain_id, None)
        self._known_chains.add(chain_id)
        logger.info("Wallet added chain %s (%s)", chain_id, chain_params.get("chainName"))
        # Wallets offer to switch right after adding
        return await self._switch_chain([{"chainId": chain_params["chainId"]}])
