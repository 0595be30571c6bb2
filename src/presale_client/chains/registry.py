"""
Chain Registry

Immutable lookup table of chain descriptors keyed by chain id. Every
chain-specific decision in the client (stablecoin decimals, native price
estimate, holder NFT location, log endpoint) is a field lookup on a
ChainDescriptor rather than a chain-id comparison.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Any

from pydantic import ConfigDict, Field

from ..schemas.bases import CanonicalModel
from ..engine.exceptions import UnknownChainError, UnsupportedPaymentTokenError
from .constants import (
    CANONICAL_CHAIN_ID,
    ZERO_ADDRESS,
    get_chains_data,
    get_log_rpc_override_from_env,
    get_rpc_key_from_env,
    resolve_rpc_template,
)


class NativeCurrency(CanonicalModel):
    """Native asset metadata in the shape wallets expect."""
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    decimals: int = 18


class PaymentTokenConfig(CanonicalModel):
    """A currency accepted by the presale contract on one chain."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    decimals: int = Field(..., ge=0)
    is_native: bool
    address: Optional[str] = Field(None, description="ERC-20 contract address, None for the native asset")
    is_stablecoin: bool = Field(default=False, description="USD-pegged, priced 1:1 with USD")


class ChainDescriptor(CanonicalModel):
    """
    Everything the client needs to know about one presale chain.

    Immutable, built once at process start.
    """
    model_config = ConfigDict(frozen=True)

    chain_id: int
    display_name: str
    short_name: str
    native_currency: NativeCurrency
    rpc_urls: List[str]
    block_explorer_urls: List[str] = Field(default_factory=list)
    presale_contract_address: str
    token_contract_address: str
    usdt_address: Optional[str] = None
    payment_tokens: Dict[str, PaymentTokenConfig]
    gas_fee_tier: str
    native_usd_estimate: Decimal = Field(..., gt=0, description="Static native asset USD price for advisory quotes")
    holder_nft_address: Optional[str] = None
    log_rpc_url: Optional[str] = Field(None, description="Direct endpoint for event-log queries")

    @property
    def native_symbol(self) -> str:
        return self.native_currency.symbol

    @property
    def supported_payment_tokens(self) -> List[str]:
        return list(self.payment_tokens)

    @property
    def hex_chain_id(self) -> str:
        return to_hex_chain_id(self.chain_id)

    @property
    def has_presale_contract(self) -> bool:
        return bool(self.presale_contract_address) and self.presale_contract_address != ZERO_ADDRESS

    def payment_token(self, symbol: str) -> PaymentTokenConfig:
        """
        Look up an accepted payment token by symbol (case-insensitive).

        Raises:
            UnsupportedPaymentTokenError: If the token is not accepted on this chain.
        """
        token = self.payment_tokens.get(symbol.strip().upper())
        if token is None:
            raise UnsupportedPaymentTokenError(
                f"{symbol} is not accepted on {self.display_name}; "
                f"supported: {', '.join(self.supported_payment_tokens)}"
            )
        return token

    def query_rpc_url(self) -> str:
        """Endpoint used for reads that bypass the wallet (log scans, progress)."""
        return self.log_rpc_url or self.rpc_urls[0]

    def to_wallet_params(self) -> Dict[str, Any]:
        """Network-registration shape for ``wallet_addEthereumChain``."""
        return {
            "chainId": self.hex_chain_id,
            "chainName": self.display_name,
            "nativeCurrency": self.native_currency.model_dump(),
            "rpcUrls": list(self.rpc_urls),
            "blockExplorerUrls": list(self.block_explorer_urls),
        }


def to_hex_chain_id(chain_id: int) -> str:
    return hex(int(chain_id))


def parse_chain_id(value: Any) -> int:
    """Parse a chain id given as int, decimal string or 0x-hex string."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("0x"):
            return int(text, 16)
        return int(text)
    raise ValueError(f"Invalid chain id: {value!r}")


def build_descriptor(chain_id: int, data: Dict[str, Any], rpc_key: Optional[str] = None,
                     log_rpc_override: Optional[str] = None) -> ChainDescriptor:
    """Validate one raw chain-table entry into a ChainDescriptor."""
    native = NativeCurrency(**data["native_currency"])
    usdt_address = data.get("usdt_address")

    tokens: Dict[str, PaymentTokenConfig] = {}
    for symbol in data.get("payment_tokens", []):
        if symbol == native.symbol:
            tokens[symbol] = PaymentTokenConfig(
                symbol=symbol,
                name=native.name,
                decimals=native.decimals,
                is_native=True,
            )
        elif symbol == "USDT" and usdt_address:
            tokens[symbol] = PaymentTokenConfig(
                symbol=symbol,
                name="Tether USD",
                decimals=int(data.get("usdt_decimals", 6)),
                is_native=False,
                address=usdt_address,
                is_stablecoin=True,
            )

    log_rpc_url = log_rpc_override or resolve_rpc_template(data.get("log_rpc_url"), rpc_key)

    return ChainDescriptor(
        chain_id=chain_id,
        display_name=data["display_name"],
        short_name=data.get("short_name", native.symbol),
        native_currency=native,
        rpc_urls=list(data["rpc_urls"]),
        block_explorer_urls=list(data.get("block_explorer_urls", [])),
        presale_contract_address=data["presale_contract_address"],
        token_contract_address=data["token_contract_address"],
        usdt_address=usdt_address,
        payment_tokens=tokens,
        gas_fee_tier=data.get("gas_fee_tier", "unknown"),
        native_usd_estimate=Decimal(str(data["native_usd_estimate"])),
        holder_nft_address=data.get("holder_nft_address"),
        log_rpc_url=log_rpc_url,
    )


class ChainRegistry:
    """
    Read-only table of ChainDescriptors keyed by chain id.

    Example:
        registry = ChainRegistry.default()
        base = registry.get(8453)
        base.payment_token("USDT").decimals   # 6
        registry.get(137)                     # raises UnknownChainError
    """

    def __init__(self, descriptors: Iterable[ChainDescriptor], canonical_chain_id: int = CANONICAL_CHAIN_ID) -> None:
        self._descriptors: Dict[int, ChainDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.chain_id in self._descriptors:
                raise ValueError(f"Duplicate chain id {descriptor.chain_id}")
            self._descriptors[descriptor.chain_id] = descriptor
        if canonical_chain_id not in self._descriptors:
            raise UnknownChainError(canonical_chain_id)
        self._canonical_chain_id = canonical_chain_id

    @classmethod
    def default(cls) -> "ChainRegistry":
        """Build the registry from the static chain table and environment."""
        rpc_key = get_rpc_key_from_env()
        override = get_log_rpc_override_from_env()
        return cls(
            build_descriptor(chain_id, data, rpc_key=rpc_key, log_rpc_override=override)
            for chain_id, data in get_chains_data().items()
        )

    def get(self, chain_id: int) -> ChainDescriptor:
        """
        Look up a chain.

        Raises:
            UnknownChainError: If the chain id is not registered.
        """
        try:
            return self._descriptors[int(chain_id)]
        except (KeyError, TypeError, ValueError):
            raise UnknownChainError(chain_id) from None

    def is_supported(self, chain_id: Optional[int]) -> bool:
        return chain_id is not None and chain_id in self._descriptors

    def all(self) -> List[ChainDescriptor]:
        return list(self._descriptors.values())

    @property
    def chain_ids(self) -> List[int]:
        return list(self._descriptors)

    @property
    def canonical(self) -> ChainDescriptor:
        """Chain whose presale contract aggregates tokens sold across all chains."""
        return self._descriptors[self._canonical_chain_id]

    def payment_tokens_for(self, chain_id: int) -> List[str]:
        return self.get(chain_id).supported_payment_tokens

    def chain_name(self, chain_id: Optional[int]) -> str:
        if not self.is_supported(chain_id):
            return "Unknown"
        return self._descriptors[chain_id].display_name

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
