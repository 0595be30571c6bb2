from .registry import (
    ChainRegistry,
    ChainDescriptor,
    NativeCurrency,
    PaymentTokenConfig,
    build_descriptor,
    parse_chain_id,
    to_hex_chain_id,
)
from .constants import (
    CANONICAL_CHAIN_ID,
    PRESALE_TOKEN_DECIMALS,
    ZERO_ADDRESS,
    amount_to_value,
    value_to_amount,
)

__all__ = [
    "ChainRegistry",
    "ChainDescriptor",
    "NativeCurrency",
    "PaymentTokenConfig",
    "build_descriptor",
    "parse_chain_id",
    "to_hex_chain_id",
    "CANONICAL_CHAIN_ID",
    "PRESALE_TOKEN_DECIMALS",
    "ZERO_ADDRESS",
    "amount_to_value",
    "value_to_amount",
]
