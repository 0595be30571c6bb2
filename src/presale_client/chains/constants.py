"""
Presale Chain Configuration Data

Static chain table for every network the presale runs on, environment-aware
configuration getters, and the canonical human <-> smallest-unit amount
conversions used throughout the client.
"""

import os
from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Optional, Any

import dotenv

dotenv.load_dotenv()


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: Presale token (HVNA) uses 18 decimals on every chain.
PRESALE_TOKEN_DECIMALS = 18

#: Chain whose presale contract holds the aggregate tokens-sold counter.
CANONICAL_CHAIN_ID = 8453

#: Decimal precision wide enough for any uint256 value.
_WIDE_PRECISION = 80

#: Placeholder substituted with PRESALE_ALCHEMY_KEY in premium RPC templates.
RPC_KEY_PLACEHOLDER = "{RPC_KEYS}"

_PRESALE_CONTRACT = "0x2cCE8fA9C5A369145319EB4906a47B319c639928"
_TOKEN_CONTRACT = "0xb5561D071b39221239a56F0379a6bb96C85fb94f"
_GENESIS_NFT_CONTRACT = "0x84bb6c7Bf82EE8c455643A7D613F9B160aeC0642"


# Raw chain configuration data.
# Ethereum and BSC currently point at the Base presale contract until their
# own deployments exist. log_rpc_url may hold a premium template with the
# {RPC_KEYS} placeholder; without a key the first public rpc_url is used.
_PRESALE_CHAINS_DATA: Dict[int, Dict[str, Any]] = {
    1: {
        "display_name": "Ethereum",
        "short_name": "ETH",
        "native_currency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
        "rpc_urls": [
            "https://cloudflare-eth.com",
            "https://ethereum-rpc.publicnode.com",
        ],
        "log_rpc_url": "https://eth-mainnet.g.alchemy.com/v2/{RPC_KEYS}",
        "block_explorer_urls": ["https://etherscan.io"],
        "presale_contract_address": _PRESALE_CONTRACT,
        "token_contract_address": _TOKEN_CONTRACT,
        "usdt_address": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "usdt_decimals": 6,
        "native_usd_estimate": "3500",
        "gas_fee_tier": "high",
        "payment_tokens": ["ETH", "USDT"],
    },
    56: {
        "display_name": "BNB Smart Chain",
        "short_name": "BSC",
        "native_currency": {"name": "BNB", "symbol": "BNB", "decimals": 18},
        "rpc_urls": [
            "https://bsc-dataseed1.binance.org",
            "https://bsc-dataseed2.binance.org",
            "https://bsc-dataseed3.binance.org",
        ],
        "log_rpc_url": "https://bnb-mainnet.g.alchemy.com/v2/{RPC_KEYS}",
        "block_explorer_urls": ["https://bscscan.com"],
        "presale_contract_address": _PRESALE_CONTRACT,
        "token_contract_address": _TOKEN_CONTRACT,
        "usdt_address": "0x55d398326f99059fF775485246999027B3197955",
        "usdt_decimals": 18,
        "native_usd_estimate": "600",
        "gas_fee_tier": "low",
        "payment_tokens": ["BNB", "USDT"],
    },
    8453: {
        "display_name": "Base",
        "short_name": "BASE",
        "native_currency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
        "rpc_urls": [
            "https://mainnet.base.org",
            "https://base-rpc.publicnode.com",
        ],
        "log_rpc_url": "https://base-mainnet.g.alchemy.com/v2/{RPC_KEYS}",
        "block_explorer_urls": ["https://basescan.org"],
        "presale_contract_address": _PRESALE_CONTRACT,
        "token_contract_address": _TOKEN_CONTRACT,
        "usdt_address": "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
        "usdt_decimals": 6,
        "native_usd_estimate": "3500",
        "gas_fee_tier": "low",
        "payment_tokens": ["ETH", "USDT"],
        "holder_nft_address": _GENESIS_NFT_CONTRACT,
    },
}


def get_chains_data() -> Dict[int, Dict[str, Any]]:
    """Return the raw chain table (a fresh copy per call)."""
    return {chain_id: dict(data) for chain_id, data in _PRESALE_CHAINS_DATA.items()}


def get_private_key_from_env() -> Optional[str]:
    """
    Load the private key used by the local wallet provider.

    Environment Variable:
        - PRESALE_PRIVATE_KEY: 0x-prefixed hex private key

    Returns:
        str: Private key from environment, or None if not configured
    """
    return os.getenv("PRESALE_PRIVATE_KEY")


def get_rpc_key_from_env() -> Optional[str]:
    """
    Load the infrastructure API key for premium log-query endpoints.

    Environment Variable:
        - PRESALE_ALCHEMY_KEY: substituted for {RPC_KEYS} in log_rpc_url templates

    Returns:
        str: Key from environment, or None if not configured
    """
    return os.getenv("PRESALE_ALCHEMY_KEY")


def get_log_rpc_override_from_env() -> Optional[str]:
    """Explicit log-query endpoint (PRESALE_LOG_RPC_URL), applied to every chain."""
    return os.getenv("PRESALE_LOG_RPC_URL")


def get_webhook_url_from_env() -> Optional[str]:
    """Marketing email-capture webhook (PRESALE_WEBHOOK_URL)."""
    return os.getenv("PRESALE_WEBHOOK_URL")


def get_marketing_floor_from_env(default: Decimal) -> Decimal:
    """
    Displayed tokens-sold minimum (PRESALE_MARKETING_FLOOR).

    Falls back to ``default`` when unset or not a number.
    """
    raw = os.getenv("PRESALE_MARKETING_FLOOR")
    if raw is None or not raw.strip():
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        return default


def resolve_rpc_template(template: Optional[str], rpc_key: Optional[str]) -> Optional[str]:
    """
    Fill the {RPC_KEYS} placeholder of a premium RPC template.

    Returns None when the template needs a key and none is configured.
    """
    if not template:
        return None
    if RPC_KEY_PLACEHOLDER not in template:
        return template
    if not rpc_key:
        return None
    return template.replace(RPC_KEY_PLACEHOLDER, rpc_key)


def amount_to_value(*, amount: int | float | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. 1.23 for USDT). Accepts float/int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDT on Ethereum).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float surprises (0.1 -> 0.1000000000000000055...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    with localcontext() as ctx:
        ctx.prec = _WIDE_PRECISION
        scaled = dec_amount.scaleb(decimals)

    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable Decimal `amount`.

    Args:
        value: Smallest-unit integer value (e.g. 1230000 for 1.23 USDT). Accepts int/str/Decimal.
        decimals: Token decimals.

    Returns:
        Decimal: Human-readable amount (exact).

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0:
        raise ValueError("value must be non-negative")

    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    with localcontext() as ctx:
        ctx.prec = _WIDE_PRECISION
        return dec_value.scaleb(-decimals)
