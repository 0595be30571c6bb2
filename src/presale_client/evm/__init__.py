from .abis import (
    get_allowance_abi,
    get_approve_abi,
    get_balance_abi,
    get_owner_of_abi,
    get_presale_abi,
    get_tokens_purchased_event_abi,
)
from .codec import (
    TOKENS_PURCHASED_TOPIC,
    decode_address,
    decode_purchase_log,
    decode_uint256,
    encode_address_topic,
    encode_allowance,
    encode_approve,
    encode_balance_of,
    encode_buy_tokens,
    encode_buy_tokens_with_usdt,
    encode_owner_of,
    encode_tokens_sold,
    hex_to_int,
)

__all__ = [
    "get_allowance_abi",
    "get_approve_abi",
    "get_balance_abi",
    "get_owner_of_abi",
    "get_presale_abi",
    "get_tokens_purchased_event_abi",
    "TOKENS_PURCHASED_TOPIC",
    "decode_address",
    "decode_purchase_log",
    "decode_uint256",
    "encode_address_topic",
    "encode_allowance",
    "encode_approve",
    "encode_balance_of",
    "encode_buy_tokens",
    "encode_buy_tokens_with_usdt",
    "encode_owner_of",
    "encode_tokens_sold",
    "hex_to_int",
]
