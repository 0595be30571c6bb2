"""
Calldata and event-log codec for the presale contracts.

Wallet providers speak raw JSON-RPC (``eth_call`` / ``eth_sendTransaction``
with hex ``data``), so calldata is built here from the ABI fragments in
``abis`` rather than through a bound contract object.
"""

from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    event_abi_to_log_topic,
    function_abi_to_4byte_selector,
    is_address,
    to_checksum_address,
)

from ..chains.constants import PRESALE_TOKEN_DECIMALS, value_to_amount
from ..schemas.bases import PurchaseEvent
from .abis import (
    get_allowance_abi,
    get_approve_abi,
    get_balance_abi,
    get_owner_of_abi,
    get_presale_abi,
    get_tokens_purchased_event_abi,
)

_WORD = 32


def _function_abi(abi: List[Dict[str, Any]], name: str) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == name:
            return entry
    raise KeyError(f"Function {name} not found in ABI")


def _selector(abi: List[Dict[str, Any]], name: str) -> bytes:
    return function_abi_to_4byte_selector(_function_abi(abi, name))


BALANCE_OF_SELECTOR = _selector(get_balance_abi(), "balanceOf")
ALLOWANCE_SELECTOR = _selector(get_allowance_abi(), "allowance")
APPROVE_SELECTOR = _selector(get_approve_abi(), "approve")
OWNER_OF_SELECTOR = _selector(get_owner_of_abi(), "ownerOf")
BUY_TOKENS_SELECTOR = _selector(get_presale_abi(), "buyTokens")
BUY_TOKENS_WITH_USDT_SELECTOR = _selector(get_presale_abi(), "buyTokensWithUSDT")
TOKENS_SOLD_SELECTOR = _selector(get_presale_abi(), "tokensSold")

TOKENS_PURCHASED_TOPIC = "0x" + event_abi_to_log_topic(get_tokens_purchased_event_abi()).hex()

_PURCHASE_DATA_TYPES = ["uint256", "uint256", "uint256", "uint8", "bool"]


def _calldata(selector: bytes, types: Sequence[str], args: Sequence[Any]) -> str:
    return "0x" + (selector + encode(list(types), list(args))).hex()


def _checksum(address: str) -> str:
    if not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


# ---------------------------------------------------------------------------
# Calldata
# ---------------------------------------------------------------------------

def encode_balance_of(owner: str) -> str:
    """Calldata for ``balanceOf(owner)`` (ERC20 and ERC721)."""
    return _calldata(BALANCE_OF_SELECTOR, ["address"], [_checksum(owner)])


def encode_allowance(owner: str, spender: str) -> str:
    """Calldata for ERC20 ``allowance(owner, spender)``."""
    return _calldata(ALLOWANCE_SELECTOR, ["address", "address"], [_checksum(owner), _checksum(spender)])


def encode_approve(spender: str, amount: int) -> str:
    """Calldata for ERC20 ``approve(spender, amount)``."""
    return _calldata(APPROVE_SELECTOR, ["address", "uint256"], [_checksum(spender), int(amount)])


def encode_owner_of(token_id: int) -> str:
    """Calldata for ERC721 ``ownerOf(tokenId)``."""
    return _calldata(OWNER_OF_SELECTOR, ["uint256"], [int(token_id)])


def encode_buy_tokens(token_value: int) -> str:
    """Calldata for the payable native-asset purchase ``buyTokens(amount)``."""
    return _calldata(BUY_TOKENS_SELECTOR, ["uint256"], [int(token_value)])


def encode_buy_tokens_with_usdt(token_value: int) -> str:
    """Calldata for the stablecoin purchase ``buyTokensWithUSDT(amount)``."""
    return _calldata(BUY_TOKENS_WITH_USDT_SELECTOR, ["uint256"], [int(token_value)])


def encode_tokens_sold() -> str:
    """Calldata for the ``tokensSold()`` view."""
    return "0x" + TOKENS_SOLD_SELECTOR.hex()


def encode_address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed-topic word."""
    return "0x" + _checksum(address)[2:].lower().rjust(64, "0")


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def hex_to_bytes(value: Any) -> bytes:
    """Accept ``bytes`` or a (possibly 0x-prefixed) hex string."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    return bytes.fromhex(text)


def hex_to_int(value: Any) -> int:
    """Parse a JSON-RPC quantity. ``"0x"`` and empty strings read as zero."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    if text in ("", "0x", "0X"):
        return 0
    return int(text, 16)


def decode_uint256(data: Any) -> int:
    """
    Decode an ``eth_call`` result holding a single uint256.

    Contracts that are not deployed at the queried address return ``"0x"``,
    which decodes to zero.
    """
    raw = hex_to_bytes(data)
    if not raw:
        return 0
    if len(raw) < _WORD:
        raise ValueError(f"uint256 result too short: {len(raw)} bytes")
    return int(decode(["uint256"], raw[:_WORD])[0])


def decode_address(data: Any) -> Optional[str]:
    """Decode an ``eth_call`` result holding a single address; None for an empty result."""
    raw = hex_to_bytes(data)
    if not raw:
        return None
    if len(raw) < _WORD:
        raise ValueError(f"address result too short: {len(raw)} bytes")
    return to_checksum_address("0x" + raw[_WORD - 20:_WORD].hex())


def decode_purchase_log(log: Dict[str, Any]) -> PurchaseEvent:
    """
    Decode one ``TokensPurchased`` log into a PurchaseEvent.

    The token amount is the first data word, scaled by the presale token's
    18 decimals. Logs carrying only the amount word still decode, with the
    remaining fields zeroed.

    Raises:
        ValueError: If the log is not a decodable TokensPurchased entry.
    """
    topics = log.get("topics") or []
    if len(topics) < 2:
        raise ValueError("TokensPurchased log must carry the buyer topic")
    if hex_to_bytes(topics[0]).hex() != TOKENS_PURCHASED_TOPIC[2:]:
        raise ValueError(f"Unexpected event topic {topics[0]}")

    buyer_word = hex_to_bytes(topics[1])
    if len(buyer_word) != _WORD:
        raise ValueError("Buyer topic must be a 32-byte word")
    buyer = to_checksum_address("0x" + buyer_word[-20:].hex())

    data = hex_to_bytes(log.get("data") or "0x")
    if len(data) >= _WORD * len(_PURCHASE_DATA_TYPES):
        try:
            amount, cost_native, cost_usd, phase, is_genesis = decode(
                _PURCHASE_DATA_TYPES, data[: _WORD * len(_PURCHASE_DATA_TYPES)]
            )
        except DecodingError as e:
            raise ValueError(f"Malformed TokensPurchased data: {e}") from e
    elif len(data) >= _WORD:
        amount = int.from_bytes(data[:_WORD], "big")
        cost_native, cost_usd, phase, is_genesis = 0, 0, 0, False
    else:
        raise ValueError("TokensPurchased log data is empty")

    block_number: Optional[int] = None
    if log.get("blockNumber") is not None:
        block_number = hex_to_int(log["blockNumber"])

    tx_hash = log.get("transactionHash")
    if tx_hash is not None and not isinstance(tx_hash, str):
        tx_hash = "0x" + hex_to_bytes(tx_hash).hex()

    return PurchaseEvent(
        buyer=buyer,
        token_amount=value_to_amount(value=int(amount), decimals=PRESALE_TOKEN_DECIMALS),
        cost_in_payment_units=int(cost_native),
        cost_usd=int(cost_usd),
        phase=int(phase),
        is_genesis_discount=bool(is_genesis),
        block_number=block_number,
        tx_hash=tx_hash,
    )

