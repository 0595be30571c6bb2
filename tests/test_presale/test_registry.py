"""
Test suite for the chain registry and amount conversions.
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from test_mocks import CHAIN_BASE, CHAIN_BSC, CHAIN_ETHEREUM, make_registry

from presale_client.chains.constants import amount_to_value, resolve_rpc_template, value_to_amount
from presale_client.chains.registry import ChainRegistry, build_descriptor, parse_chain_id, to_hex_chain_id
from presale_client.engine.exceptions import UnknownChainError, UnsupportedPaymentTokenError


def test_default_chains_registered():
    registry = make_registry()
    assert sorted(registry.chain_ids) == [CHAIN_ETHEREUM, CHAIN_BSC, CHAIN_BASE]
    assert registry.canonical.chain_id == CHAIN_BASE
    assert registry.canonical.holder_nft_address is not None


def test_unknown_chain_raises():
    registry = make_registry()
    with pytest.raises(UnknownChainError) as exc_info:
        registry.get(137)
    assert exc_info.value.chain_id == 137
    assert not registry.is_supported(137)
    assert not registry.is_supported(None)


def test_stablecoin_decimals_are_per_chain():
    registry = make_registry()
    assert registry.get(CHAIN_BASE).payment_token("USDT").decimals == 6
    assert registry.get(CHAIN_ETHEREUM).payment_token("usdt").decimals == 6
    assert registry.get(CHAIN_BSC).payment_token("USDT").decimals == 18


def test_payment_tokens_for_chain():
    registry = make_registry()
    assert registry.payment_tokens_for(CHAIN_BSC) == ["BNB", "USDT"]
    bnb = registry.get(CHAIN_BSC).payment_token("BNB")
    assert bnb.is_native and bnb.address is None


def test_unsupported_payment_token():
    registry = make_registry()
    with pytest.raises(UnsupportedPaymentTokenError):
        registry.get(CHAIN_BSC).payment_token("ETH")


def test_wallet_params_shape():
    params = make_registry().get(CHAIN_BSC).to_wallet_params()
    assert params["chainId"] == "0x38"
    assert params["chainName"] == "BNB Smart Chain"
    assert params["nativeCurrency"] == {"name": "BNB", "symbol": "BNB", "decimals": 18}
    assert params["rpcUrls"][0].startswith("https://")
    assert params["blockExplorerUrls"] == ["https://bscscan.com"]


def test_descriptors_are_immutable():
    descriptor = make_registry().get(CHAIN_BASE)
    with pytest.raises(ValidationError):
        descriptor.display_name = "Other"


def test_duplicate_chain_rejected():
    descriptor = make_registry().get(CHAIN_BASE)
    with pytest.raises(ValueError):
        ChainRegistry([descriptor, descriptor])


def test_log_rpc_falls_back_to_public_endpoint():
    registry = make_registry()
    base = registry.get(CHAIN_BASE)
    assert base.log_rpc_url is None
    assert base.query_rpc_url() == base.rpc_urls[0]


def test_log_rpc_template_filled_with_key():
    from presale_client.chains.constants import get_chains_data

    descriptor = build_descriptor(CHAIN_BASE, get_chains_data()[CHAIN_BASE], rpc_key="secret")
    assert descriptor.query_rpc_url() == "https://base-mainnet.g.alchemy.com/v2/secret"


def test_resolve_rpc_template():
    assert resolve_rpc_template(None, "k") is None
    assert resolve_rpc_template("https://rpc.example", None) == "https://rpc.example"
    assert resolve_rpc_template("https://x/{RPC_KEYS}", None) is None


def test_chain_id_conversions():
    assert to_hex_chain_id(8453) == "0x2105"
    assert parse_chain_id("0x2105") == 8453
    assert parse_chain_id("56") == 56
    assert parse_chain_id(1) == 1
    with pytest.raises(ValueError):
        parse_chain_id(None)


def test_amount_conversions():
    assert amount_to_value(amount="1.23", decimals=6) == 1_230_000
    assert amount_to_value(amount=Decimal(10_000), decimals=18) == 10_000 * 10 ** 18
    assert value_to_amount(value=1_230_000, decimals=6) == Decimal("1.23")
    with pytest.raises(ValueError):
        amount_to_value(amount="0.0000001", decimals=6)
    with pytest.raises(ValueError):
        amount_to_value(amount=-1, decimals=6)


def test_chain_name_for_unknown():
    registry = make_registry()
    assert registry.chain_name(CHAIN_BASE) == "Base"
    assert registry.chain_name(999) == "Unknown"
