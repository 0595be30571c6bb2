"""
Test suite for WalletSession.
Tests: 1) connect / restore / disconnect 2) blocklist screening
3) provider events (chain and account changes) 4) balance refresh and holder check
"""
from decimal import Decimal

import pytest

from test_mocks import (
    CHAIN_BASE,
    CHAIN_ETHEREUM,
    MOCK_BLOCKED_ADDRESS,
    MOCK_BUYER_ADDRESS,
    MOCK_OTHER_ADDRESS,
    WEI,
    FakeWalletProvider,
    address_word,
    make_registry,
    selector_hex,
    uint_word,
)

from presale_client.engine.events import (
    AccountsChangedEvent,
    ChainChangedEvent,
    SessionConnectedEvent,
    SessionDisconnectedEvent,
    SessionReloadEvent,
)
from presale_client.engine.exceptions import (
    ProviderRpcError,
    REQUEST_ALREADY_PENDING,
    SecurityBlockError,
    USER_REJECTED_REQUEST,
    WalletConnectionError,
)
from presale_client.evm.codec import BALANCE_OF_SELECTOR, encode_owner_of
from presale_client.schemas.bases import ConnectionStatus
from presale_client.wallet.session import WalletSession


def make_session(provider=None, **kwargs):
    registry = make_registry()
    provider = provider if provider is not None else FakeWalletProvider(**kwargs)
    return WalletSession(provider, registry), provider, registry


@pytest.mark.asyncio
async def test_connect_records_account_and_subscribes():
    session, provider, _ = make_session(native_balance_wei=2 * WEI)
    connected = []

    async def on_connected(event):
        connected.append(event.address)

    session.events.subscribe(SessionConnectedEvent, on_connected)
    state = await session.connect()

    assert session.status == ConnectionStatus.CONNECTED
    assert state.address == MOCK_BUYER_ADDRESS
    assert state.chain_id == CHAIN_BASE
    assert state.native_balance == Decimal(2)
    assert provider.events.subscriber_count(ChainChangedEvent) == 1
    assert provider.events.subscriber_count(AccountsChangedEvent) == 1
    assert connected == [MOCK_BUYER_ADDRESS]


@pytest.mark.asyncio
async def test_blocklisted_connect_leaves_state_unset():
    session, provider, _ = make_session(accounts=[MOCK_BLOCKED_ADDRESS])

    with pytest.raises(SecurityBlockError) as exc_info:
        await session.connect()

    assert exc_info.value.address == MOCK_BLOCKED_ADDRESS
    assert session.status == ConnectionStatus.DISCONNECTED
    assert session.state.is_empty()
    assert session.state.chain_id is None
    assert provider.events.subscriber_count() == 0
    assert provider.calls("eth_chainId") == []


@pytest.mark.asyncio
async def test_blocklist_is_case_insensitive():
    session, _, _ = make_session(accounts=[MOCK_BLOCKED_ADDRESS.lower()])
    with pytest.raises(SecurityBlockError):
        await session.connect()


@pytest.mark.asyncio
async def test_restore_screens_existing_authorization():
    session, provider, _ = make_session(accounts=[MOCK_BLOCKED_ADDRESS], authorized=True)
    with pytest.raises(SecurityBlockError):
        await session.restore()
    assert session.state.is_empty()
    assert provider.calls("eth_requestAccounts") == []


@pytest.mark.asyncio
async def test_restore_without_authorization_returns_none():
    session, provider, _ = make_session()
    assert await session.restore() is None
    assert session.status == ConnectionStatus.DISCONNECTED
    assert provider.calls("eth_requestAccounts") == []


@pytest.mark.asyncio
async def test_restore_adopts_authorized_account():
    session, _, _ = make_session(authorized=True)
    state = await session.restore()
    assert state.address == MOCK_BUYER_ADDRESS
    assert session.is_connected


@pytest.mark.asyncio
async def test_connect_without_provider():
    session = WalletSession(None, make_registry())
    with pytest.raises(WalletConnectionError):
        await session.connect()


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [USER_REJECTED_REQUEST, REQUEST_ALREADY_PENDING, -32603])
async def test_connect_provider_errors_map_to_connection_error(code):
    session, provider, _ = make_session()
    provider.errors["eth_requestAccounts"] = ProviderRpcError(code, "nope")

    with pytest.raises(WalletConnectionError) as exc_info:
        await session.connect()

    assert isinstance(exc_info.value.__cause__, ProviderRpcError)
    assert session.status == ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_reconnect_does_not_duplicate_subscriptions():
    session, provider, _ = make_session()
    await session.connect()
    await session.connect()
    assert provider.events.subscriber_count(ChainChangedEvent) == 1
    assert provider.events.subscriber_count(AccountsChangedEvent) == 1


@pytest.mark.asyncio
async def test_repeated_connect_keeps_in_flight_work():
    session, _, _ = make_session()
    connected = []

    async def on_connected(event):
        connected.append(event.address)

    session.events.subscribe(SessionConnectedEvent, on_connected)
    await session.connect()
    token = session.cancellation
    await session.connect()

    assert session.cancellation is token
    assert not token.cancelled
    assert session.is_connected
    assert connected == [MOCK_BUYER_ADDRESS]


@pytest.mark.asyncio
async def test_reconnect_with_new_account_replaces_state():
    session, provider, _ = make_session()
    await session.connect()
    old_token = session.cancellation

    provider.accounts = [MOCK_OTHER_ADDRESS]
    state = await session.connect()

    assert state.address == MOCK_OTHER_ADDRESS
    assert old_token.cancelled
    assert provider.events.subscriber_count(ChainChangedEvent) == 1
    assert provider.events.subscriber_count(AccountsChangedEvent) == 1


@pytest.mark.asyncio
async def test_reconnect_to_blocklisted_account_keeps_existing_connection():
    session, provider, _ = make_session(native_balance_wei=WEI)
    await session.connect()
    token = session.cancellation

    provider.accounts = [MOCK_BLOCKED_ADDRESS]
    with pytest.raises(SecurityBlockError):
        await session.connect()

    assert session.status == ConnectionStatus.CONNECTED
    assert session.state.address == MOCK_BUYER_ADDRESS
    assert session.state.native_balance == Decimal(1)
    assert not token.cancelled
    assert provider.events.subscriber_count(ChainChangedEvent) == 1
    assert provider.events.subscriber_count(AccountsChangedEvent) == 1


@pytest.mark.asyncio
async def test_rejected_reconnect_keeps_existing_connection():
    session, provider, _ = make_session()
    await session.connect()
    provider.errors["eth_requestAccounts"] = ProviderRpcError(USER_REJECTED_REQUEST, "User rejected")

    with pytest.raises(WalletConnectionError):
        await session.connect()

    assert session.is_connected
    assert session.state.address == MOCK_BUYER_ADDRESS


@pytest.mark.asyncio
async def test_account_change_ignored_while_not_connected():
    session, provider, _ = make_session()
    await session._on_accounts_changed(AccountsChangedEvent(accounts=[MOCK_OTHER_ADDRESS]))

    assert session.state.is_empty()
    assert session.status == ConnectionStatus.DISCONNECTED
    assert provider.requests == []


@pytest.mark.asyncio
async def test_failed_balance_read_leaves_balances_unloaded():
    session, provider, _ = make_session()
    provider.errors["eth_getBalance"] = ProviderRpcError(-32603, "Internal error")

    state = await session.connect()

    assert session.is_connected
    assert not state.balances_loaded

    del provider.errors["eth_getBalance"]
    await session.refresh_balances()
    assert session.state.balances_loaded


@pytest.mark.asyncio
async def test_chain_change_triggers_full_reload():
    session, provider, _ = make_session(native_balance_wei=WEI)
    await session.connect()
    old_token = session.cancellation
    session.state.erc20_balances["USDT"] = Decimal(5)
    reloads = []

    async def on_reload(event):
        reloads.append(event.chain_id)

    session.events.subscribe(SessionReloadEvent, on_reload)
    provider.native_balance_wei = 3 * WEI
    await provider.set_chain(CHAIN_ETHEREUM)

    assert reloads == [CHAIN_ETHEREUM]
    assert old_token.cancelled
    assert not session.cancellation.cancelled
    assert session.state.chain_id == CHAIN_ETHEREUM
    assert session.state.erc20_balances == {}
    assert session.state.native_balance == Decimal(3)
    assert session.state.address == MOCK_BUYER_ADDRESS


@pytest.mark.asyncio
async def test_empty_accounts_disconnects():
    session, provider, _ = make_session()
    await session.connect()
    reasons = []

    async def on_disconnected(event):
        reasons.append(event.reason)

    session.events.subscribe(SessionDisconnectedEvent, on_disconnected)
    await provider.emit_accounts([])

    assert session.status == ConnectionStatus.DISCONNECTED
    assert session.state.is_empty()
    assert provider.events.subscriber_count() == 0
    assert reasons == ["wallet disconnected"]


@pytest.mark.asyncio
async def test_account_switch_to_blocklisted_disconnects():
    session, provider, _ = make_session()
    await session.connect()
    await provider.emit_accounts([MOCK_BLOCKED_ADDRESS])

    assert session.status == ConnectionStatus.DISCONNECTED
    assert session.state.is_empty()
    assert isinstance(session.last_error, SecurityBlockError)


@pytest.mark.asyncio
async def test_account_switch_updates_address_and_cancels_work():
    session, provider, _ = make_session()
    await session.connect()
    old_token = session.cancellation

    await provider.emit_accounts([MOCK_OTHER_ADDRESS])

    assert session.state.address == MOCK_OTHER_ADDRESS
    assert old_token.cancelled
    assert session.is_connected


@pytest.mark.asyncio
async def test_refresh_balances_reads_selected_token_and_holder_flag():
    session, provider, registry = make_session(native_balance_wei=WEI // 2)
    base = registry.get(CHAIN_BASE)
    usdt = base.payment_token("USDT")
    provider.set_call_result(usdt.address, selector_hex(BALANCE_OF_SELECTOR), uint_word(5_000_000))
    provider.set_call_result(base.holder_nft_address, selector_hex(BALANCE_OF_SELECTOR), uint_word(1))

    await session.connect()
    session.select_payment_token("USDT")
    state = await session.refresh_balances()

    assert state.native_balance == Decimal("0.5")
    assert state.erc20_balances == {"USDT": Decimal(5)}
    assert state.is_holder_discount_eligible is True


@pytest.mark.asyncio
async def test_holder_check_skipped_on_chains_without_collection():
    session, provider, registry = make_session(chain_id=CHAIN_ETHEREUM)
    await session.connect()

    nft = registry.get(CHAIN_BASE).holder_nft_address.lower()
    assert all(params[0]["to"].lower() != nft for params in provider.calls("eth_call"))
    assert session.state.is_holder_discount_eligible is False


@pytest.mark.asyncio
async def test_holder_check_falls_back_to_owner_of():
    session, provider, registry = make_session()
    nft = registry.get(CHAIN_BASE).holder_nft_address
    provider.set_call_result(nft, selector_hex(BALANCE_OF_SELECTOR), ProviderRpcError(-32000, "execution reverted"))
    provider.set_call_result(nft, encode_owner_of(3), address_word(MOCK_BUYER_ADDRESS))

    await session.connect()

    assert session.state.is_holder_discount_eligible is True


@pytest.mark.asyncio
async def test_refresh_requires_connection():
    session, _, _ = make_session()
    with pytest.raises(WalletConnectionError):
        await session.refresh_balances()


@pytest.mark.asyncio
async def test_aclose_releases_subscriptions():
    session, provider, _ = make_session()
    async with session:
        await session.connect()
        token = session.cancellation
    assert provider.events.subscriber_count() == 0
    assert token.cancelled
