"""
Test suite for the event bus, subscriptions and cancellation tokens.
"""
import asyncio

import pytest

import test_mocks  # noqa: F401  (puts src on sys.path)

from presale_client.engine.cancellation import CancellationToken
from presale_client.engine.events import ChainChangedEvent, EventBus, SessionReloadEvent
from presale_client.engine.exceptions import OperationCancelledError


@pytest.mark.asyncio
async def test_publish_reaches_only_matching_subscribers():
    bus = EventBus()
    received = []

    async def on_chain(event):
        received.append(event.chain_id)

    async def on_reload(event):
        received.append("reload")

    bus.subscribe(ChainChangedEvent, on_chain)
    bus.subscribe(SessionReloadEvent, on_reload)
    await bus.publish(ChainChangedEvent(chain_id=56))

    assert received == [56]


@pytest.mark.asyncio
async def test_dispose_removes_handler_and_is_idempotent():
    bus = EventBus()
    received = []

    async def handler(event):
        received.append(event)

    subscription = bus.subscribe(ChainChangedEvent, handler)
    assert bus.subscriber_count(ChainChangedEvent) == 1
    subscription.dispose()
    subscription.dispose()
    assert not subscription.active
    assert bus.subscriber_count() == 0

    await bus.publish(ChainChangedEvent(chain_id=1))
    assert received == []


@pytest.mark.asyncio
async def test_subscription_context_manager():
    bus = EventBus()

    async def handler(event):
        pass

    with bus.subscribe(ChainChangedEvent, handler):
        assert bus.subscriber_count(ChainChangedEvent) == 1
    assert bus.subscriber_count(ChainChangedEvent) == 0


def test_sync_handler_rejected():
    bus = EventBus()
    with pytest.raises(TypeError):
        bus.subscribe(ChainChangedEvent, lambda event: None)


@pytest.mark.asyncio
async def test_handler_error_propagates_after_all_handlers_run():
    bus = EventBus()
    received = []

    async def failing(event):
        raise RuntimeError("boom")

    async def ok(event):
        received.append(event.chain_id)

    bus.subscribe(ChainChangedEvent, failing)
    bus.subscribe(ChainChangedEvent, ok)
    with pytest.raises(RuntimeError):
        await bus.publish(ChainChangedEvent(chain_id=1))
    assert received == [1]


@pytest.mark.asyncio
async def test_cancellation_interrupts_sleep():
    token = CancellationToken()
    task = asyncio.create_task(token.sleep(30))
    await asyncio.sleep(0)
    token.cancel("chain changed")

    with pytest.raises(OperationCancelledError):
        await asyncio.wait_for(task, timeout=1)
    assert token.cancelled
    assert token.reason == "chain changed"


@pytest.mark.asyncio
async def test_sleep_returns_when_not_cancelled():
    token = CancellationToken()
    await token.sleep(0.01)
    await token.sleep(0)
    assert not token.cancelled


def test_first_cancel_reason_wins():
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")
    assert token.reason == "first"
    with pytest.raises(OperationCancelledError):
        token.raise_if_cancelled()
