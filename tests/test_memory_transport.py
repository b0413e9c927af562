"""Tests for InMemoryTransport queue semantics."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from cqrs_ddd_servicebus.codec import md5_hex
from cqrs_ddd_servicebus.exceptions import TransportError
from cqrs_ddd_servicebus.memory import InMemoryTransport
from cqrs_ddd_servicebus.ports import ITransportAdapter

QUEUE = "memory://queue"


async def _receive(
    transport: InMemoryTransport, *, max_messages: int = 10, wait: int = 0
) -> Any:
    return await transport.receive_messages(
        QUEUE,
        max_messages=max_messages,
        visibility_timeout=30,
        wait_time_seconds=wait,
    )


@pytest.mark.asyncio
async def test_send_reports_body_md5(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    receipt = await transport.send_message(QUEUE, "body", {"data": b"x"})
    assert receipt.md5_of_body == md5_hex("body")
    assert receipt.message_id


@pytest.mark.asyncio
async def test_received_message_is_hidden_until_visibility_expires(
    clock: Any,
) -> None:
    transport = InMemoryTransport(clock=clock)
    await transport.send_message(QUEUE, "body", {"data": b"x"})

    first = await _receive(transport)
    assert len(first) == 1
    assert first[0].body == "body"
    assert first[0].attributes == {"data": b"x"}
    assert first[0].md5_of_body == md5_hex("body")
    assert await _receive(transport) == []

    clock.advance(31)
    second = await _receive(transport)
    assert [m.message_id for m in second] == [first[0].message_id]
    assert second[0].receipt_handle != first[0].receipt_handle
    assert transport.receive_count(QUEUE, first[0].message_id) == 2


@pytest.mark.asyncio
async def test_delete_with_receipt_handle(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    await transport.send_message(QUEUE, "body", {})
    [message] = await _receive(transport)
    await transport.delete_message(QUEUE, message.receipt_handle)
    assert transport.pending(QUEUE) == []
    clock.advance(31)
    assert await _receive(transport) == []


@pytest.mark.asyncio
async def test_delete_rejects_unknown_handle(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    with pytest.raises(TransportError, match="invalid"):
        await transport.delete_message(QUEUE, "nope")


@pytest.mark.asyncio
async def test_delete_rejects_expired_and_superseded_handles(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    await transport.send_message(QUEUE, "body", {})
    [first] = await _receive(transport)

    clock.advance(31)
    with pytest.raises(TransportError, match="expired"):
        await transport.delete_message(QUEUE, first.receipt_handle)

    [second] = await _receive(transport)
    with pytest.raises(TransportError, match="invalid"):
        await transport.delete_message(QUEUE, first.receipt_handle)
    await transport.delete_message(QUEUE, second.receipt_handle)


@pytest.mark.asyncio
async def test_max_messages_respected(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    for i in range(3):
        await transport.send_message(QUEUE, f"b{i}", {})
    batch = await _receive(transport, max_messages=2)
    assert [m.body for m in batch] == ["b0", "b1"]
    assert [m.body for m in await _receive(transport)] == ["b2"]


@pytest.mark.asyncio
async def test_long_poll_wakes_on_send() -> None:
    transport = InMemoryTransport()
    waiting = asyncio.create_task(_receive(transport, wait=5))
    await asyncio.sleep(0.01)
    assert not waiting.done()
    await transport.send_message(QUEUE, "late", {})
    batch = await asyncio.wait_for(waiting, timeout=1.0)
    assert [m.body for m in batch] == ["late"]


@pytest.mark.asyncio
async def test_long_poll_returns_empty_after_wait() -> None:
    transport = InMemoryTransport()
    assert await _receive(transport, wait=0) == []


@pytest.mark.asyncio
async def test_overwrite_attribute(clock: Any) -> None:
    transport = InMemoryTransport(clock=clock)
    receipt = await transport.send_message(QUEUE, "body", {"data": b"x"})
    transport.overwrite_attribute(QUEUE, receipt.message_id, "data", b"y")
    assert transport.pending(QUEUE)[0].attributes == {"data": b"y"}
    with pytest.raises(KeyError):
        transport.overwrite_attribute(QUEUE, "missing", "data", b"y")


@pytest.mark.asyncio
async def test_health_check_and_protocol() -> None:
    transport = InMemoryTransport()
    assert await transport.health_check() is True
    assert isinstance(transport, ITransportAdapter)
