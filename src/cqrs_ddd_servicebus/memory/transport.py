"""InMemoryTransport — ITransportAdapter with SQS-like semantics for tests."""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..codec import md5_hex
from ..envelope import RawMessage, SendReceipt
from ..exceptions import TransportError
from ..ports import ITransportAdapter

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    attributes: dict[str, bytes]
    visible_at: float = 0.0
    receipt_handle: str | None = None
    receive_count: int = 0


@dataclass
class _Queue:
    messages: list[_StoredMessage] = field(default_factory=list)
    changed: asyncio.Condition = field(default_factory=asyncio.Condition)


class InMemoryTransport(ITransportAdapter):
    """In-process queues keyed by URL, created on first use.

    Mirrors the parts of SQS the bus relies on: long-poll waits, visibility
    timeouts with redelivery, single-use receipt handles (a new one per
    delivery; expired handles are rejected) and MD5 body digests.
    Pass ``clock`` to control visibility expiry in tests.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._queues: dict[str, _Queue] = {}

    def _queue(self, queue_url: str) -> _Queue:
        return self._queues.setdefault(queue_url, _Queue())

    async def send_message(
        self, queue_url: str, body: str, attributes: dict[str, bytes]
    ) -> SendReceipt:
        queue = self._queue(queue_url)
        stored = _StoredMessage(
            message_id=str(uuid.uuid4()),
            body=body,
            attributes=dict(attributes),
        )
        async with queue.changed:
            queue.messages.append(stored)
            queue.changed.notify_all()
        return SendReceipt(message_id=stored.message_id, md5_of_body=md5_hex(body))

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        visibility_timeout: int,
        wait_time_seconds: int,
    ) -> list[RawMessage]:
        queue = self._queue(queue_url)
        deadline = self._clock() + wait_time_seconds
        async with queue.changed:
            while True:
                batch = self._take_visible(queue, max_messages, visibility_timeout)
                if batch:
                    return batch
                remaining = deadline - self._clock()
                if remaining <= 0:
                    return []
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(
                        queue.changed.wait(),
                        timeout=min(remaining, self._until_next_visible(queue)),
                    )

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        queue = self._queue(queue_url)
        now = self._clock()
        for stored in queue.messages:
            if stored.receipt_handle == receipt_handle:
                if stored.visible_at <= now:
                    raise TransportError(
                        f"Receipt handle has expired: {receipt_handle}"
                    )
                queue.messages.remove(stored)
                return
        raise TransportError(f"Receipt handle is invalid: {receipt_handle}")

    async def health_check(self) -> bool:
        return True

    # ── Test helpers ─────────────────────────────────────────────────

    def pending(self, queue_url: str) -> list[RawMessage]:
        """Snapshot of every message still on the queue, visible or not."""
        return [
            RawMessage(
                message_id=stored.message_id,
                receipt_handle=stored.receipt_handle or "",
                body=stored.body,
                attributes=dict(stored.attributes),
                md5_of_body=md5_hex(stored.body),
            )
            for stored in self._queue(queue_url).messages
        ]

    def receive_count(self, queue_url: str, message_id: str) -> int:
        """Number of times a message has been delivered."""
        for stored in self._queue(queue_url).messages:
            if stored.message_id == message_id:
                return stored.receive_count
        raise KeyError(message_id)

    def overwrite_attribute(
        self, queue_url: str, message_id: str, name: str, value: bytes
    ) -> None:
        """Replace a stored attribute in place (simulates in-transit corruption)."""
        for stored in self._queue(queue_url).messages:
            if stored.message_id == message_id:
                stored.attributes[name] = value
                return
        raise KeyError(message_id)

    # ── Internals ────────────────────────────────────────────────────

    def _take_visible(
        self, queue: _Queue, max_messages: int, visibility_timeout: int
    ) -> list[RawMessage]:
        now = self._clock()
        batch: list[RawMessage] = []
        for stored in queue.messages:
            if len(batch) >= max_messages:
                break
            if stored.visible_at > now:
                continue
            stored.receipt_handle = str(uuid.uuid4())
            stored.visible_at = now + visibility_timeout
            stored.receive_count += 1
            batch.append(
                RawMessage(
                    message_id=stored.message_id,
                    receipt_handle=stored.receipt_handle,
                    body=stored.body,
                    attributes=dict(stored.attributes),
                    md5_of_body=md5_hex(stored.body),
                )
            )
        return batch

    def _until_next_visible(self, queue: _Queue) -> float:
        now = self._clock()
        hidden = [s.visible_at - now for s in queue.messages if s.visible_at > now]
        return min(hidden, default=float("inf"))
