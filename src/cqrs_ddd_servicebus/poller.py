"""Poller — self-reinvoking long-poll loop with consumer-driven backpressure."""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING

from .envelope import InboundMessage
from .exceptions import IntegrityError, InvalidArgumentError

if TYPE_CHECKING:
    from .codec import EnvelopeCodec
    from .envelope import RawMessage
    from .ports import ConsumerCallback, ITransportAdapter

logger = logging.getLogger("cqrs_ddd.servicebus.poller")


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


class _Continuation:
    """One-shot resume signal handed to the consumer with each batch."""

    __slots__ = ("_poller", "_used")

    def __init__(self, poller: Poller) -> None:
        self._poller = poller
        self._used = False

    def consume(self) -> bool:
        """Mark as used; return False if it already was."""
        if self._used:
            return False
        self._used = True
        return True

    def __call__(self) -> None:
        if not self.consume():
            logger.warning("Poll continuation invoked more than once; ignored")
            return
        self._poller.request_next_cycle()


class Poller:
    """Receive loop for a single queue.

    Each cycle issues one receive call. What happens next depends on the
    outcome:

    * empty batch — the next cycle is requested immediately (the transport's
      long-poll wait keeps this from spinning);
    * messages — they are decoded and handed to the consumer together with a
      continuation; polling resumes only when the consumer calls it;
    * transport error — the error is logged and the next cycle is requested
      after ``retry_delay`` seconds, forever.

    At most one receive is in flight at a time. The state check and the
    transition to ``POLLING`` in :meth:`request_next_cycle` happen with no
    ``await`` in between, which makes them atomic on the event loop.
    Must be driven from a single event loop thread.
    """

    def __init__(
        self,
        transport: ITransportAdapter,
        codec: EnvelopeCodec,
        queue_url: str,
        *,
        max_messages: int = 10,
        visibility_timeout: int = 60,
        wait_time_seconds: int = 20,
        retry_delay: float = 10.0,
    ) -> None:
        self._transport = transport
        self._codec = codec
        self._queue_url = queue_url
        self._max_messages = max_messages
        self._visibility_timeout = visibility_timeout
        self._wait_time_seconds = wait_time_seconds
        self._retry_delay = retry_delay
        self._consumer: ConsumerCallback | None = None
        self._state = PollState.IDLE
        self._tasks: set[asyncio.Task[None]] = set()
        self._retry_handle: asyncio.TimerHandle | None = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._state is PollState.POLLING

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def set_consumer(self, consumer: ConsumerCallback) -> None:
        """Register the consumer; replaces any previous one."""
        if not callable(consumer):
            raise InvalidArgumentError("No consumer callback provided")
        self._consumer = consumer

    def request_next_cycle(self) -> None:
        """Start a receive unless one is already in flight."""
        if self._state is PollState.POLLING:
            return
        if self._consumer is None:
            raise InvalidArgumentError("Cannot poll without a consumer callback")
        self._state = PollState.POLLING
        self._cancel_retry()
        task = asyncio.get_running_loop().create_task(self._poll())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _poll(self) -> None:
        try:
            raw_messages = await self._transport.receive_messages(
                self._queue_url,
                max_messages=self._max_messages,
                visibility_timeout=self._visibility_timeout,
                wait_time_seconds=self._wait_time_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            self._state = PollState.IDLE
            logger.error(
                "Receive from %s failed: %s; retry in %.1fs",
                self._queue_url,
                exc,
                self._retry_delay,
                exc_info=True,
            )
            self._schedule_retry()
            return

        self._state = PollState.IDLE
        try:
            messages = self._decode_batch(raw_messages)
        except Exception:
            logger.exception(
                "Decoding batch from %s failed; retry in %.1fs",
                self._queue_url,
                self._retry_delay,
            )
            self._schedule_retry()
            return
        if not messages:
            self.request_next_cycle()
            return
        await self._dispatch(messages)

    def _decode_batch(self, raw_messages: list[RawMessage]) -> list[InboundMessage]:
        messages: list[InboundMessage] = []
        for raw in raw_messages:
            try:
                body = self._codec.decode_message(raw)
            except IntegrityError as exc:
                # Left unacknowledged: redelivered after the visibility timeout.
                logger.warning(
                    "Dropping message %s from %s: %s",
                    raw.message_id,
                    self._queue_url,
                    exc,
                )
                continue
            messages.append(
                InboundMessage(
                    message_id=raw.message_id,
                    receipt_handle=raw.receipt_handle,
                    body=body,
                )
            )
        return messages

    async def _dispatch(self, messages: list[InboundMessage]) -> None:
        consumer = self._consumer
        # request_next_cycle refuses to start a cycle without a consumer
        assert consumer is not None
        done = _Continuation(self)
        logger.debug(
            "Dispatching %d message(s) from %s", len(messages), self._queue_url
        )
        try:
            result = consumer(messages, done)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Consumer failed handling batch from %s", self._queue_url)
            if done.consume():
                self._schedule_retry()

    def _schedule_retry(self) -> None:
        self._cancel_retry()
        self._retry_handle = asyncio.get_running_loop().call_later(
            self._retry_delay, self._retry
        )

    def _retry(self) -> None:
        self._retry_handle = None
        self.request_next_cycle()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
