from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .envelope import InboundMessage

if TYPE_CHECKING:
    from .envelope import RawMessage, SendReceipt

Continuation = Callable[[], None]
ConsumerCallback = Callable[
    [list[InboundMessage], Continuation], Awaitable[Any] | None
]


@runtime_checkable
class ITransportAdapter(Protocol):
    """
    Port for the queue transport (SQS, in-memory, …).

    Every method may raise :class:`~cqrs_ddd_servicebus.exceptions.TransportError`.
    """

    async def send_message(
        self, queue_url: str, body: str, attributes: dict[str, bytes]
    ) -> SendReceipt:
        """
        Send one message.

        Args:
            queue_url: Destination queue.
            body: Text message body.
            attributes: Binary message attributes keyed by name.
        """
        ...

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        visibility_timeout: int,
        wait_time_seconds: int,
    ) -> list[RawMessage]:
        """
        Long-poll for up to *max_messages* messages.

        Returns an empty list when nothing arrived within *wait_time_seconds*.
        """
        ...

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        """Delete a delivered message; fails for invalid or expired handles."""
        ...

    async def health_check(self) -> bool:
        """Return True if the transport is reachable."""
        ...
