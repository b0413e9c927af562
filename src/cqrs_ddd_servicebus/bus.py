"""ServiceBus — publish / subscribe / acknowledge over a pair of queues."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .codec import EnvelopeCodec, md5_hex
from .config import BusConfiguration
from .envelope import InboundMessage
from .exceptions import IntegrityError, InvalidArgumentError
from .poller import Poller
from .sqs import SQSConnectionManager, SQSTransport

if TYPE_CHECKING:
    from .ports import ConsumerCallback, ITransportAdapter

logger = logging.getLogger("cqrs_ddd.servicebus.bus")


def _coerce_configuration(
    configuration: BusConfiguration | Mapping[str, Any] | None,
) -> BusConfiguration:
    if isinstance(configuration, BusConfiguration):
        return configuration
    if configuration is None:
        raise InvalidArgumentError("No options provided")
    if not isinstance(configuration, Mapping):
        raise InvalidArgumentError(
            f"Options must be a BusConfiguration or a mapping, "
            f"got {type(configuration).__name__}"
        )
    try:
        return BusConfiguration(**configuration)
    except ValidationError as e:
        raise InvalidArgumentError(str(e)) from e


class ServiceBus:
    """Point-to-point bus: publish to one queue, consume from another.

    Payloads are framed by :class:`EnvelopeCodec` (digest + compression).
    Consumption is driven by a :class:`Poller`; the consumer receives each
    batch with a ``done`` callable and must call it once to resume polling.
    Messages are never acknowledged automatically.

    The default transport is SQS; pass ``transport`` to use another
    :class:`~cqrs_ddd_servicebus.ports.ITransportAdapter`.
    """

    def __init__(
        self,
        configuration: BusConfiguration | Mapping[str, Any] | None,
        *,
        transport: ITransportAdapter | None = None,
        codec: EnvelopeCodec | None = None,
    ) -> None:
        """Validate *configuration* and wire the bus; performs no I/O.

        Raises:
            InvalidArgumentError: if any required setting is missing.
        """
        self._configuration = _coerce_configuration(configuration)
        self._codec = codec or EnvelopeCodec()
        if transport is None:
            transport = SQSTransport(
                SQSConnectionManager.from_configuration(self._configuration)
            )
        self._transport = transport
        self._poller = Poller(
            transport,
            self._codec,
            self._configuration.sub_queue_url,
            max_messages=self._configuration.max_messages,
            visibility_timeout=self._configuration.visibility_timeout,
            wait_time_seconds=self._configuration.wait_time_seconds,
            retry_delay=self._configuration.retry_delay,
        )
        self._subscribed = False

    @property
    def configuration(self) -> BusConfiguration:
        return self._configuration

    @property
    def transport(self) -> ITransportAdapter:
        return self._transport

    @property
    def poller(self) -> Poller:
        return self._poller

    def hash(self, payload: Any) -> str:
        """Content digest *payload* would be published under."""
        return self._codec.digest(payload)

    async def publish(self, payload: Any) -> str:
        """Encode *payload*, send it to the publish queue and return its message id.

        Raises:
            InvalidPayloadError: if the payload cannot be serialized.
            IntegrityError: if the transport's digest of the sent body differs.
            TransportError: if the send fails.
        """
        envelope = self._codec.encode(payload)
        body, attributes = self._codec.to_wire(envelope)
        receipt = await self._transport.send_message(
            self._configuration.pub_queue_url, body, attributes
        )
        if receipt.md5_of_body != md5_hex(body):
            raise IntegrityError("Message body MD5 mismatch", receipt.message_id)
        logger.debug(
            "Published %s (digest %s) to %s",
            receipt.message_id,
            envelope.content_digest,
            self._configuration.pub_queue_url,
        )
        return receipt.message_id

    async def subscribe(self, consumer: ConsumerCallback) -> None:
        """Register *consumer* (replacing any previous one) and start polling."""
        self._poller.set_consumer(consumer)
        if self._subscribed:
            logger.info("Consumer replaced on %s", self._configuration.sub_queue_url)
        else:
            logger.info("Subscribed to %s", self._configuration.sub_queue_url)
        self._subscribed = True
        self._poller.request_next_cycle()

    async def acknowledge(self, message: InboundMessage) -> None:
        """Delete *message* from the subscribe queue.

        Raises:
            InvalidArgumentError: if *message* carries no receipt handle.
            TransportError: if the handle is invalid, already used or expired.
        """
        if not isinstance(message, InboundMessage) or not message.receipt_handle:
            raise InvalidArgumentError("Message has no receipt handle")
        await self._transport.delete_message(
            self._configuration.sub_queue_url, message.receipt_handle
        )
        logger.debug("Acknowledged %s", message.message_id)

    async def health_check(self) -> bool:
        """Return True if the transport is reachable."""
        return await self._transport.health_check()
