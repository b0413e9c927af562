"""Point-to-point service bus over SQS — publish, subscribe, acknowledge."""

from __future__ import annotations

from .bus import ServiceBus
from .codec import EnvelopeCodec
from .config import BusConfiguration
from .envelope import Envelope, InboundMessage, RawMessage, SendReceipt
from .exceptions import (
    IntegrityError,
    InvalidArgumentError,
    InvalidPayloadError,
    ServiceBusError,
    TransportError,
)
from .memory import InMemoryTransport
from .poller import Poller, PollState
from .ports import ITransportAdapter

__all__ = [
    "BusConfiguration",
    "Envelope",
    "EnvelopeCodec",
    "ITransportAdapter",
    "InMemoryTransport",
    "InboundMessage",
    "IntegrityError",
    "InvalidArgumentError",
    "InvalidPayloadError",
    "PollState",
    "Poller",
    "RawMessage",
    "SendReceipt",
    "ServiceBus",
    "ServiceBusError",
    "TransportError",
]
