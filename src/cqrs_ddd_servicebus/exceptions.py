"""Service-bus exceptions."""

from __future__ import annotations


class ServiceBusError(Exception):
    """Root exception for cqrs-ddd-servicebus."""


class InvalidArgumentError(ServiceBusError):
    """Raised for bad configuration or bad call arguments.

    Always surfaced synchronously at the call site; never retried.
    """


class InvalidPayloadError(ServiceBusError):
    """Raised when a payload cannot be serialized for publishing."""


class IntegrityError(ServiceBusError):
    """Raised when a payload fails digest verification or cannot be decoded."""

    def __init__(self, message: str, message_id: str | None = None) -> None:
        self.message_id = message_id
        super().__init__(message)


class TransportError(ServiceBusError):
    """Raised when the underlying queue transport fails (network, service, auth)."""
