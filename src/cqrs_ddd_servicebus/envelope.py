"""Wire and delivery models — immutable pydantic wrappers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Envelope(BaseModel):
    """Compressed payload paired with the digest of its uncompressed bytes.

    ``content_digest`` doubles as an idempotent identifier and as the
    integrity check performed on receipt.
    """

    model_config = ConfigDict(frozen=True)

    payload_bytes: bytes
    content_digest: str = Field(..., min_length=1)
    message_id: str | None = None


class InboundMessage(BaseModel):
    """Decoded message handed to the subscriber.

    ``receipt_handle`` is single-use: once acknowledged it must not be reused.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str
    receipt_handle: str
    body: Any = None


class RawMessage(BaseModel):
    """Message as returned by a transport receive call."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    receipt_handle: str
    body: str = ""
    attributes: dict[str, bytes] = Field(default_factory=dict)
    md5_of_body: str | None = None


class SendReceipt(BaseModel):
    """Transport acknowledgement of a sent message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    md5_of_body: str | None = None
