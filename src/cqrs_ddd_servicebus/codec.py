"""EnvelopeCodec — serialize, digest, compress (and the reverse, verified)."""

from __future__ import annotations

import hashlib
import json
import zlib
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from .envelope import Envelope, RawMessage
from .exceptions import IntegrityError, InvalidPayloadError

DATA_ATTRIBUTE = "data"


def md5_hex(data: bytes | str) -> str:
    """Hex MD5 of *data*; strings are hashed as UTF-8."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


class EnvelopeCodec:
    """Turn application payloads into :class:`Envelope` objects and back.

    The digest is computed over the *uncompressed* serialized bytes, so the
    compression format can change without touching the integrity check, and
    corruption introduced in transit or by (de)compression is caught alike.

    Payloads must be structured: a mapping, a list, or a pydantic model
    (dumped in JSON mode). Serialization is canonical JSON (sorted keys,
    compact separators, UTF-8), so equal payloads produce equal digests.
    """

    def __init__(self, *, compression_level: int = 9) -> None:
        if not 0 <= compression_level <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        self._compression_level = compression_level

    def serialize(self, payload: Any) -> bytes:
        """Canonical JSON bytes for *payload*."""
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json")
        if isinstance(payload, Mapping):
            payload = dict(payload)
        elif not isinstance(payload, list):
            raise InvalidPayloadError(
                f"Payload must be a mapping, list or pydantic model, "
                f"got {type(payload).__name__}"
            )
        try:
            return json.dumps(
                payload,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            ).encode("utf-8")
        except (TypeError, ValueError, RecursionError) as e:
            raise InvalidPayloadError(str(e)) from e

    def digest(self, payload: Any) -> str:
        """Content digest *payload* would be published under."""
        return md5_hex(self.serialize(payload))

    def encode(self, payload: Any) -> Envelope:
        """Serialize, digest and compress *payload*."""
        raw = self.serialize(payload)
        return Envelope(
            payload_bytes=zlib.compress(raw, self._compression_level),
            content_digest=md5_hex(raw),
        )

    def decode(self, envelope: Envelope) -> Any:
        """Decompress, verify and deserialize *envelope*.

        Raises:
            IntegrityError: on corrupt compressed data, digest mismatch, or
                bytes that do not deserialize.
        """
        decompressor = zlib.decompressobj()
        try:
            raw = decompressor.decompress(envelope.payload_bytes)
        except zlib.error as e:
            raise IntegrityError(
                f"Payload failed to decompress: {e}", envelope.message_id
            ) from e
        if not decompressor.eof or decompressor.unused_data:
            raise IntegrityError(
                "Payload is truncated or has trailing data", envelope.message_id
            )
        if md5_hex(raw) != envelope.content_digest:
            raise IntegrityError("Payload digest mismatch", envelope.message_id)
        try:
            return json.loads(raw.decode("utf-8"))
        except (ValueError, RecursionError) as e:
            raise IntegrityError(
                f"Payload failed to deserialize: {e}", envelope.message_id
            ) from e

    # ── Wire framing ─────────────────────────────────────────────────

    @staticmethod
    def to_wire(envelope: Envelope) -> tuple[str, dict[str, bytes]]:
        """Message body (the digest) and binary attributes (the payload)."""
        return envelope.content_digest, {DATA_ATTRIBUTE: envelope.payload_bytes}

    @staticmethod
    def from_wire(message: RawMessage) -> Envelope:
        """Rebuild an :class:`Envelope` from a received message.

        Checks the transport's body digest when the transport reports one.
        """
        if message.md5_of_body is not None and message.md5_of_body != md5_hex(
            message.body
        ):
            raise IntegrityError("Message body MD5 mismatch", message.message_id)
        payload = message.attributes.get(DATA_ATTRIBUTE)
        if not payload or not message.body:
            raise IntegrityError("Message has invalid payload", message.message_id)
        return Envelope(
            payload_bytes=payload,
            content_digest=message.body,
            message_id=message.message_id,
        )

    def decode_message(self, message: RawMessage) -> Any:
        """Shorthand for ``decode(from_wire(message))``."""
        return self.decode(self.from_wire(message))
