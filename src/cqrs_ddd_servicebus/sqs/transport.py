"""SQSTransport — ITransportAdapter over aiobotocore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from ..codec import DATA_ATTRIBUTE
from ..envelope import RawMessage, SendReceipt
from ..exceptions import TransportError
from ..ports import ITransportAdapter

if TYPE_CHECKING:
    from .connection import SQSConnectionManager

logger = logging.getLogger("cqrs_ddd.servicebus.sqs")


def _binary_attributes(message: dict[str, Any]) -> dict[str, bytes]:
    """Extract binary message attributes from a received SQS message."""
    attributes: dict[str, bytes] = {}
    for name, attr in (message.get("MessageAttributes") or {}).items():
        value = attr.get("BinaryValue")
        if attr.get("DataType", "").startswith("Binary") and value is not None:
            attributes[name] = value
    return attributes


class SQSTransport(ITransportAdapter):
    """SQS adapter implementing ITransportAdapter.

    Binary attributes travel as SQS message attributes of type ``Binary``.
    botocore failures surface as :class:`TransportError` with the original
    exception chained.
    """

    def __init__(self, connection: SQSConnectionManager) -> None:
        self._connection = connection

    @property
    def connection(self) -> SQSConnectionManager:
        return self._connection

    async def send_message(
        self, queue_url: str, body: str, attributes: dict[str, bytes]
    ) -> SendReceipt:
        try:
            client = await self._connection.get_client()
            out = await client.send_message(
                QueueUrl=queue_url,
                MessageBody=body,
                DelaySeconds=0,
                MessageAttributes={
                    name: {"DataType": "Binary", "BinaryValue": value}
                    for name, value in attributes.items()
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(str(e)) from e
        return SendReceipt(
            message_id=str(out["MessageId"]),
            md5_of_body=out.get("MD5OfMessageBody"),
        )

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        visibility_timeout: int,
        wait_time_seconds: int,
    ) -> list[RawMessage]:
        try:
            client = await self._connection.get_client()
            out = await client.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                VisibilityTimeout=visibility_timeout,
                WaitTimeSeconds=wait_time_seconds,
                MessageAttributeNames=[DATA_ATTRIBUTE],
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(str(e)) from e
        messages = [
            RawMessage(
                message_id=str(msg["MessageId"]),
                receipt_handle=str(msg["ReceiptHandle"]),
                body=msg.get("Body", ""),
                attributes=_binary_attributes(msg),
                md5_of_body=msg.get("MD5OfBody"),
            )
            for msg in out.get("Messages") or []
        ]
        logger.debug("Received %d message(s) from %s", len(messages), queue_url)
        return messages

    async def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        try:
            client = await self._connection.get_client()
            await client.delete_message(
                QueueUrl=queue_url,
                ReceiptHandle=receipt_handle,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(str(e)) from e

    async def health_check(self) -> bool:
        """Return True if SQS is reachable."""
        return await self._connection.health_check()
