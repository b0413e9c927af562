"""SQS client management."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from aiobotocore.session import AioSession
from botocore.exceptions import BotoCoreError

from ..exceptions import TransportError

if TYPE_CHECKING:
    from ..config import BusConfiguration

logger = logging.getLogger("cqrs_ddd.servicebus.sqs")


class SQSConnectionManager:
    """Owns one aiobotocore SQS client shared by publishing and polling.

    The client is opened on first use. Publishing and the poll loop may ask
    for it concurrently, so creation is serialized by a lock and happens once.
    """

    def __init__(
        self,
        region_name: str = "us-east-1",
        *,
        session: AioSession | None = None,
        **client_kwargs: Any,
    ) -> None:
        """Configure region and optional session/client kwargs."""
        self._region = region_name
        self._session = session or AioSession()
        self._client_kwargs = client_kwargs
        self._client: Any = None
        self._client_cm: Any = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_configuration(
        cls, configuration: BusConfiguration, *, session: AioSession | None = None
    ) -> SQSConnectionManager:
        """Build a manager carrying the bus credentials and endpoint."""
        client_kwargs: dict[str, Any] = {
            "aws_access_key_id": configuration.access_key_id,
            "aws_secret_access_key": configuration.secret_access_key,
        }
        if configuration.endpoint_url:
            client_kwargs["endpoint_url"] = configuration.endpoint_url
        return cls(configuration.region, session=session, **client_kwargs)

    async def get_client(self) -> Any:
        """Return the shared SQS client, opening it on first call.

        Raises:
            TransportError: if the client cannot be created.
        """
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                try:
                    client_cm = self._session.create_client(
                        "sqs",
                        region_name=self._region,
                        **self._client_kwargs,
                    )
                    self._client = await client_cm.__aenter__()
                except BotoCoreError as e:
                    raise TransportError(str(e)) from e
                self._client_cm = client_cm
                logger.debug("Opened SQS client (region=%s)", self._region)
        return self._client

    async def close(self) -> None:
        """Close the client if open."""
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
            self._client_cm = None
            self._client = None
            logger.debug("Closed SQS client (region=%s)", self._region)

    async def health_check(self) -> bool:
        """Return True if we can list queues (lightweight check)."""
        try:
            client = await self.get_client()
            await client.list_queues(MaxResults=1)
            return True
        except Exception as e:  # noqa: BLE001
            logger.warning("SQS health check failed: %s", e)
            return False
