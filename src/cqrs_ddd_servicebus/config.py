"""BusConfiguration — immutable, eagerly validated bus settings."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import InvalidArgumentError

# Required fields and the message reported when one is missing.
_REQUIRED: dict[str, str] = {
    "access_key_id": "No AWS 'access_key_id' provided",
    "secret_access_key": "No AWS 'secret_access_key' provided",
    "region": "No AWS 'region' provided",
    "pub_queue_url": "No AWS SQS 'pub_queue_url' provided",
    "sub_queue_url": "No AWS SQS 'sub_queue_url' provided",
}

_ENV_VARS: dict[str, str] = {
    "access_key_id": "AWS_ACCESS_KEY_ID",
    "secret_access_key": "AWS_SECRET_ACCESS_KEY",
    "region": "AWS_SQS_REGION",
    "pub_queue_url": "AWS_SQS_PUB_QUEUE_URL",
    "sub_queue_url": "AWS_SQS_SUB_QUEUE_URL",
}


class BusConfiguration(BaseModel):
    """Credentials, region and queue identities for one bus instance.

    Every required field must be present and non-empty; a missing one raises
    :class:`InvalidArgumentError` at construction, before any I/O.
    Polling tunables default to the values the bus was designed around.
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str = Field(..., repr=False)
    region: str
    pub_queue_url: str
    sub_queue_url: str
    endpoint_url: str | None = None

    max_messages: int = Field(default=10, ge=1, le=10)
    visibility_timeout: int = Field(default=60, ge=0, le=43200)
    wait_time_seconds: int = Field(default=20, ge=0, le=20)
    retry_delay: float = Field(default=10.0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _require_fields(cls, data: Any) -> Any:
        if data is None:
            raise InvalidArgumentError("No options provided")
        if not isinstance(data, dict):
            return data
        for field, message in _REQUIRED.items():
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidArgumentError(message)
        return data

    @classmethod
    def from_env(cls, **overrides: Any) -> BusConfiguration:
        """Build from the ``AWS_*`` environment variables, then *overrides*."""
        data: dict[str, Any] = {
            field: os.environ.get(var) for field, var in _ENV_VARS.items()
        }
        data.update(overrides)
        return cls(**data)
