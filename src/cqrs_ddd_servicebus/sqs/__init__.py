"""SQS transport adapter (aiobotocore)."""

from __future__ import annotations

from .connection import SQSConnectionManager
from .transport import SQSTransport

__all__ = [
    "SQSConnectionManager",
    "SQSTransport",
]
