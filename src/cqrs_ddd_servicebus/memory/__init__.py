"""In-memory transport for testing."""

from __future__ import annotations

from .transport import InMemoryTransport

__all__ = [
    "InMemoryTransport",
]
