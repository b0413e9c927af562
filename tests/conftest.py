"""Pytest fixtures for service-bus tests."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

# Ensure the package is importable when running pytest from the repo root
# without ``pip install -e .``
_src = Path(__file__).resolve().parent.parent / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from cqrs_ddd_servicebus.codec import EnvelopeCodec, md5_hex  # noqa: E402
from cqrs_ddd_servicebus.envelope import RawMessage  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Callable

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123/bus-queue"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def options() -> dict[str, Any]:
    return {
        "access_key_id": "AKIDEXAMPLE",
        "secret_access_key": "secret",
        "region": "us-east-1",
        "pub_queue_url": QUEUE_URL,
        "sub_queue_url": QUEUE_URL,
        "wait_time_seconds": 1,
        "retry_delay": 0.05,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec() -> EnvelopeCodec:
    return EnvelopeCodec()


@pytest.fixture
def make_raw(codec: EnvelopeCodec) -> Callable[..., RawMessage]:
    """Build a well-formed received message carrying *payload*."""

    def _make(payload: Any, message_id: str = "m-1") -> RawMessage:
        body, attributes = codec.to_wire(codec.encode(payload))
        return RawMessage(
            message_id=message_id,
            receipt_handle=f"rh-{message_id}",
            body=body,
            attributes=attributes,
            md5_of_body=md5_hex(body),
        )

    return _make


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """Await until *predicate* holds, failing after *timeout* seconds."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met within timeout")
            await asyncio.sleep(0.005)

    return _wait
