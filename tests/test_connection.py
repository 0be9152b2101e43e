import asyncio

import pytest

from airgradient2mqtt.adapters import MQTTConnectionError
from airgradient2mqtt.config import ResilienceConfig
from airgradient2mqtt.connection import backoff_delay, connect_with_backoff


class _FlakyClient:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.attempts = 0
        self.timeouts: list[float] = []

    async def connect(self, timeout: float = 30.0) -> None:
        self.attempts += 1
        self.timeouts.append(timeout)
        if self.attempts <= self.failures:
            raise MQTTConnectionError("broker unavailable")


def _resilience() -> ResilienceConfig:
    return ResilienceConfig(
        reconnect_initial_seconds=0.1,
        reconnect_max_seconds=0.2,
        reconnect_jitter_ratio=0.0,
        connect_timeout_seconds=5.0,
    )


@pytest.mark.asyncio
async def test_connect_retries_until_success():
    client = _FlakyClient(failures=2)

    connected = await connect_with_backoff(client, _resilience(), asyncio.Event())

    assert connected is True
    assert client.attempts == 3
    assert client.timeouts == [5.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_connect_gives_up_after_max_attempts():
    client = _FlakyClient(failures=10)

    connected = await connect_with_backoff(
        client, _resilience(), asyncio.Event(), max_attempts=2
    )

    assert connected is False
    assert client.attempts == 2


@pytest.mark.asyncio
async def test_stop_event_aborts_retries():
    client = _FlakyClient(failures=10)
    stop_event = asyncio.Event()
    stop_event.set()

    connected = await connect_with_backoff(client, _resilience(), stop_event)

    assert connected is False
    assert client.attempts == 0


def test_backoff_delay_applies_jitter_bounds():
    assert backoff_delay(2.0, 0.0) == 2.0
    for _ in range(50):
        assert 1.0 <= backoff_delay(2.0, 0.5) <= 3.0
