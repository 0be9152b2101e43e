"""Initial broker connection with exponential backoff.

Once connected, paho's network loop takes over reconnection (see
``MQTTClient``); this module only covers the window before the first CONNACK,
when the broker may simply not be up yet.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .adapters.mqtt import MQTTClient
    from .config import ResilienceConfig

LOGGER = logging.getLogger(__name__)


def backoff_delay(delay: float, jitter_ratio: float) -> float:
    """Apply symmetric jitter to ``delay``."""

    if jitter_ratio <= 0.0:
        return delay
    jitter = delay * jitter_ratio
    lower = max(0.1, delay - jitter)
    upper = delay + jitter
    return random.uniform(lower, upper)


async def connect_with_backoff(
    mqtt_client: MQTTClient,
    resilience: ResilienceConfig,
    stop_event: asyncio.Event,
    *,
    max_attempts: Optional[int] = None,
) -> bool:
    """Attempt connection until it succeeds, ``stop_event`` is set or attempts run out.

    Returns:
        True if connection succeeded, False otherwise.
    """
    delay = max(0.1, resilience.reconnect_initial_seconds)
    max_delay = max(delay, resilience.reconnect_max_seconds)
    jitter_ratio = max(0.0, min(1.0, resilience.reconnect_jitter_ratio))

    attempt = 0
    while not stop_event.is_set():
        if max_attempts is not None and attempt >= max_attempts:
            break
        attempt += 1

        try:
            LOGGER.debug("MQTT connection attempt %d", attempt)
            await mqtt_client.connect(timeout=resilience.connect_timeout_seconds)
            return True
        except Exception as exc:
            sleep_for = backoff_delay(delay, jitter_ratio)
            LOGGER.warning(
                "Connection attempt %d failed: %s, retrying in %.1fs",
                attempt,
                exc,
                sleep_for,
            )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=sleep_for)
            break
        except asyncio.TimeoutError:
            pass

        delay = min(delay * 2, max_delay)

    return False
