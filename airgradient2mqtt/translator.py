"""Translation between the AirGradient polling protocol and MQTT topics.

The translator is transport-free: it turns measurement bodies into
:class:`BusMessage` records, turns command-topic messages into queued device
commands, and decides when Home Assistant discovery metadata is due again.
Publishing the returned messages is left to the caller.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import constants
from .core.command_queue import CommandQueueManager
from .core.discovery import (
    BUTTON_ENTITIES,
    CHANNEL_ENTITIES,
    IGNORED_CHANNEL_KEYS,
    IGNORED_KEYS,
    MEASUREMENT_ENTITIES,
    build_config_message,
)
from .core.models import BusMessage, QueuedCommand

LOGGER = logging.getLogger(__name__)

CHANNELS_KEY = "channels"

# command topic target -> device command builder
COMMAND_BUILDERS: Mapping[str, Callable[[str], str]] = {
    "rgb_bri": lambda message: f"CMD_RGB_BRI_{message}",
    "oled_bri": lambda message: f"CMD_OLED_BRI_{message}",
    "do_reboot": lambda _message: "CMD_REBOOT",
    "do_reset_wifi": lambda _message: "CMD_RESET_WIFI",
}


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float))


def format_value(value: Union[str, int, float]) -> str:
    """Render a scalar the way it appears in the device's JSON body."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def _decode(message: Union[str, bytes]) -> str:
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    return message.strip()


class BridgeTranslator:
    """Maps device payloads to MQTT messages and MQTT commands to device queues."""

    DISCOVERY_INTERVAL = constants.DISCOVERY_REFRESH_SECONDS

    def __init__(
        self,
        queue_manager: CommandQueueManager,
        *,
        topic_prefix: str = constants.TOPIC_PREFIX,
        discovery_prefix: str = constants.DEFAULT_DISCOVERY_PREFIX,
        discovery_interval: float = DISCOVERY_INTERVAL,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._queues = queue_manager
        self._topic_prefix = topic_prefix
        self._discovery_prefix = discovery_prefix
        self._discovery_interval = discovery_interval
        self._clock = clock or time.time

        self._discovery_published_at: Dict[str, float] = {}
        self._discovery_lock = threading.Lock()

    @property
    def topic_prefix(self) -> str:
        return self._topic_prefix

    @property
    def command_subscription(self) -> str:
        return f"{self._topic_prefix}/+/+/set"

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------
    def publish_measurements(
        self, device_id: str, payload: Mapping[str, Any]
    ) -> List[BusMessage]:
        """Flatten a measurement body into one non-retained message per reading.

        Channel readings are taken from the channel's own mapping, so
        ``{"channels": {"1": {"pm02": 12}}}`` yields ``channel_1_pm02 = 12``.
        """

        base_topic = f"{self._topic_prefix}/{device_id}"
        messages: List[BusMessage] = []

        for key, value in payload.items():
            if _is_scalar(value):
                messages.append(BusMessage(f"{base_topic}/{key}", format_value(value)))
                continue

            if key != CHANNELS_KEY or not isinstance(value, Mapping):
                continue

            for channel_key, channel in value.items():
                if not isinstance(channel, Mapping):
                    continue
                for inner_key, inner_value in channel.items():
                    if not _is_scalar(inner_value):
                        continue
                    messages.append(
                        BusMessage(
                            f"{base_topic}/channel_{channel_key}_{inner_key}",
                            format_value(inner_value),
                        )
                    )

        return messages

    def translate_measurements(
        self,
        device_id: str,
        payload: Mapping[str, Any],
        now: Optional[float] = None,
    ) -> List[BusMessage]:
        """Discovery configs (when due) followed by the state messages."""

        messages = self.ensure_discovery(device_id, payload, now)
        messages.extend(self.publish_measurements(device_id, payload))
        return messages

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def parse_command(
        self, topic: str, message: Union[str, bytes]
    ) -> Optional[QueuedCommand]:
        text = _decode(message)
        segments = topic.split("/")
        if (
            len(segments) != 4
            or segments[0] != self._topic_prefix
            or segments[3] != "set"
            or not segments[1]
        ):
            LOGGER.warning("Ignoring message on unexpected topic %s", topic)
            return None

        device_id, target = segments[1], segments[2]
        builder = COMMAND_BUILDERS.get(target)
        if builder is None:
            LOGGER.warning(
                "Received unknown command %s for %s with payload %s",
                target,
                device_id,
                text,
            )
            return None

        return QueuedCommand(device_id=device_id, command=builder(text))

    def handle_command(
        self, topic: str, message: Union[str, bytes]
    ) -> Optional[QueuedCommand]:
        """Parse a command-topic message and queue it for the target device."""

        queued = self.parse_command(topic, message)
        if queued is None:
            return None

        self._queues.queue_for(queued.device_id).enqueue(queued.command)
        LOGGER.debug(
            "Successfully queued %s for %s", queued.command, queued.device_id
        )
        return queued

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def ensure_discovery(
        self,
        device_id: str,
        payload: Mapping[str, Any],
        now: Optional[float] = None,
    ) -> List[BusMessage]:
        """Return discovery configs for ``device_id`` unless published recently."""

        current = self._clock() if now is None else now

        with self._discovery_lock:
            last = self._discovery_published_at.get(device_id)
            if last is not None and current - last <= self._discovery_interval:
                return []

            messages = self._build_discovery(device_id, payload)
            self._discovery_published_at[device_id] = current

        LOGGER.info(
            "Prepared %d discovery configs for %s", len(messages), device_id
        )
        return messages

    def discovery_published_at(self, device_id: str) -> Optional[float]:
        with self._discovery_lock:
            return self._discovery_published_at.get(device_id)

    def reset_discovery(self, device_id: str) -> None:
        """Forget the last publication so the next payload republishes discovery."""
        with self._discovery_lock:
            self._discovery_published_at.pop(device_id, None)

    def _build_discovery(
        self, device_id: str, payload: Mapping[str, Any]
    ) -> List[BusMessage]:
        messages: List[BusMessage] = []

        for key, value in payload.items():
            if key == CHANNELS_KEY:
                if isinstance(value, Mapping):
                    messages.extend(self._build_channel_discovery(device_id, value))
                continue
            if key in IGNORED_KEYS:
                continue

            descriptor = MEASUREMENT_ENTITIES.get(key)
            if descriptor is None:
                LOGGER.warning("Received unknown payload key %s", key)
                continue

            messages.append(self._config_message(descriptor, device_id, key))

        for suffix, descriptor in BUTTON_ENTITIES.items():
            messages.append(self._config_message(descriptor, device_id, suffix))

        return messages

    def _build_channel_discovery(
        self, device_id: str, channels: Mapping[str, Any]
    ) -> List[BusMessage]:
        messages: List[BusMessage] = []
        for channel_key, channel in channels.items():
            if not isinstance(channel, Mapping):
                continue
            for key in channel:
                if key in IGNORED_CHANNEL_KEYS:
                    continue
                descriptor = CHANNEL_ENTITIES.get(key)
                if descriptor is None:
                    LOGGER.warning("Received unknown channel payload key %s", key)
                    continue
                messages.append(
                    self._config_message(
                        descriptor,
                        device_id,
                        f"channel_{channel_key}_{key}",
                        name=f"CH{channel_key}: {descriptor.name}",
                    )
                )
        return messages

    def _config_message(self, descriptor, device_id, suffix, *, name=None) -> BusMessage:
        return build_config_message(
            descriptor,
            device_id=device_id,
            suffix=suffix,
            topic_prefix=self._topic_prefix,
            discovery_prefix=self._discovery_prefix,
            name=name,
        )
