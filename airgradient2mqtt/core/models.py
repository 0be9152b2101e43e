"""Records exchanged between the cloud endpoint, translator and MQTT adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class BusMessage:
    topic: str
    payload: str
    retain: bool = False


@dataclass(frozen=True, slots=True)
class QueuedCommand:
    device_id: str
    command: str


@dataclass(frozen=True, slots=True)
class MeasurementEvent:
    """A measurement body received from a device poll."""

    device_id: str
    payload: Mapping[str, Any]
