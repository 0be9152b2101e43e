"""Core primitives for airgradient2mqtt."""

from .channel import MeasurementChannel
from .command_queue import CommandQueue, CommandQueueManager
from .discovery import (
    BUTTON_ENTITIES,
    CHANNEL_ENTITIES,
    MEASUREMENT_ENTITIES,
    EntityDescriptor,
    build_config_message,
)
from .models import BusMessage, MeasurementEvent, QueuedCommand

__all__ = [
    "BUTTON_ENTITIES",
    "BusMessage",
    "CHANNEL_ENTITIES",
    "CommandQueue",
    "CommandQueueManager",
    "EntityDescriptor",
    "MEASUREMENT_ENTITIES",
    "MeasurementChannel",
    "MeasurementEvent",
    "QueuedCommand",
    "build_config_message",
]
