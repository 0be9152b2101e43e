"""Adapter modules for external integrations."""

from .cloud import CloudEndpoint
from .mqtt import MQTTClient, MQTTConnectionError

__all__ = [
    "CloudEndpoint",
    "MQTTClient",
    "MQTTConnectionError",
]
