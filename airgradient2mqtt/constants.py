"""Constants used across the airgradient2mqtt package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "airgradient2mqtt"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

# Fixed namespace segment for every state and command topic.
TOPIC_PREFIX = APP_NAME
DEFAULT_DISCOVERY_PREFIX = "homeassistant"

DEFAULT_CLOUD_HOST = "0.0.0.0"
DEFAULT_CLOUD_PORT = 80
DEFAULT_MEASUREMENT_BUFFER = 100

DEFAULT_BROKER_URL = "mqtt://localhost:1883"

COMMAND_QUEUE_MAX_LEN = 10
DISCOVERY_REFRESH_SECONDS = 4 * 60 * 60
DISCOVERY_EXPIRE_AFTER_SECONDS = 300

POLL_OK_RESPONSE = "OK"
