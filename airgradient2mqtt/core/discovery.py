"""Home Assistant discovery descriptors for AirGradient measurements."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..constants import DISCOVERY_EXPIRE_AFTER_SECONDS
from .models import BusMessage

MANUFACTURER = "AirGradient"
MODEL = "Air Quality Sensor"

_PARTICULATE_UNIT = "µg/m³"


@dataclass(frozen=True, slots=True)
class EntityDescriptor:
    """Static description of one discovery entity.

    ``kind`` is the Home Assistant component (sensor, number or button).
    Writable entities get a ``command_topic``; ``command_target`` overrides the
    topic segment used for it (defaults to the measurement key).
    """

    kind: str
    name: Optional[str] = None
    unit: Optional[str] = None
    device_class: Optional[str] = None
    icon: Optional[str] = None
    entity_category: Optional[str] = None
    writable: bool = False
    command_target: Optional[str] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


def _brightness(name: str) -> EntityDescriptor:
    return EntityDescriptor(
        kind="number",
        name=name,
        icon="mdi:brightness-5",
        writable=True,
        minimum=0,
        maximum=255,
    )


MEASUREMENT_ENTITIES: Mapping[str, EntityDescriptor] = {
    "wifi": EntityDescriptor(
        kind="sensor",
        name="Wi-Fi Signal",
        unit="dBm",
        device_class="signal_strength",
        entity_category="diagnostic",
    ),
    "rco2": EntityDescriptor(kind="sensor", unit="ppm", device_class="carbon_dioxide"),
    "pm01": EntityDescriptor(kind="sensor", unit=_PARTICULATE_UNIT, device_class="pm1"),
    "pm02": EntityDescriptor(kind="sensor", unit=_PARTICULATE_UNIT, device_class="pm25"),
    "pm10": EntityDescriptor(kind="sensor", unit=_PARTICULATE_UNIT, device_class="pm10"),
    "tvoc_index": EntityDescriptor(
        kind="sensor", name="VOC Index", icon="mdi:air-filter"
    ),
    "nox_index": EntityDescriptor(
        kind="sensor", name="NOx Index", icon="mdi:air-filter"
    ),
    "atmp": EntityDescriptor(kind="sensor", unit="°C", device_class="temperature"),
    "rhum": EntityDescriptor(kind="sensor", unit="%", device_class="humidity"),
    # Only reported by custom firmware.
    "rgb_bri": _brightness("RGB LED Brightness"),
    "oled_bri": _brightness("OLED Display Brightness"),
}

# Names are labels; the translator prefixes them with the channel, e.g. "CH1: PM1".
CHANNEL_ENTITIES: Mapping[str, EntityDescriptor] = {
    "pm01": EntityDescriptor(
        kind="sensor",
        name="PM1",
        unit=_PARTICULATE_UNIT,
        device_class="pm1",
        entity_category="diagnostic",
    ),
    "pm02": EntityDescriptor(
        kind="sensor",
        name="PM2.5",
        unit=_PARTICULATE_UNIT,
        device_class="pm25",
        entity_category="diagnostic",
    ),
    "pm10": EntityDescriptor(
        kind="sensor",
        name="PM10",
        unit=_PARTICULATE_UNIT,
        device_class="pm10",
        entity_category="diagnostic",
    ),
    "atmp": EntityDescriptor(
        kind="sensor",
        name="Temperature",
        unit="°C",
        device_class="temperature",
        entity_category="diagnostic",
    ),
    "rhum": EntityDescriptor(
        kind="sensor",
        name="Humidity",
        unit="%",
        device_class="humidity",
        entity_category="diagnostic",
    ),
}

IGNORED_KEYS = frozenset({"pm003_count", "boot"})
IGNORED_CHANNEL_KEYS = frozenset({"pm003_count"})

# suffix -> descriptor; published for every device regardless of payload.
BUTTON_ENTITIES: Mapping[str, EntityDescriptor] = {
    "reboot": EntityDescriptor(
        kind="button",
        name="Reboot",
        icon="mdi:restart",
        entity_category="diagnostic",
        writable=True,
        command_target="do_reboot",
    ),
    "reset_wifi": EntityDescriptor(
        kind="button",
        name="Reset Wi-Fi Config",
        icon="mdi:restart-alert",
        entity_category="diagnostic",
        writable=True,
        command_target="do_reset_wifi",
    ),
}


def device_info(device_id: str, topic_prefix: str) -> Dict[str, Any]:
    return {
        "manufacturer": MANUFACTURER,
        "model": MODEL,
        "name": f"{MODEL} {device_id}",
        "identifiers": [f"{topic_prefix}_{device_id}"],
    }


def build_config_message(
    descriptor: EntityDescriptor,
    *,
    device_id: str,
    suffix: str,
    topic_prefix: str,
    discovery_prefix: str,
    name: Optional[str] = None,
) -> BusMessage:
    """Render the retained discovery config for one entity.

    ``suffix`` identifies the entity within the device and doubles as the
    state topic leaf, e.g. ``rco2`` or ``channel_1_pm02``.
    """

    base_topic = f"{topic_prefix}/{device_id}"
    entity_id = f"{topic_prefix}_{device_id}_{suffix}"
    body: Dict[str, Any] = {}

    if descriptor.kind != "button":
        body["state_topic"] = f"{base_topic}/{suffix}"
    if descriptor.writable:
        target = descriptor.command_target or suffix
        body["command_topic"] = f"{base_topic}/{target}/set"

    display_name = name if name is not None else descriptor.name
    if display_name is not None:
        body["name"] = display_name
    if descriptor.unit is not None:
        body["unit_of_measurement"] = descriptor.unit
    if descriptor.device_class is not None:
        body["device_class"] = descriptor.device_class
    if descriptor.kind == "sensor":
        body["state_class"] = "measurement"
    if descriptor.icon is not None:
        body["icon"] = descriptor.icon
    if descriptor.minimum is not None:
        body["min"] = descriptor.minimum
    if descriptor.maximum is not None:
        body["max"] = descriptor.maximum
    if descriptor.kind == "number":
        body["mode"] = "slider"
    if descriptor.entity_category is not None:
        body["entity_category"] = descriptor.entity_category

    body["object_id"] = entity_id
    body["unique_id"] = entity_id
    if descriptor.kind == "sensor":
        body["expire_after"] = DISCOVERY_EXPIRE_AFTER_SECONDS
    body["device"] = device_info(device_id, topic_prefix)

    topic = (
        f"{discovery_prefix}/{descriptor.kind}/{topic_prefix}_{device_id}/"
        f"{device_id}_{suffix}/config"
    )
    return BusMessage(
        topic=topic,
        payload=json.dumps(body, ensure_ascii=False, separators=(",", ":")),
        retain=True,
    )
