"""Configuration loader for airgradient2mqtt."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple
from urllib.parse import urlsplit

from . import constants


class ConfigurationError(ValueError):
    """Raised when the bridge configuration is unusable."""


# scheme -> (default port, transport, tls)
_BROKER_SCHEMES = {
    "mqtt": (1883, "tcp", False),
    "tcp": (1883, "tcp", False),
    "mqtts": (8883, "tcp", True),
    "ssl": (8883, "tcp", True),
    "tls": (8883, "tcp", True),
    "ws": (80, "websockets", False),
    "wss": (443, "websockets", True),
}


@dataclass(slots=True)
class CloudConfig:
    host: str = constants.DEFAULT_CLOUD_HOST
    port: int = constants.DEFAULT_CLOUD_PORT
    measurement_buffer: int = constants.DEFAULT_MEASUREMENT_BUFFER


@dataclass(slots=True)
class MQTTConfig:
    broker_url: str = constants.DEFAULT_BROKER_URL
    broker_host: str = "localhost"
    broker_port: int = 1883
    transport: str = "tcp"
    websocket_path: str = "/mqtt"
    use_tls: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    check_cert: bool = True
    keepalive: int = 60
    discovery_prefix: str = constants.DEFAULT_DISCOVERY_PREFIX


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class ResilienceConfig:
    reconnect_initial_seconds: float = 1.0
    reconnect_max_seconds: float = 30.0
    reconnect_jitter_ratio: float = 0.5
    connect_timeout_seconds: float = 30.0


@dataclass(slots=True)
class BridgeConfig:
    cloud: CloudConfig
    mqtt: MQTTConfig
    logging: LoggingConfig
    resilience: ResilienceConfig
    raw: ConfigParser
    path: Path


def parse_broker_url(url: str) -> Tuple[str, int, str, bool, str]:
    """Split a broker URL into ``(host, port, transport, tls, ws_path)``."""

    parts = urlsplit(url if "://" in url else f"mqtt://{url}")
    scheme = parts.scheme.lower()
    if scheme not in _BROKER_SCHEMES:
        raise ConfigurationError(f"Unsupported MQTT broker URL scheme: {scheme!r}")

    default_port, transport, use_tls = _BROKER_SCHEMES[scheme]
    if not parts.hostname:
        raise ConfigurationError(f"MQTT broker URL has no host: {url!r}")

    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in MQTT broker URL: {url!r}") from exc

    return parts.hostname, port, transport, use_tls, parts.path or "/mqtt"


def _apply_environment(parser: ConfigParser, environ: Mapping[str, str]) -> None:
    cloud_port = environ.get("CLOUD_PORT")
    if cloud_port:
        try:
            int(cloud_port)
        except ValueError:
            pass
        else:
            parser.set("cloud", "port", cloud_port.strip())

    if environ.get("MQTT_BROKER_URL"):
        parser.set("mqtt", "broker_url", environ["MQTT_BROKER_URL"])
    if environ.get("MQTT_USERNAME"):
        parser.set("mqtt", "username", environ["MQTT_USERNAME"])
    if environ.get("MQTT_PASSWORD"):
        parser.set("mqtt", "password", environ["MQTT_PASSWORD"])
    if environ.get("MQTT_CHECK_CERT"):
        check_cert = environ["MQTT_CHECK_CERT"] != "false"
        parser.set("mqtt", "check_cert", "true" if check_cert else "false")
    if environ.get("LOGLEVEL"):
        parser.set("logging", "level", environ["LOGLEVEL"])


def _optional(parser: ConfigParser, section: str, option: str) -> Optional[str]:
    value = parser.get(section, option, fallback="").strip()
    return value or None


def load_config(
    path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> BridgeConfig:
    """Load configuration from disk and the given environment mapping.

    Values from ``environ`` override the file so container deployments can
    configure the bridge with the same variables the upstream image uses.
    """

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser(interpolation=None)
    parser.read_dict(
        {
            "cloud": {
                "host": constants.DEFAULT_CLOUD_HOST,
                "port": str(constants.DEFAULT_CLOUD_PORT),
                "measurement_buffer": str(constants.DEFAULT_MEASUREMENT_BUFFER),
            },
            "mqtt": {
                "broker_url": constants.DEFAULT_BROKER_URL,
                "check_cert": "true",
                "keepalive": "60",
                "discovery_prefix": constants.DEFAULT_DISCOVERY_PREFIX,
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
            "resilience": {
                "reconnect_initial_seconds": "1.0",
                "reconnect_max_seconds": "30.0",
                "reconnect_jitter_ratio": "0.5",
                "connect_timeout_seconds": "30.0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    _apply_environment(parser, environ or {})

    cloud = CloudConfig(
        host=parser.get("cloud", "host"),
        port=parser.getint("cloud", "port", fallback=constants.DEFAULT_CLOUD_PORT),
        measurement_buffer=max(
            1,
            parser.getint(
                "cloud",
                "measurement_buffer",
                fallback=constants.DEFAULT_MEASUREMENT_BUFFER,
            ),
        ),
    )

    broker_url = parser.get("mqtt", "broker_url")
    host, port, transport, use_tls, ws_path = parse_broker_url(broker_url)
    username = _optional(parser, "mqtt", "username")
    password = _optional(parser, "mqtt", "password")
    if password and not username:
        raise ConfigurationError(
            "MQTT password is set but MQTT username is not. "
            "A username must be set if a password is set."
        )

    mqtt = MQTTConfig(
        broker_url=broker_url,
        broker_host=host,
        broker_port=port,
        transport=transport,
        websocket_path=ws_path,
        use_tls=use_tls,
        username=username,
        password=password,
        check_cert=parser.getboolean("mqtt", "check_cert", fallback=True),
        keepalive=max(5, parser.getint("mqtt", "keepalive", fallback=60)),
        discovery_prefix=parser.get(
            "mqtt", "discovery_prefix", fallback=constants.DEFAULT_DISCOVERY_PREFIX
        ).strip("/"),
    )

    log_path = _optional(parser, "logging", "path")
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path).expanduser() if log_path else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    resilience = ResilienceConfig(
        reconnect_initial_seconds=max(
            0.1,
            parser.getfloat("resilience", "reconnect_initial_seconds", fallback=1.0),
        ),
        reconnect_max_seconds=parser.getfloat(
            "resilience", "reconnect_max_seconds", fallback=30.0
        ),
        reconnect_jitter_ratio=max(
            0.0,
            min(
                1.0,
                parser.getfloat("resilience", "reconnect_jitter_ratio", fallback=0.5),
            ),
        ),
        connect_timeout_seconds=max(
            1.0,
            parser.getfloat("resilience", "connect_timeout_seconds", fallback=30.0),
        ),
    )

    return BridgeConfig(
        cloud=cloud,
        mqtt=mqtt,
        logging=logging_config,
        resilience=resilience,
        raw=parser,
        path=config_path,
    )
