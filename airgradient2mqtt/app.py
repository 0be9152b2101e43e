"""Main application entry-point for airgradient2mqtt."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import signal
from typing import Optional, Set

from . import constants
from .adapters import CloudEndpoint, MQTTClient, MQTTConnectionError
from .config import BridgeConfig, load_config
from .connection import connect_with_backoff
from .core import BusMessage, CommandQueueManager, MeasurementChannel, MeasurementEvent
from .health import HealthReporter
from .logging import configure_logging
from .translator import BridgeTranslator

LOGGER = logging.getLogger(__name__)


class AirGradientBridgeApp:
    """Coordinates the cloud endpoint, the translator and the MQTT client.

    Shared state (command queues, discovery timestamps) is owned here and
    handed to both the HTTP side and the MQTT side. All mutation happens on
    the asyncio loop: HTTP handlers run there, and MQTT messages are
    dispatched onto it from paho's network thread.
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        *,
        mqtt_client: Optional[MQTTClient] = None,
    ) -> None:
        self._config = config or load_config()
        self._queues = CommandQueueManager()
        self._translator = BridgeTranslator(
            self._queues,
            discovery_prefix=self._config.mqtt.discovery_prefix,
        )
        self._channel = MeasurementChannel(self._config.cloud.measurement_buffer)
        self._health = HealthReporter(self._queues.pending_counts)
        self._cloud = CloudEndpoint(
            self._queues,
            self._channel.offer,
            host=self._config.cloud.host,
            port=self._config.cloud.port,
            health=self._health,
        )
        self._mqtt_client = mqtt_client
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._consumer_task: Optional[asyncio.Task[None]] = None
        self._background_tasks: Set[asyncio.Task[None]] = set()
        self._stopping = False

    @property
    def queue_manager(self) -> CommandQueueManager:
        return self._queues

    @property
    def translator(self) -> BridgeTranslator:
        return self._translator

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def cloud(self) -> CloudEndpoint:
        return self._cloud

    @classmethod
    def start(cls, config: Optional[BridgeConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("airgradient2mqtt received shutdown signal")

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                self._loop.add_signal_handler(sig, self.request_shutdown)

        LOGGER.info("airgradient2mqtt starting with config: %s", self._config.path)
        try:
            await self._start_services()
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("airgradient2mqtt received shutdown signal")
            raise
        finally:
            await self._stop_services()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    self._loop.remove_signal_handler(sig)

    def request_shutdown(self) -> None:
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        self._shutdown_event.set()

    async def _start_services(self) -> None:
        assert self._shutdown_event is not None
        self._stopping = False

        await self._health.update("cloud", False, "initialising")
        await self._health.update("mqtt", False, "initialising")

        await self._cloud.start()
        await self._health.update("cloud", True, None)

        client = self._mqtt_client
        if client is None:
            resilience = self._config.resilience
            client = MQTTClient(
                self._config.mqtt,
                client_id=_build_client_id(),
                reconnect_min_delay=resilience.reconnect_initial_seconds,
                reconnect_max_delay=resilience.reconnect_max_seconds,
            )
            self._mqtt_client = client

        client.set_message_handler(self._handle_mqtt_message)
        client.register_connect_handler(self._on_mqtt_connect)
        client.register_disconnect_handler(self._on_mqtt_disconnect)

        connected = await connect_with_backoff(
            client, self._config.resilience, self._shutdown_event
        )
        if not connected:
            LOGGER.warning("MQTT connection not established; shutting down")
            return

        await self._health.update("mqtt", True, None)
        self._consumer_task = asyncio.create_task(self._consume_measurements())

    async def _stop_services(self) -> None:
        self._stopping = True

        if self._consumer_task is not None:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
            self._consumer_task = None

        await self._cloud.stop()
        await self._health.update("cloud", False, "shutdown")

        if self._mqtt_client is not None:
            await self._mqtt_client.disconnect()
            await self._health.update("mqtt", False, "shutdown")

    # ------------------------------------------------------------------
    # Measurement path: cloud endpoint -> channel -> translator -> MQTT
    # ------------------------------------------------------------------
    async def _consume_measurements(self) -> None:
        while True:
            event = await self._channel.get()
            try:
                self.publish_event(event)
            except Exception:  # pragma: no cover - defensive logging
                LOGGER.exception(
                    "Failed to translate measurements from %s", event.device_id
                )
            finally:
                self._channel.task_done()

    def publish_event(self, event: MeasurementEvent) -> None:
        """Translate one measurement event and publish the resulting messages."""

        messages = self._translator.translate_measurements(
            event.device_id, event.payload
        )
        discovery_failed = False
        for message in messages:
            if not self._publish(message) and message.retain:
                discovery_failed = True

        if discovery_failed:
            # Let the next poll retry instead of waiting for the next interval.
            self._translator.reset_discovery(event.device_id)

    def _publish(self, message: BusMessage) -> bool:
        client = self._mqtt_client
        if client is None:
            return False
        try:
            client.publish(message.topic, message.payload, retain=message.retain)
        except (MQTTConnectionError, RuntimeError) as exc:
            LOGGER.warning("Failed to publish %s: %s", message.topic, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Command path: MQTT -> translator -> command queue
    # ------------------------------------------------------------------
    async def _handle_mqtt_message(self, topic: str, payload: bytes) -> None:
        self._translator.handle_command(topic, payload)

    def _subscribe_commands(self) -> None:
        client = self._mqtt_client
        if client is None:
            return
        subscription = self._translator.command_subscription
        try:
            client.subscribe(subscription)
        except (MQTTConnectionError, RuntimeError) as exc:
            LOGGER.warning("Error while subscribing to MQTT command topics: %s", exc)
        else:
            LOGGER.info("Subscribed to MQTT command topics %s", subscription)

    # ------------------------------------------------------------------
    # MQTT client callbacks (scheduled onto the loop by the adapter)
    # ------------------------------------------------------------------
    def _on_mqtt_connect(self, rc: int) -> None:
        if self._stopping:
            return
        # Runs on every (re)connect so subscriptions survive broker restarts.
        self._subscribe_commands()
        self._schedule_health_update("mqtt", True, None)

    def _on_mqtt_disconnect(self, rc: int) -> None:
        if self._stopping:
            return
        self._schedule_health_update("mqtt", False, f"disconnected (rc={rc})")

    def _schedule_health_update(
        self, name: str, healthy: bool, detail: Optional[str]
    ) -> None:
        loop = self._loop
        if loop is None:
            return

        async def _runner() -> None:
            await self._health.update(name, healthy, detail)

        loop.call_soon_threadsafe(self._track_task, _runner())

    def _track_task(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)


def _build_client_id() -> str:
    return f"{constants.APP_NAME}_{random.getrandbits(28):07x}"
