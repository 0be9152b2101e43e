"""HTTP endpoint emulating the AirGradient cloud that sensors poll."""

from __future__ import annotations

import contextlib
import json
import logging
from typing import Any, Callable, Mapping, Optional

from aiohttp import web

from ..constants import POLL_OK_RESPONSE
from ..core.command_queue import CommandQueueManager
from ..core.models import MeasurementEvent
from ..health import HealthReporter

LOGGER = logging.getLogger(__name__)

MEASURES_ROUTE = "/sensors/airgradient:{sensor_id}/measures"

# Bodies with this many keys or fewer are keep-alive pings, not readings.
PING_MAX_KEYS = 2


class CloudEndpoint:
    """Answers device polls with queued commands and forwards measurements."""

    def __init__(
        self,
        queue_manager: CommandQueueManager,
        on_measurement: Callable[[MeasurementEvent], None],
        *,
        host: str,
        port: int,
        health: Optional[HealthReporter] = None,
    ) -> None:
        self._queues = queue_manager
        self._on_measurement = on_measurement
        self._host = host
        self._port = port
        self._health = health
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def handle_poll(self, device_id: str, body: Mapping[str, Any]) -> str:
        """Dequeue the next command for ``device_id`` and forward readings.

        Returns the command string, or ``"OK"`` when nothing is pending.
        """

        command = self._queues.queue_for(device_id).dequeue()
        if command is not None:
            LOGGER.debug("Next command for %s is %s", device_id, command)
        else:
            LOGGER.debug("No command queued for %s", device_id)

        if len(body) > PING_MAX_KEYS:
            self._on_measurement(MeasurementEvent(device_id=device_id, payload=body))

        return command if command is not None else POLL_OK_RESPONSE

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(MEASURES_ROUTE, self._handle_measures)
        if self._health is not None:
            app.router.add_get("/healthz", self._health.handle_request)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("AirGradient cloud endpoint listening on port %s", self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_measures(self, request: web.Request) -> web.Response:
        sensor_id = request.match_info["sensor_id"]
        raw = await request.read()

        if not raw.strip():
            body: Any = {}
        else:
            try:
                body = json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                LOGGER.warning("Rejecting malformed body from %s: %s", sensor_id, exc)
                raise web.HTTPBadRequest(text="invalid JSON body") from exc

        if not isinstance(body, dict):
            LOGGER.warning("Rejecting non-object body from %s", sensor_id)
            raise web.HTTPBadRequest(text="expected a JSON object")

        return web.Response(text=self.handle_poll(sensor_id, body))
