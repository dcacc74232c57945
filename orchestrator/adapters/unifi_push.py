"""Socket-push event stream from the UniFi Access controller.

The controller pushes device notifications over one long-lived websocket at
`/api/v1/developer/devices/notifications`. Door unlocks and doorbell
completions arrive wrapped in `access.logs.add`; the rules engine unwraps
them like any other payload.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from typing import Any, Awaitable, Callable, Optional, Union

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from orchestrator.types import ControllerConfig

logger = logging.getLogger(__name__)

NOTIFICATIONS_PATH = "/api/v1/developer/devices/notifications"

EventHandler = Callable[[Any], Awaitable[object]]


def client_ssl_context(verify_ssl: bool) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify_ssl:
        # Controllers ship self-signed certificates
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class NotificationListener:
    """Keeps the notification socket open and feeds every message to `handler`.

    A dropped or refused connection is retried after `reconnect_seconds`
    until `stop()` is called. Messages that are not JSON are logged and
    skipped; handler errors are logged and never end the stream.
    """

    def __init__(
        self,
        config: ControllerConfig,
        handler: EventHandler,
        reconnect_seconds: float = 5,
        connector: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.url = f"wss://{config.host}:{config.port}{NOTIFICATIONS_PATH}"
        self.handler = handler
        self.reconnect_seconds = reconnect_seconds
        self._connector = connector or connect
        self._headers = {"Authorization": f"Bearer {config.token}"}
        self._ssl = client_ssl_context(config.verify_ssl)
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self.connected = False

    def start(self) -> asyncio.Task:
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def run(self) -> None:
        while not self._stopped:
            logger.info(f"Connecting WebSocket: {self.url}")
            try:
                async with self._connector(
                    self.url, additional_headers=self._headers, ssl=self._ssl
                ) as websocket:
                    self.connected = True
                    logger.info("WebSocket connected")
                    async for message in websocket:
                        await self.dispatch(message)
                logger.warning("WebSocket closed")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.error(f"WebSocket error: {e}")
            finally:
                self.connected = False

            if self._stopped:
                break
            logger.info(f"WebSocket reconnecting in {self.reconnect_seconds:g}s...")
            await asyncio.sleep(self.reconnect_seconds)

    async def dispatch(self, message: Union[str, bytes]) -> None:
        try:
            payload = json.loads(message)
        except ValueError as e:
            logger.warning(f"Failed to parse WebSocket message: {e}")
            return
        try:
            await self.handler(payload)
        except Exception as e:
            logger.exception(f"WebSocket event error: {e}")

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.connected = False
