import logging
from typing import Any, Awaitable, Callable, List, Optional

from nats.aio.client import Client as NATS

from ..config import settings

logger = logging.getLogger("he-core.messaging")

MessageHandler = Callable[[Any], Awaitable[None]]


class NATSClient:
    """
    Connection to the NATS server that relays the backend's push
    notifications. Reconnects forever once connected; subscriptions made
    through `subscribe` are tracked so `close` can drop them before draining.
    """

    def __init__(self, url: Optional[str] = None, name: Optional[str] = None):
        self.nc = NATS()
        self.url = url or settings.NATS_URL
        self.name = name or settings.NATS_CLIENT_ID
        self._subscriptions: List[Any] = []

    @property
    def is_connected(self) -> bool:
        return bool(self.nc and self.nc.is_connected)

    async def connect(self):
        try:
            await self.nc.connect(
                servers=[self.url],
                name=self.name,
                reconnect_time_wait=2,
                max_reconnect_attempts=-1,
                error_cb=self._on_error,
                disconnected_cb=self._on_disconnect,
                reconnected_cb=self._on_reconnect,
            )
        except Exception as e:
            logger.error(f"Could not reach NATS at {self.url}: {e}")
            raise
        logger.info(f"Connected to NATS at {self.url} as {self.name}")

    async def subscribe(self, subject: str, handler: MessageHandler):
        sub = await self.nc.subscribe(subject, cb=handler)
        self._subscriptions.append(sub)
        logger.info(f"Subscribed to {subject}")
        return sub

    async def unsubscribe(self, sub):
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
        try:
            await sub.unsubscribe()
        except Exception as e:
            logger.warning(f"Unsubscribe failed: {e}")

    async def close(self):
        for sub in list(self._subscriptions):
            await self.unsubscribe(sub)
        if self.is_connected:
            await self.nc.drain()
            logger.info("NATS connection drained and closed.")

    async def _on_error(self, e):
        logger.error(f"NATS error: {e}")

    async def _on_disconnect(self):
        logger.warning("Lost NATS connection; push events paused")

    async def _on_reconnect(self):
        logger.info(f"Reconnected to NATS at {self.url}")


nats_client = NATSClient()
