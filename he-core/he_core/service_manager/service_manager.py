import logging
from typing import Dict, List, Optional, Protocol

logger = logging.getLogger("he-core.service-manager")


class Service(Protocol):
    async def start(self):
        ...

    async def stop(self):
        ...

    @property
    def name(self) -> str:
        ...


class ServiceManager:
    """
    Starts registered services in registration order and stops them in reverse.
    A service that fails to start aborts startup; the ones already started are
    stopped again before the error propagates.
    """
    def __init__(self):
        self.services: List[Service] = []
        self._started: List[Service] = []

    @property
    def running(self) -> bool:
        return bool(self._started)

    def register(self, service: Service):
        if any(s.name == service.name for s in self.services):
            raise ValueError(f"Service already registered: {service.name}")
        self.services.append(service)
        logger.info(f"Registered service: {service.name}")

    def get(self, name: str) -> Optional[Service]:
        return self.by_name().get(name)

    def by_name(self) -> Dict[str, Service]:
        return {s.name: s for s in self.services}

    async def start_all(self):
        logger.info("Starting all services...")
        for service in self.services:
            try:
                logger.info(f"Starting {service.name}...")
                await service.start()
                self._started.append(service)
                logger.info(f"Started {service.name}")
            except Exception as e:
                logger.error(f"Failed to start {service.name}: {e}", exc_info=True)
                await self.stop_all()
                raise

    async def stop_all(self):
        if not self._started:
            return
        logger.info("Stopping all services...")
        for service in reversed(self._started):
            try:
                logger.info(f"Stopping {service.name}...")
                await service.stop()
                logger.info(f"Stopped {service.name}")
            except Exception as e:
                logger.error(f"Failed to stop {service.name}: {e}")
        self._started = []
