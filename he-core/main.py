import sys
import os
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

import asyncio
import logging

from he_core.config import settings
from he_core.entity_store.store import EntityStore
from he_core.lifecycle.controller import TaskLifecycleController
from he_core.lifecycle.incidents import IncidentStatusController
from he_core.logger import setup_logging
from he_core.messaging.nats_client import nats_client
from he_core.service_manager.service_manager import ServiceManager
from he_core.sync.backend_client import BackendClient
from he_core.sync.push_service import PushEventService
from he_core.sync.service import SyncService
from he_core.utils import print_banner

logger = logging.getLogger("he-core")


async def main():
    """
    Main entry point for HE-Core.
    Loads the backend's collections into the entity store, then keeps it
    current from push events until cancelled.
    """
    setup_logging()
    print_banner("HE-Core")
    logger.info(f"Starting HE-Core ({settings.ENVIRONMENT})...")

    store = EntityStore()
    service_manager = ServiceManager()

    try:
        await nats_client.connect()
    except Exception as e:
        logger.error(f"Failed to connect to NATS during startup: {e}")
        # Push events stay off; the periodic refresh still keeps the store current

    sync_svc = SyncService(
        store,
        BackendClient(),
        tasks=TaskLifecycleController(store),
        incidents=IncidentStatusController(store),
    )
    service_manager.register(sync_svc)
    service_manager.register(PushEventService(store))

    await service_manager.start_all()

    try:
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        logger.info("HE-Core shutting down...")
        await service_manager.stop_all()
        await nats_client.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("HE-Core stopped by user.")
