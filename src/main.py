"""
Main entry point for the SimpleApp operator.

Connects to the API server, then runs the watches, the controller workers,
and the probe server until a shutdown signal arrives.
"""

import asyncio
import logging
import signal
from typing import List, Optional

from config import get_config
from cluster import KubernetesClient
from controller import Controller, SimpleAppReconciler
from health import ProbeServer, create_probe_app
from route_class import EnvRouteClassProvider
from watcher import Watcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class Application:
    """Main application that wires the client, watcher, and controller."""

    def __init__(self):
        self.config = get_config()
        self.client: Optional[KubernetesClient] = None
        self.controller: Optional[Controller] = None
        self.watcher: Optional[Watcher] = None
        self.probe_server: Optional[ProbeServer] = None
        self.running = False

    async def initialize(self):
        """Initialize all components."""
        logger.info("Initializing SimpleApp operator")
        logging.getLogger().setLevel(self.config.probes.log_level.upper())

        cluster_config = self.config.cluster
        self.client = KubernetesClient(
            api_url=cluster_config.api_url,
            token=cluster_config.token,
            ca_file=cluster_config.ca_file,
            verify_ssl=cluster_config.verify_ssl,
            request_timeout=cluster_config.request_timeout,
        )
        await self.client.connect()

        reconciler = SimpleAppReconciler(
            self.client, route_class_provider=EnvRouteClassProvider()
        )
        self.controller = Controller(
            self.client,
            reconciler=reconciler,
            config=self.config.controller,
        )
        self.watcher = Watcher(
            self.client,
            enqueue=self.controller.enqueue,
            namespace=cluster_config.watch_namespace,
            resync_interval=self.config.controller.reconcile_interval,
        )

        if self.config.probes.enabled:
            app = create_probe_app(self.controller, self.watcher)
            self.probe_server = ProbeServer(
                app, host=self.config.probes.host, port=self.config.probes.port
            )

        logger.info("All components initialized")

    async def start(self):
        """Start the application."""
        if not self.controller:
            await self.initialize()

        self.running = True
        logger.info("Starting SimpleApp operator")

        tasks: List[asyncio.Task] = [
            asyncio.create_task(self.controller.start()),
            asyncio.create_task(self.watcher.start()),
        ]
        if self.probe_server:
            tasks.append(asyncio.create_task(self.probe_server.start()))

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("Application tasks cancelled")

    async def stop(self):
        """Stop the application gracefully."""
        if not self.running:
            return
        logger.info("Stopping SimpleApp operator")
        self.running = False

        if self.watcher:
            await self.watcher.stop()

        if self.controller:
            await self.controller.stop()

        if self.probe_server:
            await self.probe_server.stop()

        if self.client:
            await self.client.close()

        logger.info("SimpleApp operator stopped")


async def main():
    """Main entry point."""
    app = Application()

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(app.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        await app.stop()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
