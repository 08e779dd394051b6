"""
Main entry point for the Runtime Operator.

Connects to the cluster, loads the configured deployer plugin and runs the
controller together with the status API.
"""

import asyncio
import logging
import signal
from typing import List, Optional

from api import APIServer, create_app
from config import Config, get_config
from controller import Controller
from events import EventBus
from kube import KubeClients, connect
from plugins.registry import get_registry, register_builtin_plugins
from reconciler import RuntimeReconciler

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Application:
    """Main application that orchestrates the controller and status API."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        self.clients: Optional[KubeClients] = None
        self.controller: Optional[Controller] = None
        self.event_bus: Optional[EventBus] = None
        self.api_server: Optional[APIServer] = None
        self.running = False

    async def initialize(self):
        """Initialize all components."""
        logger.info("Initializing Runtime Operator")

        register_builtin_plugins()
        registry = get_registry()

        deployer_name = self.config.plugins.deployer
        deployer = await registry.get_deployer(
            deployer_name, self.config.plugins.get_plugin_config(deployer_name)
        )
        logger.info(f"Using deployer plugin: {deployer_name}")

        self.clients = await connect(self.config.kubernetes)
        self.event_bus = EventBus()

        reconciler = RuntimeReconciler(
            clients=self.clients,
            deployer=deployer,
            requeue_after=self.config.controller.requeue_after_seconds,
        )
        self.controller = Controller(
            clients=self.clients,
            reconciler=reconciler,
            config=self.config.controller,
            kube_config=self.config.kubernetes,
            event_bus=self.event_bus,
        )

        if self.config.api.enabled:
            app = create_app(
                controller=self.controller,
                event_bus=self.event_bus,
                registry=registry,
                active_deployer=deployer_name,
            )
            self.api_server = APIServer(
                app, host=self.config.api.host, port=self.config.api.port
            )

        logger.info("All components initialized")

    async def start(self):
        """Start the application."""
        if not self.controller:
            await self.initialize()

        self.running = True
        logger.info("Starting Runtime Operator")

        tasks: List[asyncio.Task] = [asyncio.create_task(self.controller.start())]
        if self.api_server:
            tasks.append(asyncio.create_task(self.api_server.start()))

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("Application tasks cancelled")

    async def stop(self):
        """Stop the application gracefully."""
        if self.running:
            logger.info("Stopping Runtime Operator")
            self.running = False

            if self.controller:
                await self.controller.stop()

            if self.api_server:
                await self.api_server.stop()

            logger.info("Runtime Operator stopped")

        # Closed even when initialization failed part way
        if self.clients:
            await self.clients.close()
            self.clients = None


async def main():
    """Main entry point."""
    config = get_config()
    configure_logging(config.api.log_level)
    app = Application(config)

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


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
