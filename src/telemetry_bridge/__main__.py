# src/telemetry_bridge/__main__.py
import asyncio
import signal
import sys
import traceback
from pathlib import Path
from typing import Optional
from fastapi import FastAPI
from hypercorn.asyncio import serve
from hypercorn.config import Config as HyperConfig

from telemetry_bridge.api.routes import create_app
from telemetry_bridge.core.bridge import BridgeService
from telemetry_bridge.core.config_manager import ConfigManager, Settings
from telemetry_bridge.utils.logging import setup_logging, get_logger
from telemetry_bridge.utils.exceptions import ConfigurationError, InitializationError

DEFAULT_CONFIG_PATH = Path("src/config/default.yml")


class APIServer:
    """Handles API server initialization and management"""

    def __init__(self, settings: Settings, shutdown_event: asyncio.Event, bridge: BridgeService):
        self.settings = settings
        self.shutdown_event = shutdown_event
        self.bridge = bridge
        self.logger = get_logger("API Server")
        self.app: Optional[FastAPI] = None

    async def initialize(self) -> FastAPI:
        """Initialize FastAPI application with routes"""
        try:
            self.app = create_app(self.bridge)
            return self.app
        except Exception:
            raise InitializationError(f"Failed to initialize API server: {traceback.format_exc()}")

    async def start(self):
        """Start the API server"""
        if not self.app:
            await self.initialize()

        hypercorn_config = HyperConfig()
        try:
            host = self.settings.api.host
            port = self.settings.api.port
            hypercorn_config.bind = [f"{host}:{port}"]

            async def shutdown_trigger():
                await self.shutdown_event.wait()

            self.logger.info(f"Starting API server on {host}:{port}")
            await serve(self.app, hypercorn_config, shutdown_trigger=shutdown_trigger)
        except Exception:
            self.logger.error(f"Failed to start API server: {traceback.format_exc()}")
            raise


class TelemetryBridgeApp:
    """Main application: validate the schema, connect the bus, serve the API"""

    def __init__(self, config_path: str):
        self.logger = get_logger("Main App")
        try:
            self.settings = ConfigManager.load_settings(config_path)
            setup_logging(self.settings.logging)
            # The schema is validated before anything listens on a socket
            self.bridge = BridgeService.from_settings(self.settings)
            self.logger.info(f"Loaded schema from {self.settings.schema_file}")
        except ConfigurationError as e:
            self.logger.error(f"Configuration error: {str(e)}")
            sys.exit(1)

        self.shutdown_event = asyncio.Event()
        self.api_server = APIServer(self.settings, self.shutdown_event, self.bridge)

    async def shutdown(self):
        """Gracefully shutdown all components"""
        if self.shutdown_event.is_set():
            return
        self.logger.info("Initiating shutdown sequence")
        try:
            await self.bridge.stop()
            self.logger.info("Shutdown completed successfully")
        except Exception:
            self.logger.error(f"Error during shutdown: {traceback.format_exc()}")
        finally:
            self.shutdown_event.set()

    def handle_signals(self):
        """Set up signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}")
            asyncio.create_task(self.shutdown())

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler, sig)

    async def run(self):
        """Main application entry point"""
        try:
            self.handle_signals()
            await self.bridge.start()
            await self.api_server.start()
        except InitializationError:
            self.logger.error(f"Initialization error: {traceback.format_exc()}")
            await self.shutdown()
            sys.exit(1)
        except Exception:
            self.logger.error(f"Unexpected error: {traceback.format_exc()}")
            await self.shutdown()
            sys.exit(1)
        await self.shutdown()


def main():
    """Application entry point"""
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    app = TelemetryBridgeApp(str(config_path))
    asyncio.run(app.run())

if __name__ == "__main__":
    main()
