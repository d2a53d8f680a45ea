"""
ServerApp - Composition Root

This module contains the ServerApp class, which is responsible for:
- Configuration loading
- Display bring-up (bus connect, panel init, initial flush)
- Dependency injection and component wiring
- FastAPI application setup with the loopback-only CORS policy
- Application lifecycle management (startup/shutdown)

Composition root - wires up all components with proper dependency injection.
"""

import logging
import os
import signal
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import ServiceConfig, default_config, load_from_toml
from .dispatcher import CommandDispatcher
from .display_driver import DisplayBusError, DisplayDriver, create_display_driver
from .display_resource import DisplayResource
from .errors import BusError
from .rpc import JsonRpcHandler


logger = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the display cannot be brought up at startup."""

    pass


class ServerApp:
    """
    Application composition root for the OLED RPC server.

    Args:
        config_path: TOML config file; defaults are used when it doesn't exist
        config: Pre-built configuration (skips file loading)
        driver: Pre-built display driver (skips driver creation)
        use_hardware: Force hardware (True) or mock (False) driver
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[ServiceConfig] = None,
        driver: Optional[DisplayDriver] = None,
        use_hardware: Optional[bool] = None,
    ):
        self.config_path = config_path or Path("config.toml")
        self.config: Optional[ServiceConfig] = config
        self.use_hardware = use_hardware

        # Core components - initialized during startup
        self.driver: Optional[DisplayDriver] = driver
        self.display_resource: Optional[DisplayResource] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        self.rpc_handler: Optional[JsonRpcHandler] = None

        self.app: Optional[FastAPI] = None
        self._started: bool = False

        logger.info(f"ServerApp initialized with config: {self.config_path}")

    @property
    def started(self) -> bool:
        return self._started

    async def startup(self) -> None:
        """
        Bring up the display and wire all components.

        Raises:
            StartupError: If the bus or panel cannot be initialised
        """
        logger.info("Starting up.")

        try:
            self.load_configuration()
            self._create_display_resource()
            self._create_dispatcher()
            self._create_rpc_handler()

            logger.info("Listening for requests.")
            self._started = True

        except Exception as e:
            logger.error(f"Server application startup failed: {e}")
            await self.shutdown()
            raise

    async def shutdown(self) -> None:
        """Release the display."""
        logger.info("Shutting down server application...")

        try:
            if self.display_resource:
                self.display_resource.close()
            elif self.driver:
                self.driver.close()
        except DisplayBusError as e:
            logger.error(f"Error during shutdown: {e}")
        finally:
            self.display_resource = None
            self.dispatcher = None
            self.rpc_handler = None
            self._started = False

        logger.info("Server application shutdown completed")

    def load_configuration(self) -> ServiceConfig:
        """Load configuration from file or use defaults."""
        if self.config is None:
            if self.config_path.exists():
                logger.info(f"Loading configuration from {self.config_path}")
                self.config = load_from_toml(self.config_path)
            else:
                logger.warning(
                    f"Config file {self.config_path} not found, using default configuration"
                )
                self.config = default_config()
        return self.config

    def create_fastapi_app(self) -> FastAPI:
        """Create the FastAPI application; components start in its lifespan."""
        config = self.load_configuration()

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            started_here = False
            if not self._started:
                await self.startup()
                started_here = True
            try:
                yield
            finally:
                if started_here and self._started:
                    await self.shutdown()

        self.app = FastAPI(
            title="OLED RPC Server",
            description="JSON-RPC interface for a 128x64 I2C OLED display",
            version="0.1.0",
            lifespan=lifespan,
        )

        # Only the null origin may call from a browser context
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.server.allowed_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

        from .api import router

        self.app.state.server = self
        self.app.include_router(router)

        logger.debug("Created FastAPI application")
        return self.app

    def get_fastapi_app(self) -> FastAPI:
        """Get the FastAPI application instance, creating it on first use."""
        return self.app or self.create_fastapi_app()

    # Private initialization methods

    def _create_display_resource(self) -> None:
        """Create the driver, initialise the panel and flush it once."""
        config = self.load_configuration()

        if self.driver is None:
            self.driver = create_display_driver(config.display, self.use_hardware)

        try:
            logger.info("Initializing the display.")
            self.driver.init()
            logger.debug("Flushing the display.")
            self.driver.flush()
        except DisplayBusError as e:
            logger.error(f"Problem initializing the OLED display: {e}")
            raise StartupError(f"Display bring-up failed: {e}") from e

        self.display_resource = DisplayResource(
            self.driver, max_pending=config.runtime.max_pending
        )
        logger.debug("Created display resource")

    def _create_dispatcher(self) -> None:
        if not self.display_resource:
            raise RuntimeError("Display resource not created")

        self.dispatcher = CommandDispatcher(
            self.display_resource, on_bus_error=self._handle_bus_error
        )
        logger.debug("Created command dispatcher")

    def _create_rpc_handler(self) -> None:
        """Register the RPC methods with the dispatcher's handlers."""
        if not self.dispatcher:
            raise RuntimeError("Command dispatcher not created")

        logger.info("Creating JSON-RPC I/O handler.")
        handler = JsonRpcHandler()
        handler.add_method("write", self.dispatcher.handle_write)
        handler.add_method("clear", self.dispatcher.handle_clear)
        handler.add_method("flush", self.dispatcher.handle_flush)
        self.rpc_handler = handler

    def _handle_bus_error(self, err: BusError) -> None:
        """Apply the configured bus-error policy; the display is already faulted."""
        policy = self.config.runtime.on_bus_error if self.config else "degrade"
        if policy == "exit":
            logger.critical(f"Bus error, terminating: {err}")
            os.kill(os.getpid(), signal.SIGTERM)
        else:
            logger.warning(f"Bus error, refusing further display commands: {err}")

    def get_stats(self) -> dict:
        if not self.display_resource:
            return {"running": False, "message": "server not initialized"}

        return {
            "running": self._started,
            "methods": self.rpc_handler.methods if self.rpc_handler else [],
            "display": self.display_resource.get_stats(),
        }
