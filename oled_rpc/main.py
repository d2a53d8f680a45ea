#!/usr/bin/env python3
"""
OLED RPC Server - Main Application Entry Point

Configures logging, performs display bring-up before accepting connections
and serves the JSON-RPC API with uvicorn.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .server_app import ServerApp

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def create_app(config_path: Optional[Path] = None, **kwargs) -> FastAPI:
    """Create FastAPI application; the display starts with the app lifespan."""
    return ServerApp(config_path, **kwargs).create_fastapi_app()


async def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    config_path: Optional[str] = None,
    use_hardware: Optional[bool] = None,
) -> None:
    """Run the server with the given configuration."""
    server_app = ServerApp(
        Path(config_path) if config_path else None, use_hardware=use_hardware
    )
    config = server_app.load_configuration()
    host = host or config.server.host
    port = port or config.server.port

    # Bring the display up before listening; failure here is fatal
    await server_app.startup()

    try:
        app = server_app.create_fastapi_app()
        uv_config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
        server = uvicorn.Server(uv_config)

        logger.info(f"Starting server on {host}:{port}")
        await server.serve()
    finally:
        await server_app.shutdown()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="OLED JSON-RPC Server")
    parser.add_argument("--host", help="Host to bind to (default from config: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to bind to (default from config: 3031)")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    driver = parser.add_mutually_exclusive_group()
    driver.add_argument(
        "--hardware", dest="use_hardware", action="store_const", const=True,
        help="Drive the real panel over I2C",
    )
    driver.add_argument(
        "--mock", dest="use_hardware", action="store_const", const=False,
        help="Use the in-memory display driver",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        asyncio.run(
            run_server(
                host=args.host,
                port=args.port,
                config_path=args.config,
                use_hardware=args.use_hardware,
            )
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
