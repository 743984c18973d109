#!/usr/bin/env python3
"""
UI Resilience MCP Server

Exposes the resilience layer over MCP so operators and agents can submit UI
failures and inspect circuit breaker and analytics state.

Key Features:
- Failure classification with per-component circuit breakers
- Recovery responses with exponential backoff retries and fallbacks
- Rolling error analytics with pattern alerts
- Consent-aware, sanitized error reporting with an offline queue
"""

import logging
import logging.handlers
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before configuration constants are read
load_dotenv()

from mcp.server.fastmcp import FastMCP  # noqa: E402

from ui_resilience import config  # noqa: E402
from ui_resilience.analytics import ErrorAnalytics  # noqa: E402
from ui_resilience.connectivity import ConnectivityMonitor  # noqa: E402
from ui_resilience.error_handling import ErrorHandler  # noqa: E402
from ui_resilience.models import ErrorHandlerConfig  # noqa: E402
from ui_resilience.reporting import ErrorReporter, HttpReportSink  # noqa: E402
from ui_resilience.storage import JsonFileStore, MemoryStore  # noqa: E402
from ui_resilience.tools import set_error_handler, set_mcp_instance  # noqa: E402


def setup_logging() -> logging.Logger:
    """Logging setup with a rotating file under the home directory."""
    log_dir = Path.home() / ".ui_resilience" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("ui_resilience")
    logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

    formatter = logging.Formatter(config.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # File handler with rotation
    try:
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "ui_resilience.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: Could not create file logger: {e}")

    # Console handler (stderr, stdout carries the MCP protocol)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


logger = setup_logging()


def build_error_handler() -> ErrorHandler:
    """Wire an ErrorHandler from the environment configuration."""
    config.validate_config()

    store = JsonFileStore(config.STORE_DIR) if config.STORE_DIR else MemoryStore()
    connectivity = ConnectivityMonitor()

    report_sink = (
        HttpReportSink(config.REPORT_ENDPOINT) if config.REPORT_ENDPOINT else None
    )
    analytics_sink = (
        HttpReportSink(config.ANALYTICS_ENDPOINT) if config.ANALYTICS_ENDPOINT else None
    )

    return ErrorHandler(
        config=ErrorHandlerConfig(),
        analytics=ErrorAnalytics(store=store, connectivity=connectivity),
        reporter=ErrorReporter(sink=report_sink, connectivity=connectivity, store=store),
        analytics_sink=analytics_sink,
    )


error_handler = build_error_handler()
set_error_handler(error_handler)


@asynccontextmanager
async def lifespan(app):
    """Lifecycle manager for the MCP server."""
    logger.info("Starting UI Resilience MCP Server...")
    await error_handler.start()

    try:
        yield
    finally:
        logger.info("Shutting down UI Resilience MCP Server...")
        await error_handler.shutdown()
        for sink in (error_handler.reporter.sink, error_handler.analytics_sink):
            if isinstance(sink, HttpReportSink):
                await sink.aclose()


# Create FastMCP server
mcp = FastMCP("ui-resilience", lifespan=lifespan)

# Set MCP instance for tools to use decorators
set_mcp_instance(mcp)


def run():
    mcp.run("stdio")


if __name__ == "__main__":
    run()
