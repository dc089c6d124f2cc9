"""FastAPI application for the Attendee admin panel API."""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI

from attendee_discovery import __version__

if TYPE_CHECKING:
    from attendee_discovery.context import AppContext

logger = logging.getLogger(__name__)

# Module-level reference to context (set by create_app)
# FastAPI's lifespan function cannot receive parameters
_app_context: Optional["AppContext"] = None


def get_app_context() -> Optional["AppContext"]:
    """
    Get the application context.

    Returns:
        The AppContext set by create_app(), or None
    """
    return _app_context


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan.

    The context is created and started by the CLI before the web app
    starts; this only logs web-specific startup and shutdown.
    """
    logger.info("Web application starting...")

    if _app_context is None:
        logger.warning("No AppContext provided - discovery and terminal routes unavailable")
    elif not _app_context.is_started:
        logger.warning("AppContext provided but not started - terminal monitor is idle")

    yield

    logger.info("Web application shutting down...")


def create_app(context: Optional["AppContext"] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Application context with config, discovery service and monitor

    Returns:
        Configured FastAPI application

    Example:
        context = AppContext.create(config)
        await context.start()
        app = create_app(context=context)
    """
    global _app_context
    _app_context = context

    app = FastAPI(
        title="Attendee Discovery",
        description="Discovery and management of Attendee RFID attendance terminals",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    from attendee_discovery.web.routes import router

    app.include_router(router)

    logger.info("FastAPI application created")
    return app
