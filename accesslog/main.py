"""
accesslog — Demo Application Factory
=====================================

What:  A FastAPI application with AccessLogMiddleware installed from settings.
Why:   Shows the intended wiring and gives `uvicorn accesslog.main:app` a
       ready-made target for trying the access log out.
How:   Factory pattern: create_app() returns a configured FastAPI instance.

Middleware Chain:
    Request → [AccessLog] → [GZip] → Route Handler

    AccessLog is added last so it runs first: the size it logs is the
    compressed size the client received.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from accesslog import __version__
from accesslog.config import Settings
from accesslog.logger import Logger, build_logger
from accesslog.middleware.logging import AccessLogMiddleware
from accesslog.routes import health

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """
    Configure application (diagnostic) logging.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Access lines written with ACCESSLOG_LOG_OUTPUT=logging pass through the
    same handler, prefixed with this format.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Uvicorn would log every request a second time
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def create_app(
    settings: Optional[Settings] = None,
    access_logger: Optional[Logger] = None,
) -> FastAPI:
    """
    Create and configure the demo application.

    Args:
        settings:       Read from the environment when omitted
        access_logger:  Overrides the Logger built from settings (tests pass
                        one writing to a buffer)
    """
    settings = settings or Settings()
    access_logger = access_logger or build_logger(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings)
        logger.info(
            "Access log enabled: format=%s output=%s skip=%s",
            settings.log_format,
            settings.log_output,
            sorted(settings.skip_paths_set) or "-",
        )
        yield
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="accesslog demo",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        AccessLogMiddleware,
        logger=access_logger,
        skip_paths=settings.skip_paths_set,
    )

    app.include_router(health.router)

    return app


app = create_app()
