"""
guildboard.api.main — FastAPI application factory
==================================================

The app is created before the bot so plugins can mount their routers on
it during the bot's ``setup_hook``.  Both then run on one event loop (see
:mod:`guildboard.__main__`).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guildboard import __version__
from guildboard.api.routes.guilds import router as guilds_router
from guildboard.api.routes.system import router as system_router
from guildboard.services.log_buffer import install_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: attach the live-log handler."""
    install_handler()
    logger.info("Dashboard API started")
    yield
    logger.info("Dashboard API shutting down")


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(title: str = "Guildboard") -> FastAPI:
    app = FastAPI(title=f"{title} API", version=__version__, lifespan=lifespan)
    app.state.bot = None

    app.add_exception_handler(Exception, _unhandled_error)

    app.include_router(guilds_router, prefix="/api")
    app.include_router(system_router, prefix="/api")

    @app.get("/api/health")
    def health():
        bot = app.state.bot
        return {
            "status": "ok",
            "bot_ready": bool(bot is not None and bot.is_ready()),
        }

    return app
