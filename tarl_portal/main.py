"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tarl_portal.core.config import Settings, settings as default_settings
from tarl_portal.core.exceptions import PortalError
from tarl_portal.core.middleware import setup_middleware
from tarl_portal.db.session import Database

from tarl_portal.api.permissions import router as permissions_router
from tarl_portal.api.action_permissions import router as action_permissions_router
from tarl_portal.api.menu import router as menu_router
from tarl_portal.api.roles import router as roles_router
from tarl_portal.api.pages import router as pages_router
from tarl_portal.api.hierarchy import router as hierarchy_router
from tarl_portal.api.admin import router as admin_router

logger = logging.getLogger("tarl_portal")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the API around one injected database."""
    settings = settings or default_settings
    configure_logging(settings)
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s", settings.APP_NAME)
        yield
        database.engine.dispose()
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title="TaRL Portal Access API",
        description="Role, page, action and hierarchy permissions for the TaRL dashboard",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.db = database
    app.state.settings = settings

    setup_middleware(app, settings)

    @app.exception_handler(PortalError)
    async def portal_exception_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    for router in (
        permissions_router,
        action_permissions_router,
        menu_router,
        roles_router,
        pages_router,
        hierarchy_router,
        admin_router,
    ):
        app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app
