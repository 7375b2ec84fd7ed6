"""Catch-all redirect server.

``create_app`` assembles the FastAPI application; lifecycle, routing and
middleware live in their own modules.
"""

from fastapi import FastAPI

from . import routes
from .config import Settings
from .lifecycle import lifespan
from .middleware import install_middleware


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(
        lifespan=lifespan,
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.include_router(routes.router)
    return install_middleware(app)


def app_from_env() -> FastAPI:
    """App factory for `uvicorn --factory redirector:app_from_env`."""
    return create_app(Settings.from_env())
