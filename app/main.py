import logging
import os

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from mangum import Mangum

from app.api.handlers import register_exception_handlers
from app.api.routes import (
    auth,
    health,
    migrations,
    raffle,
    raffle_items,
    registrations,
    settings as settings_routes,
    winners,
)
from app.core.config import auth_secret_configured, settings
from app.core.errors import add_permission_observer, log_permission_error
from app.core.logging import configure_logging

configure_logging()
add_permission_observer(log_permission_error)
if not auth_secret_configured():
    logging.getLogger(__name__).warning(
        "AUTH_SECRET is not set; admin tokens will not survive a restart"
    )

API_PREFIX = "/okeraffle"
ROUTERS = (
    auth.router,
    health.router,
    migrations.router,
    registrations.router,
    settings_routes.router,
    raffle_items.router,
    raffle.router,
    winners.router,
)


def _gateway_base_path() -> str:
    base_path = os.getenv("API_GATEWAY_BASE_PATH", "").strip()
    if base_path and not base_path.startswith("/"):
        base_path = f"/{base_path}"
    return base_path


gateway_base_path = _gateway_base_path()

app = FastAPI(
    title="Oke Raffle API",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=f"{API_PREFIX}/openapi.json",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
register_exception_handlers(app)

api_router = APIRouter(prefix=API_PREFIX)
for router in ROUTERS:
    api_router.include_router(router)
app.include_router(api_router)


def _openapi_url(request: Request, page: str) -> str:
    """Resolve the schema URL as seen by the browser behind API Gateway stages."""
    base_path = request.scope.get("root_path", "").rstrip("/") or gateway_base_path.rstrip("/")
    if not base_path:
        path = request.url.path.rstrip("/")
        suffix = f"{API_PREFIX}/{page}"
        if path.endswith(suffix):
            base_path = path[: -len(suffix)]
    return f"{base_path}{app.openapi_url}"


@app.get(f"{API_PREFIX}/docs", include_in_schema=False)
def swagger_ui(request: Request):
    return get_swagger_ui_html(
        openapi_url=_openapi_url(request, "docs"), title=f"{app.title} - Swagger UI"
    )


@app.get(f"{API_PREFIX}/redoc", include_in_schema=False)
def redoc(request: Request):
    return get_redoc_html(openapi_url=_openapi_url(request, "redoc"), title=f"{app.title} - ReDoc")


handler = Mangum(app, api_gateway_base_path=gateway_base_path or "/")
