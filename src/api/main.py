"""
FastAPI application entrypoint for the ParaDB backend.

Routes live under /api (users, maps, favorites, search). Uploaded map files
under MAPS_DIR are served read-only from /static/map_data. Error responses
(4xx and 5xx) are reported to Sentry when SENTRY_DSN is set.
"""

from __future__ import annotations

import logging
import os as _os
from pathlib import Path

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from src.api.config import ConfigError, get_env_vars
from src.api.routes_favorites import router as favorites_router
from src.api.routes_maps import router as maps_router
from src.api.routes_users import router as users_router

logging.basicConfig(level=_os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# Every error response is reported, not only 5xx.
SENTRY_FAILED_STATUS_CODES = set(range(400, 600))


def sentry_integrations():
    return [
        StarletteIntegration(failed_request_status_codes=SENTRY_FAILED_STATUS_CODES),
        FastApiIntegration(failed_request_status_codes=SENTRY_FAILED_STATUS_CODES),
    ]


env_vars = get_env_vars()

if env_vars.sentry_dsn:
    sentry_sdk.init(
        dsn=env_vars.sentry_dsn,
        environment=env_vars.sentry_environment,
        attach_stacktrace=True,
        integrations=sentry_integrations(),
    )

openapi_tags = [
    {"name": "Users", "description": "Signup, login and account management."},
    {"name": "Maps", "description": "Browse, submit, delete and search maps."},
    {"name": "Favorites", "description": "Per-user favorite maps."},
    {"name": "Health", "description": "Service health and basic runtime info."},
]

app = FastAPI(
    title="ParaDB API",
    description=(
        "Backend for the ParaDB map repository.\n\n"
        "Authentication: Bearer JWT from POST /api/users/login.\n\n"
        "Search is served by Meilisearch; rebuild the index with `paradb-rebuild-search`."
    ),
    version="1.0.0",
    openapi_tags=openapi_tags,
)

# Extra origins via CORS_ALLOW_ORIGINS or ALLOWED_ORIGINS (comma-separated).
cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

_allow_origins_raw = _os.getenv("CORS_ALLOW_ORIGINS") or _os.getenv("ALLOWED_ORIGINS", "")
cors_origins.extend(o.strip() for o in _allow_origins_raw.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router)
app.include_router(maps_router)
app.include_router(favorites_router)


@app.exception_handler(ConfigError)
def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
    logger.error("server_misconfigured: path=%s message=%s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "server_misconfigured", "message": str(exc)}},
    )


if env_vars.maps_dir and Path(env_vars.maps_dir).is_dir():
    app.mount("/static/map_data", StaticFiles(directory=env_vars.maps_dir), name="map_data")
elif env_vars.maps_dir:
    logger.warning("Could not access maps dir %s; map files will not be served.", env_vars.maps_dir)


@app.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint.",
    tags=["Health"],
)
def health_check():
    """Return basic service health information."""
    return {"status": "ok"}
