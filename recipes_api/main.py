import logging
import time
from typing import Any, Dict, List

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import ORJSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlmodel import Session

from .config import settings
from .db import engine, init_db, ping
from .errors import install_exception_handlers
from .logs import configure_logging
from .middleware.size_limit import SizeLimitMiddleware
from .routes.auth import router as auth_router
from .routes.recipes import router as recipes_router

configure_logging(settings.log_level)
logger = logging.getLogger("recipes_api.main")

TAGS_METADATA = [
    {"name": "recipes", "description": "Recipes with ingredients and instructions. Writes require a bearer token and only the author may change or delete a recipe."},
    {"name": "auth", "description": "Development login (HS256 token against a PIN)."},
    {"name": "admin", "description": "Health checks."},
]


def _csv(value: str) -> List[str]:
    if value == "*":
        return ["*"]
    return [v.strip() for v in value.split(",") if v.strip()]


app = FastAPI(
    title="Recipes API",
    version="1.0.0",
    description="Recipes with their ingredients and instructions, owned by the user who created them.",
    default_response_class=ORJSONResponse,
    openapi_tags=TAGS_METADATA,
    license_info={"name": "MIT", "url": "https://opensource.org/licenses/MIT"},
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_csv(settings.cors_allow_origins),
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=_csv(settings.cors_allow_methods),
    allow_headers=_csv(settings.cors_allow_headers),
)
app.add_middleware(SizeLimitMiddleware)  # 413 before any body is read

Instrumentator().instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")

install_exception_handlers(app)


@app.on_event("startup")
async def startup():
    init_db()
    logger.info(
        "Recipes API started (env=%s, auth=%s)",
        settings.service_env,
        "jwks" if settings.uses_identity_provider else "dev",
    )


app.include_router(auth_router)
app.include_router(recipes_router)


# ---------------------------
# Health
# ---------------------------

def _check_database() -> Dict[str, Any]:
    t0 = time.perf_counter()
    error = None
    try:
        with Session(engine) as session:
            ping(session)
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        error = str(e)
    return {"ok": error is None, "latency_ms": round((time.perf_counter() - t0) * 1000, 1), "error": error}


async def _check_jwks(url: str) -> Dict[str, Any]:
    t0 = time.perf_counter()
    error = None
    try:
        async with httpx.AsyncClient(timeout=3) as client:
            r = await client.get(url)
            r.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("JWKS health check failed: %s", e)
        error = str(e)
    return {"ok": error is None, "latency_ms": round((time.perf_counter() - t0) * 1000, 1), "error": error}


@app.get("/health", tags=["admin"], summary="Liveness")
async def health():
    return {"status": "ok", "env": settings.service_env, "auth": "jwks" if settings.uses_identity_provider else "dev"}


@app.get("/health/deep", tags=["admin"], summary="Database and identity provider reachability")
async def health_deep():
    checks = {"database": _check_database()}
    jwks_url = settings.jwks_url()
    if jwks_url:
        checks["jwks"] = await _check_jwks(jwks_url)
    status = "ok" if all(c["ok"] for c in checks.values()) else "degraded"
    return {"status": status, "checks": checks}


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=TAGS_METADATA,
        license_info=app.license_info,
    )
    schema["servers"] = [{"url": settings.server_public_url, "description": settings.service_env}]
    app.openapi_schema = schema
    return schema


app.openapi = custom_openapi  # type: ignore
