from __future__ import annotations
import logging
from typing import Any, Dict, List
from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger("recipes_api.errors")

# ---------------------------
# Domain errors
# ---------------------------

class RecipeError(Exception):
    """Base for the expected, non-retryable outcomes of the recipe workflow."""
    status_code = 400
    code = "bad_request"

    def __init__(self, detail: str, meta: Dict[str, Any] | None = None):
        super().__init__(detail)
        self.detail = detail
        self.meta = meta


class RecipeNotFound(RecipeError):
    status_code = 404
    code = "not_found"

    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe #{recipe_id} not found", meta={"id": recipe_id})
        self.recipe_id = recipe_id


class RecipeForbidden(RecipeError):
    """The authenticated principal is not the recipe's author."""
    status_code = 403
    code = "forbidden"

    def __init__(self, recipe_id: int):
        super().__init__(f"Recipe #{recipe_id} does not belong to this user", meta={"id": recipe_id})
        self.recipe_id = recipe_id


class VersionConflict(RecipeError):
    status_code = 409
    code = "conflict"

    def __init__(self, recipe_id: int, expected: int | None = None, actual: int | None = None):
        super().__init__(
            f"Recipe #{recipe_id} was modified concurrently",
            meta={"id": recipe_id, "expected_version": expected, "current_version": actual},
        )
        self.recipe_id = recipe_id


class InputValidationError(RecipeError):
    """Every violated field of a request body, collected before the workflow runs."""
    status_code = 400
    code = "validation_error"

    def __init__(self, errors: List[Dict[str, str]]):
        super().__init__("Validation failed", meta={"errors": errors})
        self.errors = errors

# ---------------------------
# HTTP mapping
# ---------------------------

def field_errors(errors: List[Dict[str, Any]], prefix: str | None = None) -> List[Dict[str, str]]:
    """Flattens pydantic errors to [{'field': 'ingredients.0.unit', 'message': ...}]."""
    out = []
    for err in errors:
        loc = [] if err.get("type") == "json_invalid" else list(err["loc"])
        if prefix is not None and loc[:1] == [prefix]:
            loc = loc[1:]
        out.append({"field": ".".join(str(p) for p in loc) or "body", "message": err["msg"]})
    return out


class ErrorResponse(BaseModel):
    code: str = Field(examples=["bad_request"])
    detail: str = Field(examples=["Invalid input"])
    meta: dict | None = Field(default=None, examples=[{"field": "title"}])

def install_exception_handlers(app: FastAPI):
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code_map: Dict[int, str] = {
            400: "bad_request",
            401: "unauthorized",
            403: "forbidden",
            404: "not_found",
            409: "conflict",
            413: "payload_too_large",
            422: "validation_error",
            500: "internal_error",
            503: "unavailable",
        }
        payload = ErrorResponse(code=code_map.get(exc.status_code, "error"), detail=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=payload.model_dump(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors and all(err["loc"][:1] == ("body",) for err in errors):
            # unreadable or missing body: same 400 shape as the explicit validators
            payload = ErrorResponse(code="validation_error", detail="Validation failed", meta={"errors": field_errors(errors, "body")})
            return JSONResponse(status_code=400, content=payload.model_dump())
        payload = ErrorResponse(code="validation_error", detail="Validation failed", meta={"errors": errors})
        return JSONResponse(status_code=422, content=jsonable_encoder(payload.model_dump()))

    @app.exception_handler(RecipeError)
    async def recipe_error_handler(request: Request, exc: RecipeError):
        payload = ErrorResponse(code=exc.code, detail=exc.detail, meta=exc.meta)
        return JSONResponse(status_code=exc.status_code, content=payload.model_dump())

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        # the workflow maps this to VersionConflict itself; this covers writes
        # flushed outside it, e.g. by a session committed in a dependency
        logger.warning("Optimistic lock failure on %s %s: %s", request.method, request.url.path, exc)
        payload = ErrorResponse(code="conflict", detail="Resource was modified concurrently")
        return JSONResponse(status_code=409, content=payload.model_dump())

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
        payload = ErrorResponse(code="internal_error", detail="Internal server error")
        return JSONResponse(status_code=500, content=payload.model_dump())
