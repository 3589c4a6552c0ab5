from __future__ import annotations

import logging
from typing import Any, List
from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from ..db import get_session
from ..security import Principal, get_current_principal
from ..errors import ErrorResponse
from ..schemas import RecipeOut
from ..validation import validate_recipe_create, validate_recipe_update
from ..services import recipes as workflow

logger = logging.getLogger("recipes_api.routes.recipes")

router = APIRouter(prefix="/recipes", tags=["recipes"])

CREATE_EXAMPLES = {
    "soup": {
        "summary": "Minimal recipe",
        "value": {
            "title": "Soup",
            "description": "Hot water, basically",
            "ingredients": [{"amount": "1", "unit": "L", "description": "water"}],
            "instructions": [{"details": "boil"}],
        },
    }
}

UPDATE_EXAMPLES = {
    "rename": {"summary": "Change the title", "value": {"title": "Soup v2"}},
    "guarded": {"summary": "Only if nobody else changed it", "value": {"title": "Soup v3", "version": 2}},
}


@router.get(
    "",
    response_model=List[RecipeOut],
    summary="List every live recipe with its ingredients and instructions",
)
def list_recipes(session: Session = Depends(get_session)):
    rows = workflow.list_recipes(session)
    logger.debug("list_recipes -> %d rows", len(rows))
    return [RecipeOut.model_validate(r) for r in rows]


@router.get(
    "/{recipe_id}",
    response_model=RecipeOut,
    summary="Get a recipe by id",
    responses={404: {"model": ErrorResponse}},
)
def get_recipe(recipe_id: int, session: Session = Depends(get_session)):
    return RecipeOut.model_validate(workflow.get_recipe(session, recipe_id))


@router.post(
    "",
    response_model=RecipeOut,
    status_code=201,
    summary="Create a recipe owned by the caller",
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def create_recipe(
    payload: Any = Body(..., openapi_examples=CREATE_EXAMPLES),
    session: Session = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
):
    data = validate_recipe_create(payload)
    recipe = workflow.create_recipe(session, data, principal)
    return RecipeOut.model_validate(recipe)


@router.patch(
    "/{recipe_id}",
    response_model=RecipeOut,
    summary="Partially update a recipe (author only)",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def update_recipe(
    recipe_id: int,
    payload: Any = Body(..., openapi_examples=UPDATE_EXAMPLES),
    session: Session = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
):
    data = validate_recipe_update(payload)
    recipe = workflow.update_recipe(session, recipe_id, data, principal)
    return RecipeOut.model_validate(recipe)


@router.delete(
    "/{recipe_id}",
    response_model=RecipeOut,
    summary="Soft-delete a recipe (author only); returns the deleted record",
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_recipe(
    recipe_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
):
    recipe = workflow.remove_recipe(session, recipe_id, principal)
    return RecipeOut.model_validate(recipe)
