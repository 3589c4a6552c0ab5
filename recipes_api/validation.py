from __future__ import annotations
from typing import Any, Dict, List, Type, TypeVar
from pydantic import BaseModel, ValidationError

from .errors import InputValidationError, field_errors
from .schemas import RecipeCreate, RecipeUpdate

M = TypeVar("M", bound=BaseModel)

# optional in an update, but never nullable once present
NON_NULLABLE_UPDATE_FIELDS = ("title", "description", "ingredients", "instructions")

def violations(exc: ValidationError) -> List[Dict[str, str]]:
    return field_errors(exc.errors())

def _parse(model: Type[M], payload: Any) -> M:
    if not isinstance(payload, dict):
        raise InputValidationError([{"field": "body", "message": "Expected a JSON object"}])
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError(violations(exc)) from exc

def validate_recipe_create(payload: Any) -> RecipeCreate:
    return _parse(RecipeCreate, payload)

def validate_recipe_update(payload: Any) -> RecipeUpdate:
    if not isinstance(payload, dict):
        raise InputValidationError([{"field": "body", "message": "Expected a JSON object"}])
    errors = [
        {"field": name, "message": "may not be null"}
        for name in NON_NULLABLE_UPDATE_FIELDS
        if name in payload and payload[name] is None
    ]
    try:
        data = RecipeUpdate.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError(errors + violations(exc)) from exc
    if errors:
        raise InputValidationError(errors)
    if not (data.model_fields_set - {"version"}):
        raise InputValidationError([{"field": "body", "message": "At least one field to update is required"}])
    return data
