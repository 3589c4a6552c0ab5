# recipes_api/services/recipes.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from ..errors import RecipeForbidden, RecipeNotFound, VersionConflict
from ..models_db import Ingredient, Instruction, Recipe, now_utc
from ..schemas import IngredientIn, InstructionIn, RecipeCreate, RecipeUpdate
from ..security import Principal

logger = logging.getLogger("recipes_api.recipes")


# ---------------------------
# Reads
# ---------------------------

def _get_live(session: Session, recipe_id: int) -> Recipe:
    """Live recipe by id; soft-deleted rows count as absent."""
    recipe = session.exec(
        select(Recipe).where(Recipe.id == recipe_id, Recipe.deleted_at.is_(None))  # type: ignore[union-attr]
    ).first()
    if recipe is None:
        raise RecipeNotFound(recipe_id)
    return recipe


def _get_owned(session: Session, recipe_id: int, principal: Principal) -> Recipe:
    recipe = _get_live(session, recipe_id)
    if recipe.author != principal.subject:
        logger.warning(
            "Refused %s on recipe #%s (author %s)", principal.subject, recipe_id, recipe.author
        )
        raise RecipeForbidden(recipe_id)
    return recipe


def list_recipes(session: Session) -> List[Recipe]:
    stmt = (
        select(Recipe)
        .where(Recipe.deleted_at.is_(None))  # type: ignore[union-attr]
        .order_by(Recipe.id)
    )
    return list(session.exec(stmt).all())


def get_recipe(session: Session, recipe_id: int) -> Recipe:
    return _get_live(session, recipe_id)


# ---------------------------
# Writes
# ---------------------------

def _add_children(
    session: Session,
    recipe_id: int,
    ingredients: Sequence[IngredientIn] = (),
    instructions: Sequence[InstructionIn] = (),
) -> None:
    # Rows reference the parent by FK only; nothing rides on the object graph
    for item in ingredients:
        session.add(Ingredient(recipe_id=recipe_id, **item.model_dump()))
    for step in instructions:
        session.add(Instruction(recipe_id=recipe_id, **step.model_dump()))


def _reload(session: Session, recipe: Recipe) -> Recipe:
    session.expire(recipe)
    session.refresh(recipe)
    return recipe


def _commit(session: Session, recipe_id: int, expected: Optional[int] = None) -> None:
    try:
        session.commit()
    except StaleDataError as e:
        session.rollback()
        current = session.exec(select(Recipe.version).where(Recipe.id == recipe_id)).first()
        logger.warning("Recipe #%s changed concurrently (expected version %s, now %s)", recipe_id, expected, current)
        raise VersionConflict(recipe_id, expected=expected, actual=current) from e
    except SQLAlchemyError:
        session.rollback()
        raise


def create_recipe(session: Session, data: RecipeCreate, principal: Principal) -> Recipe:
    """
    Inserts the recipe and all of its ingredients/instructions in one
    transaction. The author is always the calling principal.
    """
    recipe = Recipe(
        title=data.title,
        description=data.description or "",
        author=principal.subject,
    )
    try:
        session.add(recipe)
        session.flush()  # id + version
        _add_children(session, recipe.id, data.ingredients, data.instructions)
    except SQLAlchemyError:
        session.rollback()
        raise
    _commit(session, recipe.id)
    _reload(session, recipe)
    logger.info("Recipe #%s created by %s", recipe.id, principal.subject)
    return recipe


def update_recipe(session: Session, recipe_id: int, data: RecipeUpdate, principal: Principal) -> Recipe:
    """
    Partial update, owner only.

    Fields left out keep their value; `ingredients`/`instructions`, when
    given, replace the stored rows. The store bumps `version` once per call.
    """
    recipe = _get_owned(session, recipe_id, principal)
    held = recipe.version
    if data.version is not None and data.version != recipe.version:
        raise VersionConflict(recipe_id, expected=data.version, actual=recipe.version)

    changes = data.model_dump(exclude_unset=True, exclude={"version", "ingredients", "instructions"})
    for key, value in changes.items():
        setattr(recipe, key, value)
    # only reached with the principal already checked against the author
    recipe.author = principal.subject
    recipe.updated_at = now_utc()

    try:
        if data.ingredients is not None:
            for old in list(recipe.ingredients):
                session.delete(old)
            _add_children(session, recipe_id, ingredients=data.ingredients)
        if data.instructions is not None:
            for old in list(recipe.instructions):
                session.delete(old)
            _add_children(session, recipe_id, instructions=data.instructions)
        session.add(recipe)
    except SQLAlchemyError:
        session.rollback()
        raise
    _commit(session, recipe_id, expected=held)
    _reload(session, recipe)
    logger.info("Recipe #%s updated by %s (version %s)", recipe_id, principal.subject, recipe.version)
    return recipe


def remove_recipe(session: Session, recipe_id: int, principal: Principal) -> Recipe:
    """Soft delete: stamps deleted_at, the row and its children stay in place."""
    recipe = _get_owned(session, recipe_id, principal)
    held = recipe.version
    recipe.deleted_at = now_utc()
    session.add(recipe)
    _commit(session, recipe_id, expected=held)
    _reload(session, recipe)
    logger.info("Recipe #%s removed by %s", recipe_id, principal.subject)
    return recipe
