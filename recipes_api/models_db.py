from typing import List, Optional
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer
from sqlmodel import SQLModel, Field, Relationship


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


# Store-maintained optimistic lock: SQLAlchemy sets 1 on INSERT and adds 1 on
# every UPDATE, matching the old value in the WHERE clause.
_version_column = Column("version", Integer, nullable=False)


class Recipe(SQLModel, table=True):
    __tablename__ = "recipe"
    __mapper_args__ = {"version_id_col": _version_column}

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    author: str = Field(index=True)

    created_at: datetime = Field(default_factory=now_utc, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=now_utc, sa_column=Column(DateTime(timezone=True), nullable=False))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True))
    version: Optional[int] = Field(default=None, sa_column=_version_column)

    ingredients: List["Ingredient"] = Relationship(
        back_populates="recipe",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "Ingredient.id"},
    )
    instructions: List["Instruction"] = Relationship(
        back_populates="recipe",
        sa_relationship_kwargs={"lazy": "selectin", "order_by": "Instruction.id"},
    )


class Ingredient(SQLModel, table=True):
    __tablename__ = "ingredient"

    id: Optional[int] = Field(default=None, primary_key=True)
    amount: str
    unit: str
    description: str
    # NO ACTION: soft-deleting a recipe never touches its children
    recipe_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("recipe.id", ondelete="NO ACTION"), nullable=True, index=True),
    )

    recipe: Optional[Recipe] = Relationship(back_populates="ingredients")


class Instruction(SQLModel, table=True):
    __tablename__ = "instruction"

    id: Optional[int] = Field(default=None, primary_key=True)
    details: str
    recipe_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("recipe.id", ondelete="NO ACTION"), nullable=True, index=True),
    )

    recipe: Optional[Recipe] = Relationship(back_populates="instructions")
