from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

# === Input ===

class IngredientIn(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: str = Field(min_length=1, examples=["1"])
    unit: str = Field(min_length=1, examples=["L"])
    description: str = Field(min_length=1, examples=["water"])

class InstructionIn(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    details: str = Field(min_length=1, examples=["boil"])

class RecipeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(min_length=1, examples=["Soup"])
    description: Optional[str] = None
    ingredients: List[IngredientIn] = Field(min_length=1)
    instructions: List[InstructionIn] = Field(min_length=1)

class RecipeUpdate(BaseModel):
    """
    Partial update: fields left out keep their stored value.
    `version`, when present, must match the stored version (optimistic lock).
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    ingredients: Optional[List[IngredientIn]] = Field(default=None, min_length=1)
    instructions: Optional[List[InstructionIn]] = Field(default=None, min_length=1)
    version: Optional[int] = Field(default=None, ge=1)

# === Output ===

class IngredientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: str
    unit: str
    description: str

class InstructionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    details: str

class RecipeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    author: str
    version: int
    ingredients: List[IngredientOut] = []
    instructions: List[InstructionOut] = []
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
