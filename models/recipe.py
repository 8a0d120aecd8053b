from typing import List, Optional

from pydantic import BaseModel, Field

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MEAL_TYPES = ["breakfast", "lunch", "dinner"]


# Completion payloads
class GeneratedRecipe(BaseModel):
    name: str
    cook_time: int = Field(alias="cookTime")
    servings: int
    ingredients: List[str]
    instructions: List[str]

    model_config = {"populate_by_name": True}


class DayPlan(BaseModel):
    breakfast: str
    lunch: str
    dinner: str


class ShoppingCategory(BaseModel):
    category: str
    items: List[str]


# Request models
class RecipeRequest(BaseModel):
    ingredients: List[str] = Field(..., min_length=1, description="Ingredient names the user has on hand")


class ChefPromptRequest(BaseModel):
    prompt: str = Field(..., min_length=1, description="Free-form question for the AI chef")


class SaveRecipeRequest(BaseModel):
    name: str = Field(..., min_length=1)
    meal_type: str = Field(default="")
    ingredients: str = Field(default="")
    instructions: str = Field(default="")


class ShoppingListRequest(BaseModel):
    servings: int = Field(default=2, ge=1, le=12)


class MealUpdateRequest(BaseModel):
    model_config = {"str_strip_whitespace": True}

    name: Optional[str] = Field(default=None, min_length=1)
    is_pinned: Optional[bool] = None


class SaveMealRequest(BaseModel):
    servings: int = Field(default=2, ge=1, le=12)


class CatalogRecipe(BaseModel):
    """Recipe from the built-in catalog, with the ingredients the user already has."""
    id: int
    name: str
    cook_time: int = Field(alias="cookTime")
    servings: int
    ingredients: List[str]
    matching_ingredients: List[str] = Field(default_factory=list, alias="matchingIngredients")

    model_config = {"populate_by_name": True}

    @property
    def total_ingredients(self) -> int:
        return len(self.ingredients)
