"""
RecipeRepository for the saved-recipe book
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database_models import SavedRecipe


class RecipeRepository:
    """Saved recipes, always scoped to one user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_recipes(self, user_id: int) -> List[SavedRecipe]:
        result = await self.db.execute(
            select(SavedRecipe)
            .where(SavedRecipe.user_id == user_id)
            .order_by(SavedRecipe.created_at)
        )
        return list(result.scalars().all())

    async def get_recipe(self, user_id: int, recipe_id: str) -> Optional[SavedRecipe]:
        result = await self.db.execute(
            select(SavedRecipe).where(
                SavedRecipe.user_id == user_id,
                SavedRecipe.id == recipe_id,
            )
        )
        return result.scalar_one_or_none()

    async def save_recipe(self, user_id: int, recipe_data: dict) -> SavedRecipe:
        """
        Add a recipe to the user's book. The id is generated here.

        Args:
            user_id: Owner of the recipe
            recipe_data: name, meal_type, ingredients, instructions
        """
        recipe = SavedRecipe(
            user_id=user_id,
            name=recipe_data["name"],
            meal_type=recipe_data.get("meal_type", ""),
            ingredients=recipe_data.get("ingredients", ""),
            instructions=recipe_data.get("instructions", ""),
        )
        self.db.add(recipe)
        await self.db.flush()
        await self.db.refresh(recipe)
        return recipe

    async def remove_recipe(self, user_id: int, recipe_id: str) -> bool:
        result = await self.db.execute(
            delete(SavedRecipe).where(
                SavedRecipe.user_id == user_id,
                SavedRecipe.id == recipe_id,
            )
        )
        await self.db.flush()
        return result.rowcount > 0


def recipe_to_dict(recipe: SavedRecipe) -> dict:
    return {
        "id": recipe.id,
        "name": recipe.name,
        "mealType": recipe.meal_type,
        "ingredients": recipe.ingredients,
        "instructions": recipe.instructions,
    }
