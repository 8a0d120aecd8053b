"""
Chef Service - recipe, chef advice, meal plan and shopping list generation
"""
import logging
import time
from typing import List, Optional

from pydantic import ValidationError

from models.recipe import DAYS, GeneratedRecipe, DayPlan, ShoppingCategory
from services.completion_service import CompletionService
from backend.utils.errors import GenerationError

logger = logging.getLogger(__name__)

SHOPPING_CATEGORIES = [
    "Produce",
    "Meat & Seafood",
    "Dairy & Eggs",
    "Pantry",
    "Grains & Bread",
    "Frozen",
    "Condiments & Spices",
]


def _timestamp() -> int:
    # Included in system prompts so repeated requests get different suggestions
    return int(time.time() * 1000)


class ChefService:
    """Prompts for each generation call site. No retries; failures surface to the caller."""

    def __init__(self, completion: Optional[CompletionService] = None):
        self.completion = completion or CompletionService()

    async def generate_recipe(self, ingredients: List[str]) -> GeneratedRecipe:
        """Suggest one recipe using some or all of `ingredients`."""
        ingredient_list = ", ".join(i.strip() for i in ingredients if i.strip())
        system_prompt = (
            "You are a helpful chef that suggests recipes based on available ingredients. "
            f"Current timestamp: {_timestamp()}. Always provide unique suggestions. "
            "Respond in JSON format with the following structure: "
            "{ name: string, cookTime: number, servings: number, ingredients: string[], instructions: string[] }"
        )
        user_prompt = (
            f"Suggest a unique recipe I can make with some or all of these ingredients: {ingredient_list}. "
            "Include additional common ingredients if needed."
        )
        data = await self.completion.complete_chat(system_prompt, user_prompt, json_response=True)
        try:
            return GeneratedRecipe.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid recipe format received: {e}")
            raise GenerationError("Invalid recipe format received. Please try again.") from e

    async def generate_custom_recipe(self, prompt: str) -> str:
        """Free-form chef advice as plain text."""
        system_prompt = (
            "You are a professional chef providing detailed cooking instructions. "
            f"Current timestamp: {_timestamp()}. Always provide unique suggestions. "
            "Format your response with clear sections for ingredients (with exact measurements) "
            "and step-by-step instructions."
        )
        return await self.completion.complete_chat(system_prompt, prompt)

    async def generate_meal_plan(self) -> List[DayPlan]:
        """Seven days of breakfast/lunch/dinner names, Monday first."""
        system_prompt = (
            "You are a nutritionist creating weekly meal plans. "
            f"Current timestamp: {_timestamp()}. Always provide unique suggestions. "
            "Respond in JSON format with the following structure:\n"
            '{"weeklyPlan": [{"breakfast": "Meal name", "lunch": "Meal name", "dinner": "Meal name"}]}\n'
            f"Generate {len(DAYS)} days of unique, creative meals."
        )
        user_prompt = "Generate a balanced weekly meal plan with variety and nutrition in mind."
        data = await self.completion.complete_chat(system_prompt, user_prompt, json_response=True)

        weekly_plan = data.get("weeklyPlan") if isinstance(data, dict) else None
        if not isinstance(weekly_plan, list) or len(weekly_plan) < len(DAYS):
            logger.warning(f"Invalid meal plan format received: {str(data)[:200]}")
            raise GenerationError("Failed to generate meal plan. Please try again.")
        try:
            return [DayPlan.model_validate(day) for day in weekly_plan[:len(DAYS)]]
        except ValidationError as e:
            logger.warning(f"Invalid meal plan entry received: {e}")
            raise GenerationError("Failed to generate meal plan. Please try again.") from e

    async def generate_shopping_list(self, meals: List[str]) -> List[ShoppingCategory]:
        """Categorized shopping list with quantities for the given meal names."""
        system_prompt = (
            "You are a helpful chef creating organized shopping lists. "
            f"Current timestamp: {_timestamp()}. Given a list of meals and servings, "
            "create a categorized shopping list with exact quantities.\n"
            "Respond in JSON format with the following structure:\n"
            '{"shoppingList": [{"category": "Category name", "items": ["2 lbs chicken breast", "1 gallon milk"]}]}\n'
            f"Categories should include: {', '.join(SHOPPING_CATEGORIES)}.\n"
            "Always specify quantities in common measurements (cups, ounces, pounds, etc.)."
        )
        user_prompt = f"Create a detailed shopping list with exact quantities for these meals: {', '.join(meals)}"
        data = await self.completion.complete_chat(system_prompt, user_prompt, json_response=True)

        shopping_list = data.get("shoppingList") if isinstance(data, dict) else None
        if not isinstance(shopping_list, list):
            logger.warning(f"Invalid shopping list format received: {str(data)[:200]}")
            raise GenerationError("Failed to generate shopping list. Please try again.")
        try:
            return [ShoppingCategory.model_validate(c) for c in shopping_list]
        except ValidationError as e:
            logger.warning(f"Invalid shopping list entry received: {e}")
            raise GenerationError("Failed to generate shopping list. Please try again.") from e


def split_recipe_text(text: str) -> tuple:
    """
    Split generated recipe text into (ingredients, instructions) at the first
    blank line. Text without a blank line is treated as all instructions.
    """
    parts = text.strip().split("\n\n", 1)
    if len(parts) == 1:
        return "", parts[0]
    return parts[0].strip(), parts[1].strip()
