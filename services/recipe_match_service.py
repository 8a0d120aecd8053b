"""
Recipe Match Service - suggest catalog recipes from the ingredients a user has
"""
import logging
from typing import List, Optional

from models.recipe import CatalogRecipe

logger = logging.getLogger(__name__)

CATALOG = [
    CatalogRecipe(
        id=1,
        name="Classic Spaghetti Carbonara",
        cook_time=25,
        servings=4,
        ingredients=["pasta", "eggs", "bacon", "parmesan", "black pepper", "garlic"],
    ),
    CatalogRecipe(
        id=2,
        name="Chicken Stir-Fry",
        cook_time=30,
        servings=4,
        ingredients=["chicken", "bell pepper", "broccoli", "carrots", "soy sauce", "garlic", "ginger"],
    ),
    CatalogRecipe(
        id=3,
        name="Vegetarian Buddha Bowl",
        cook_time=35,
        servings=2,
        ingredients=["quinoa", "chickpeas", "sweet potato", "kale", "avocado", "tahini"],
    ),
]


def ingredients_match(user_ingredient: str, recipe_ingredient: str) -> bool:
    """Either name contains the other ("cherry tomatoes" matches "tomatoes" and vice versa)."""
    return user_ingredient in recipe_ingredient or recipe_ingredient in user_ingredient


class RecipeMatchService:
    """Matches against an in-memory catalog; no store or completion calls."""

    def __init__(self, catalog: Optional[List[CatalogRecipe]] = None):
        self.catalog = CATALOG if catalog is None else catalog

    def find_recipes(self, ingredients: List[str]) -> List[CatalogRecipe]:
        """
        Recipes sharing at least one ingredient with `ingredients`, most
        matches first. Matching is case-insensitive; ties keep catalog order.
        """
        names = [name.strip().lower() for name in ingredients if name and name.strip()]
        if not names:
            return []

        matches = []
        for recipe in self.catalog:
            matching = [
                ingredient for ingredient in recipe.ingredients
                if any(ingredients_match(name, ingredient.lower()) for name in names)
            ]
            if matching:
                matches.append(recipe.model_copy(update={"matching_ingredients": matching}))

        matches.sort(key=lambda r: len(r.matching_ingredients), reverse=True)
        logger.info(f"Matched {len(matches)} catalog recipe(s) for {len(names)} ingredient(s)")
        return matches
