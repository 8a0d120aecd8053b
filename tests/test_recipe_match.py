"""
Tests for matching on-hand ingredients against the recipe catalog
"""
import pytest

from models.recipe import CatalogRecipe
from services.recipe_match_service import RecipeMatchService, ingredients_match


def _names(recipes):
    return [r.name for r in recipes]


def test_most_matches_first():
    matches = RecipeMatchService().find_recipes(["garlic", "chicken", "ginger", "pasta"])

    assert _names(matches) == ["Chicken Stir-Fry", "Classic Spaghetti Carbonara"]
    assert matches[0].matching_ingredients == ["chicken", "garlic", "ginger"]
    assert matches[1].matching_ingredients == ["pasta", "garlic"]


def test_recipes_without_matches_are_dropped():
    matches = RecipeMatchService().find_recipes(["kale"])

    assert _names(matches) == ["Vegetarian Buddha Bowl"]
    assert matches[0].total_ingredients == 6


def test_ties_keep_catalog_order():
    matches = RecipeMatchService().find_recipes(["garlic"])

    assert _names(matches) == ["Classic Spaghetti Carbonara", "Chicken Stir-Fry"]


def test_matching_is_case_insensitive():
    matches = RecipeMatchService().find_recipes(["  QUINOA ", "Avocado"])

    assert _names(matches) == ["Vegetarian Buddha Bowl"]
    assert matches[0].matching_ingredients == ["quinoa", "avocado"]


def test_partial_names_match_both_ways():
    assert ingredients_match("smoked bacon", "bacon")
    assert ingredients_match("pepper", "black pepper")
    assert not ingredients_match("rice", "quinoa")

    matches = RecipeMatchService().find_recipes(["pepper"])
    assert _names(matches) == ["Classic Spaghetti Carbonara", "Chicken Stir-Fry"]
    assert matches[0].matching_ingredients == ["black pepper"]
    assert matches[1].matching_ingredients == ["bell pepper"]


def test_blank_ingredients_match_nothing():
    assert RecipeMatchService().find_recipes(["", "   "]) == []
    assert RecipeMatchService().find_recipes(["dragonfruit"]) == []


def test_catalog_entries_are_not_modified():
    service = RecipeMatchService()
    service.find_recipes(["eggs"])

    assert all(recipe.matching_ingredients == [] for recipe in service.catalog)


def test_custom_catalog():
    catalog = [
        CatalogRecipe(id=1, name="Toast", cook_time=5, servings=1, ingredients=["bread", "butter"]),
        CatalogRecipe(id=2, name="Butter Bread Pudding", cook_time=50, servings=6,
                      ingredients=["bread", "butter", "milk", "eggs"]),
    ]

    matches = RecipeMatchService(catalog).find_recipes(["bread", "butter", "milk"])

    assert _names(matches) == ["Butter Bread Pudding", "Toast"]


@pytest.mark.asyncio
async def test_match_endpoint_is_open(async_client):
    response = await async_client.post("/api/recipes/match", json={"ingredients": ["Eggs", "bacon"]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["name"] == "Classic Spaghetti Carbonara"
    assert data[0]["cookTime"] == 25
    assert data[0]["servings"] == 4
    assert data[0]["matchingIngredients"] == ["eggs", "bacon"]
    assert data[0]["totalIngredients"] == 6


@pytest.mark.asyncio
async def test_match_endpoint_requires_ingredients(async_client):
    response = await async_client.post("/api/recipes/match", json={"ingredients": []})
    assert response.status_code == 422
