"""
Recipes Router - catalog matching and the premium saved-recipe book
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_premium
from crud.recipe import RecipeRepository, recipe_to_dict
from database import get_db
from models.recipe import RecipeRequest, SaveRecipeRequest
from models.session import SessionContext
from backend.utils.responses import success_response, error_response
from services.recipe_match_service import RecipeMatchService

recipes_router = APIRouter(prefix="/api/recipes", tags=["recipes"])


@recipes_router.get("")
async def list_recipes(
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
):
    recipes = await RecipeRepository(db).list_recipes(session.user_id)
    return success_response([recipe_to_dict(r) for r in recipes])


@recipes_router.post("")
async def save_recipe(
    request: SaveRecipeRequest,
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
):
    recipe = await RecipeRepository(db).save_recipe(session.user_id, request.model_dump())
    return success_response(recipe_to_dict(recipe), message="Recipe saved", status=201)


@recipes_router.delete("/{recipe_id}")
async def remove_recipe(
    recipe_id: str,
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
):
    removed = await RecipeRepository(db).remove_recipe(session.user_id, recipe_id)
    if not removed:
        return error_response("not_found", status=404, message="Recipe not found")
    return success_response({"id": recipe_id}, message="Recipe removed")


@recipes_router.post("/match")
async def match_recipes(request: RecipeRequest):
    """Catalog recipes that use what the caller has on hand. Open to everyone."""
    matches = RecipeMatchService().find_recipes(request.ingredients)
    return success_response([
        {**recipe.model_dump(by_alias=True), "totalIngredients": recipe.total_ingredients}
        for recipe in matches
    ])
