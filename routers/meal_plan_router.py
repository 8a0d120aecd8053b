"""
Meal Plan Router - premium weekly meal planner
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_premium
from crud.meal_plan import MealPlanRepository, entry_to_dict
from crud.recipe import RecipeRepository, recipe_to_dict
from database import get_db
from models.recipe import DAYS, MEAL_TYPES, MealUpdateRequest, SaveMealRequest, ShoppingListRequest
from models.session import SessionContext
from routers.chef_router import get_chef_service
from services.chef_service import ChefService, split_recipe_text
from backend.utils.errors import GenerationError
from backend.utils.responses import success_response, error_response
from utils.shared_utils import log_endpoint_event

meal_plan_router = APIRouter(prefix="/api/meal-plan", tags=["meal-plan"])


@meal_plan_router.get("")
async def get_meal_plan(
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
):
    entries = await MealPlanRepository(db).list_entries(session.user_id)
    return success_response([entry_to_dict(e) for e in entries])


@meal_plan_router.post("/generate")
async def generate_meal_plan(
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
    chef: ChefService = Depends(get_chef_service),
):
    """Generate a new week; pinned meals are kept in their slots"""
    repo = MealPlanRepository(db)
    try:
        plan = await chef.generate_meal_plan()
    except GenerationError as e:
        log_endpoint_event("/api/meal-plan/generate", str(session.user_id), "error", {"error": str(e)})
        return error_response("generation_failed", status=502, message=str(e))

    pinned = {
        (e.day, e.meal_type)
        for e in await repo.list_entries(session.user_id)
        if e.is_pinned
    }
    new_entries = [
        {"day": day, "meal_type": meal_type, "name": getattr(day_plan, meal_type)}
        for day, day_plan in zip(DAYS, plan)
        for meal_type in MEAL_TYPES
        if (day, meal_type) not in pinned
    ]
    entries = await repo.replace_unpinned(session.user_id, new_entries)
    log_endpoint_event("/api/meal-plan/generate", str(session.user_id), "success", {"kept_pinned": len(pinned)})
    return success_response([entry_to_dict(e) for e in entries])


@meal_plan_router.post("/shopping-list")
async def shopping_list(
    request: ShoppingListRequest,
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
    chef: ChefService = Depends(get_chef_service),
):
    entries = await MealPlanRepository(db).list_entries(session.user_id)
    meals = [f"{e.name} (for {request.servings} people)" for e in entries if e.name.strip()]
    if not meals:
        return error_response("empty_meal_plan", status=400, message="Generate a meal plan first")
    try:
        categories = await chef.generate_shopping_list(meals)
    except GenerationError as e:
        return error_response("generation_failed", status=502, message=str(e))
    return success_response([c.model_dump() for c in categories])


@meal_plan_router.patch("/{entry_id}")
async def update_meal(
    entry_id: str,
    request: MealUpdateRequest,
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
):
    """Rename a meal and/or toggle its pin"""
    repo = MealPlanRepository(db)
    entry = await repo.get_entry(session.user_id, entry_id)
    if entry is None:
        return error_response("not_found", status=404, message="Meal not found")
    if request.name is not None:
        entry.name = request.name
    if request.is_pinned is not None:
        entry = await repo.set_pinned(entry, request.is_pinned)
    else:
        await db.flush()
    return success_response(entry_to_dict(entry))


@meal_plan_router.post("/{entry_id}/save")
async def save_meal_recipe(
    entry_id: str,
    request: SaveMealRequest,
    session: SessionContext = Depends(require_premium),
    db: AsyncSession = Depends(get_db),
    chef: ChefService = Depends(get_chef_service),
):
    """Generate a detailed recipe for a planned meal and add it to the recipe book"""
    entry = await MealPlanRepository(db).get_entry(session.user_id, entry_id)
    if entry is None:
        return error_response("not_found", status=404, message="Meal not found")
    try:
        details = await chef.generate_custom_recipe(
            f"Generate a detailed recipe for {entry.name} to serve {request.servings} people"
        )
    except GenerationError as e:
        return error_response("generation_failed", status=502, message=str(e))

    ingredients, instructions = split_recipe_text(details)
    recipe = await RecipeRepository(db).save_recipe(session.user_id, {
        "name": entry.name,
        "meal_type": f"{entry.day} - {entry.meal_type} ({request.servings} servings)",
        "ingredients": ingredients,
        "instructions": instructions,
    })
    return success_response(recipe_to_dict(recipe), message="Recipe saved", status=201)
