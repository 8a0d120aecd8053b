"""
Chef Router - AI recipe suggestion and chef advice
"""
from fastapi import APIRouter, Depends

from auth import get_current_user, require_premium
from models.recipe import RecipeRequest, ChefPromptRequest
from models.session import SessionContext
from services.chef_service import ChefService
from backend.utils.errors import GenerationError
from backend.utils.responses import success_response, error_response
from utils.shared_utils import log_endpoint_event

chef_router = APIRouter(prefix="/api/chef", tags=["chef"])


def get_chef_service() -> ChefService:
    return ChefService()


@chef_router.post("/recipe")
async def suggest_recipe(
    request: RecipeRequest,
    session: SessionContext = Depends(get_current_user),
    chef: ChefService = Depends(get_chef_service),
):
    """Suggest a recipe for the given ingredients"""
    try:
        recipe = await chef.generate_recipe(request.ingredients)
    except GenerationError as e:
        log_endpoint_event("/api/chef/recipe", str(session.user_id), "error", {"error": str(e)})
        return error_response("generation_failed", status=502, message=str(e))
    return success_response(recipe.model_dump(by_alias=True))


@chef_router.post("/ask")
async def ask_chef(
    request: ChefPromptRequest,
    session: SessionContext = Depends(require_premium),
    chef: ChefService = Depends(get_chef_service),
):
    """Premium: free-form AI chef advice"""
    try:
        answer = await chef.generate_custom_recipe(request.prompt)
    except GenerationError as e:
        log_endpoint_event("/api/chef/ask", str(session.user_id), "error", {"error": str(e)})
        return error_response("generation_failed", status=502, message=str(e))
    return success_response({"answer": answer})
