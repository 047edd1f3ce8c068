import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from mealplanner.api.auth import AuthenticatedUser, get_current_user
from mealplanner.database import get_db
from mealplanner.exceptions import RateLimited, RequestValidationFailed
from mealplanner.schemas.generation import GenerationResponse
from mealplanner.schemas.meal_plan import PlanSaveReport, SavePlanRequest
from mealplanner.services.meal_generator import MealPlanGenerator
from mealplanner.services.meal_plan_service import persist_generated_plan
from mealplanner.services.rate_limiter import GENERATE_ENDPOINT, RateLimiter
from mealplanner.validation import validate_generation_request

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/meal-plans",
    tags=["Meal Plans"]
)


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_meal_generator() -> MealPlanGenerator:
    return MealPlanGenerator()


@router.post("/generate", response_model=GenerationResponse)
async def generate_meal_plan_endpoint(
    request: Request,
    response: Response,
    current_user: AuthenticatedUser = Depends(get_current_user),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    generator: MealPlanGenerator = Depends(get_meal_generator),
):
    """
    Generates meals for a day, week or month. The body is parsed raw and
    re-validated here no matter what the client already checked.
    """
    try:
        raw_body = await request.json()
    except ValueError:
        raise RequestValidationFailed("Invalid JSON in request body")

    generation_request = validate_generation_request(raw_body)

    rate = await rate_limiter.check_limit(current_user.user_id, GENERATE_ENDPOINT)
    if not rate.allowed:
        raise RateLimited(rate.reset_at)

    logger.info(
        f"Generating {generation_request.timeframe} meal plan for user {current_user.user_id} "
        f"(budget={generation_request.budget}, servings={generation_request.servings})"
    )
    meals = await generator.generate(generation_request)

    response.headers["X-RateLimit-Remaining"] = str(rate.remaining)
    return GenerationResponse(meals=meals)


@router.post("/save", response_model=PlanSaveReport, status_code=status.HTTP_201_CREATED)
def save_meal_plan_endpoint(
    request: SavePlanRequest,
    db: Session = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """
    Saves reviewed meals starting at anchor_date. 201 when every meal saved;
    otherwise the error body carries the per-meal report (207 if some saved).
    """
    return persist_generated_plan(db, current_user.user_id, request.meals, request.anchor_date)
