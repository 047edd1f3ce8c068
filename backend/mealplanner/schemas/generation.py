from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic_core import PydanticCustomError
from typing import Annotated, List, Literal, Optional

from mealplanner.config import MAX_BUDGET
from mealplanner.exceptions import ContentRejected
from mealplanner.utils.sanitizer import sanitize_for_prompt

Timeframe = Literal["day", "week", "month"]
SkillLevel = Literal["beginner", "intermediate", "advanced"]
DietaryRestriction = Literal[
    "vegan",
    "vegetarian",
    "gluten_free",
    "dairy_free",
    "nut_free",
    "halal",
    "kosher",
]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]
Difficulty = Literal["easy", "medium", "hard"]

TIMEFRAME_DAYS = {"day": 1, "week": 7, "month": 28}

CONTENT_REJECTED = "content_rejected"


def sanitize_ingredient(value: str) -> str:
    # Reported as a validation issue so the other fields are still checked
    try:
        text = sanitize_for_prompt(value)
    except ContentRejected as e:
        raise PydanticCustomError(CONTENT_REJECTED, e.message) from e
    if not text:
        raise ValueError("Ingredient cannot be empty")
    return text


IngredientText = Annotated[str, StringConstraints(max_length=100), AfterValidator(sanitize_ingredient)]


# REQUESTS
class GenerationRequest(BaseModel):
    """
    A meal plan generation request. Strict: unknown fields are rejected and
    numbers are never coerced from strings or booleans.
    """
    model_config = ConfigDict(extra="forbid", strict=True)

    timeframe: Timeframe
    budget: float = Field(..., ge=1, le=MAX_BUDGET, description="Total budget in USD for the timeframe")
    max_cook_time: int = Field(..., ge=1, le=480, description="Minutes per meal")
    servings: int = Field(..., ge=1, le=50)
    daily_calories: Optional[int] = Field(None, ge=500, le=10000)
    dietary_restrictions: List[DietaryRestriction] = Field(..., max_length=7)
    available_ingredients: List[IngredientText] = Field(..., max_length=50)
    skill_level: SkillLevel

    @field_validator("dietary_restrictions")
    @classmethod
    def restrictions_unique(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("Dietary restrictions must not repeat")
        return value

    @property
    def day_count(self) -> int:
        return TIMEFRAME_DAYS[self.timeframe]


# GENERATED MEALS
class Ingredient(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., min_length=1, max_length=200)
    quantity: str = Field(..., max_length=50)
    unit: str = Field(..., max_length=50)
    estimated_cost: float = Field(..., ge=0, le=10000)


class InstructionStep(BaseModel):
    step: int = Field(..., ge=1)
    text: str = Field(..., min_length=1, max_length=2000)


class GeneratedMeal(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., max_length=2000)
    meal_type: MealType
    day: int = Field(..., ge=1, description="1-based, continuous across month chunks")
    ingredients: List[Ingredient] = Field(..., max_length=50)
    instructions: List[InstructionStep] = Field(..., max_length=100)
    calories: int = Field(..., ge=0, le=50000)
    protein_g: float = Field(..., ge=0, le=5000)
    carbs_g: float = Field(..., ge=0, le=5000)
    fat_g: float = Field(..., ge=0, le=5000)
    estimated_cost: float = Field(..., ge=0, le=10000)
    prep_time_min: int = Field(..., ge=0, le=1440)
    cook_time_min: int = Field(..., ge=0, le=1440)
    difficulty: Difficulty
    tags: List[Annotated[str, StringConstraints(max_length=50)]] = Field(default_factory=list, max_length=20)

    def shifted(self, days: int) -> "GeneratedMeal":
        return self.model_copy(update={"day": self.day + days})


# RESPONSES
class GenerationResponse(BaseModel):
    meals: List[GeneratedMeal]
