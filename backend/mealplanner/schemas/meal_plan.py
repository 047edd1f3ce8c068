from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from datetime import date

from mealplanner.schemas.generation import TIMEFRAME_DAYS, GeneratedMeal, MealType

MAX_PLAN_DAYS = TIMEFRAME_DAYS["month"]

# Unset when the plan date itself could not be computed
OptionalDate = Optional[date]


# REQUESTS
class SavePlanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    anchor_date: date
    meals: List[GeneratedMeal]

    @field_validator("meals")
    @classmethod
    def days_within_plan(cls, value: List[GeneratedMeal]) -> List[GeneratedMeal]:
        for index, meal in enumerate(value):
            if meal.day > MAX_PLAN_DAYS:
                raise ValueError(f"Meal {index} is on day {meal.day}; plans cover at most {MAX_PLAN_DAYS} days")
        return value


# RESPONSES
class SavedMealResult(BaseModel):
    index: int
    day: int
    meal_type: MealType
    date: date
    meal_id: str
    plan_item_id: str


class FailedMealResult(BaseModel):
    index: int
    day: int
    meal_type: MealType
    date: OptionalDate = None
    error: str


class PlanSaveReport(BaseModel):
    """Per-meal outcome of a save; each meal + plan item pair commits on its own."""
    saved: List[SavedMealResult] = []
    failed: List[FailedMealResult] = []

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        total = len(self.saved) + len(self.failed)
        if self.ok:
            return f"Saved {total} meals"
        return f"Saved {len(self.saved)} of {total} meals; {len(self.failed)} failed"
