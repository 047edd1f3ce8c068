import logging
from datetime import date
from typing import List

from sqlalchemy.orm import Session

from mealplanner.crud import meal_plan as crud_meal_plan
from mealplanner.exceptions import PersistenceFailure
from mealplanner.schemas.generation import GeneratedMeal
from mealplanner.schemas.meal_plan import PlanSaveReport

logger = logging.getLogger(__name__)


def persist_generated_plan(db: Session, user_id: str, meals: List[GeneratedMeal], anchor_date: date) -> PlanSaveReport:
    """
    Saves accepted meals starting at anchor_date (day 1).

    Returns the report when every meal saved. Otherwise raises
    PersistenceFailure carrying the same report, so the caller always learns
    which meals did commit before or after the failing ones.
    """
    report = crud_meal_plan.save_generated_plan(db, user_id, meals, anchor_date)
    if not report.ok:
        logger.warning(f"[Persistence] Partial save for user {user_id}: {report.summary()}")
        raise PersistenceFailure(report, message=report.summary())
    return report
