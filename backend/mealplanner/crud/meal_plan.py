import logging
import uuid
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mealplanner.models.meal import Meal, MealPlanItem
from mealplanner.schemas.generation import GeneratedMeal
from mealplanner.schemas.meal_plan import FailedMealResult, PlanSaveReport, SavedMealResult

logger = logging.getLogger(__name__)

"""
Meal Plan CRUD
--------------
Pure Database Access Object for generated meals and plan items.
"""

UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def plan_date_for(anchor_date: date, day: int) -> date:
    """Day 1 is the anchor date itself."""
    return anchor_date + timedelta(days=day - 1)


def build_meal_record(user_id: str, meal: GeneratedMeal) -> Meal:
    return Meal(
        user_id=user_id,
        name=meal.name,
        description=meal.description,
        ingredients=[ingredient.model_dump() for ingredient in meal.ingredients],
        instructions=[step.model_dump() for step in meal.instructions],
        calories=meal.calories,
        protein_g=meal.protein_g,
        carbs_g=meal.carbs_g,
        fat_g=meal.fat_g,
        estimated_cost=meal.estimated_cost,
        prep_time_min=meal.prep_time_min,
        cook_time_min=meal.cook_time_min,
        difficulty=meal.difficulty,
        meal_type=[meal.meal_type],
        tags=list(meal.tags),
        is_ai_generated=True,
    )


def upsert_plan_item(db: Session, user_id: str, meal_id: str, plan_date: date, slot: str) -> str:
    """
    Points (user, date, slot) at meal_id, replacing whatever meal held that
    slot before. Returns the plan item id. Does not commit.
    """
    dialect = db.get_bind().dialect.name
    insert_fn = UPSERT_DIALECTS.get(dialect)

    if insert_fn is not None:
        stmt = insert_fn(MealPlanItem).values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            meal_id=meal_id,
            date=plan_date,
            slot=slot,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "date", "slot"],
            set_={"meal_id": stmt.excluded.meal_id},
        )
        db.execute(stmt)
    else:
        item = db.query(MealPlanItem).filter(
            MealPlanItem.user_id == user_id,
            MealPlanItem.date == plan_date,
            MealPlanItem.slot == slot,
        ).with_for_update().first()
        if item:
            item.meal_id = meal_id
        else:
            db.add(MealPlanItem(user_id=user_id, meal_id=meal_id, date=plan_date, slot=slot))
        db.flush()

    return db.query(MealPlanItem.id).filter(
        MealPlanItem.user_id == user_id,
        MealPlanItem.date == plan_date,
        MealPlanItem.slot == slot,
    ).scalar()


def failed_result(index: int, meal: GeneratedMeal, plan_date: Optional[date]) -> FailedMealResult:
    return FailedMealResult(
        index=index,
        day=meal.day,
        meal_type=meal.meal_type,
        date=plan_date,
        error="Could not save this meal.",
    )


def save_generated_plan(db: Session, user_id: str, meals: List[GeneratedMeal], anchor_date: date) -> PlanSaveReport:
    """
    Writes each meal and its plan item as one unit, committing per meal.
    A failed meal is rolled back and recorded; later meals are still tried.
    """
    report = PlanSaveReport()

    for index, meal in enumerate(meals):
        plan_date = None
        try:
            plan_date = plan_date_for(anchor_date, meal.day)
            record = build_meal_record(user_id, meal)
            db.add(record)
            db.flush()
            meal_id = record.id
            item_id = upsert_plan_item(db, user_id, meal_id, plan_date, meal.meal_type)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Persistence] Failed to save meal {index} ({meal.name}) for {plan_date}: {e}")
            report.failed.append(failed_result(index, meal, plan_date))
            continue
        except Exception as e:
            db.rollback()
            logger.error(f"[Persistence] Unexpected error saving meal {index} ({meal.name}) for day {meal.day}: {e}")
            report.failed.append(failed_result(index, meal, plan_date))
            continue

        report.saved.append(SavedMealResult(
            index=index,
            day=meal.day,
            meal_type=meal.meal_type,
            date=plan_date,
            meal_id=meal_id,
            plan_item_id=item_id,
        ))

    logger.info(f"[Persistence] {report.summary()} for user {user_id}")
    return report

