import json

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mealplanner.database import Base
import mealplanner.models  # noqa: F401
from mealplanner.models.meal import MealPlanItem

MEAL_TYPES = ["breakfast", "lunch", "dinner", "snack"]


def request_body(**overrides):
    body = {
        "timeframe": "week",
        "budget": 40,
        "max_cook_time": 30,
        "servings": 2,
        "dietary_restrictions": ["vegetarian"],
        "available_ingredients": ["rice", "black beans"],
        "skill_level": "beginner",
    }
    body.update(overrides)
    return body


def meal_dict(day=1, meal_type="dinner", **overrides):
    meal = {
        "name": f"Bean Burrito Bowl {day}-{meal_type}",
        "description": "Rice, beans and salsa in one bowl.",
        "meal_type": meal_type,
        "day": day,
        "ingredients": [
            {"name": "rice", "quantity": "1", "unit": "cup", "estimated_cost": 0.3},
            {"name": "black beans", "quantity": "0.5", "unit": "can", "estimated_cost": 0.6},
        ],
        "instructions": [
            {"step": 1, "text": "Cook the rice."},
            {"step": 2, "text": "Warm the beans and serve over rice."},
        ],
        "calories": 520,
        "protein_g": 18,
        "carbs_g": 90,
        "fat_g": 6.5,
        "estimated_cost": 1.4,
        "prep_time_min": 5,
        "cook_time_min": 20,
        "difficulty": "easy",
        "tags": ["budget-friendly", "vegetarian"],
    }
    meal.update(overrides)
    return meal


def week_of_meals(days=7):
    """Four meals per day, one per slot."""
    return [meal_dict(day=day, meal_type=meal_type) for day in range(1, days + 1) for meal_type in MEAL_TYPES]


def model_text(meals, fenced=False):
    text = json.dumps({"meals": meals})
    if fenced:
        text = f"```json\n{text}\n```"
    return text


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def plan_items(db, user_id, start, end):
    """Plan items in [start, end), ordered by date then slot."""
    return db.query(MealPlanItem).filter(
        MealPlanItem.user_id == user_id,
        MealPlanItem.date >= start,
        MealPlanItem.date < end,
    ).order_by(MealPlanItem.date, MealPlanItem.slot).all()
