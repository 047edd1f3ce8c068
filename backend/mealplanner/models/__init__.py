# Import all models here
from mealplanner.models.meal import Meal, MealPlanItem
