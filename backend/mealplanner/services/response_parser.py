import json
import logging
import re
from typing import List, Optional

from pydantic import ValidationError

from mealplanner.exceptions import ResponseMalformed
from mealplanner.schemas.generation import GeneratedMeal
from mealplanner.validation import format_validation_errors

logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?([\s\S]*?)\n?\s*```$", re.IGNORECASE)


def extract_json(raw: str) -> str:
    """
    Strips one enclosing ```json ... ``` (or bare ```) fence if present.
    Idempotent: text without a fence comes back trimmed and otherwise untouched.
    """
    text = raw.strip()
    match = CODE_FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return text


def parse_meals(raw: str, expected_days: Optional[int] = None) -> List[GeneratedMeal]:
    """
    Parses a model response into GeneratedMeal records.

    All-or-nothing: a single meal with a missing field, an unknown enum
    value or a day outside 1..expected_days fails the whole response.
    """
    text = extract_json(raw)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"[Parser] Failed to parse model JSON ({e}): {text[:500]}")
        raise ResponseMalformed() from e

    if not isinstance(payload, dict):
        logger.error(f"[Parser] Response is not a JSON object: {text[:500]}")
        raise ResponseMalformed("No meals were generated. Please try again.")

    return validate_meals(payload.get("meals"), expected_days)


def validate_meals(items, expected_days: Optional[int] = None) -> List[GeneratedMeal]:
    """Validates an already-decoded meals array against the GeneratedMeal schema."""
    if not isinstance(items, list) or not items:
        logger.error("[Parser] Response has no 'meals' array")
        raise ResponseMalformed("No meals were generated. Please try again.")

    meals = []
    for index, item in enumerate(items):
        try:
            meal = GeneratedMeal.model_validate(item)
        except ValidationError as e:
            details = [
                {"field": f"meals.{index}.{d['field']}", "message": d["message"]}
                for d in format_validation_errors(e)
            ]
            logger.error(f"[Parser] Meal {index} failed validation: {details[:3]}")
            raise ResponseMalformed(details=details) from e

        if expected_days is not None and meal.day > expected_days:
            logger.error(f"[Parser] Meal {index} has day {meal.day}, expected at most {expected_days}")
            raise ResponseMalformed(
                details=[{"field": f"meals.{index}.day", "message": f"Day must be between 1 and {expected_days}"}]
            )
        meals.append(meal)

    return meals
