from typing import Any, Dict, List

from pydantic import BaseModel, ValidationError

from mealplanner.config import MAX_BUDGET
from mealplanner.exceptions import ContentRejected, RequestValidationFailed
from mealplanner.schemas.generation import CONTENT_REJECTED, GenerationRequest

# Friendlier wording for the bounds users actually hit from the form
FIELD_MESSAGES = {
    ("budget", "greater_than_equal"): "Budget must be at least $1",
    ("budget", "less_than_equal"): f"Budget cannot exceed ${MAX_BUDGET:,.0f}",
    ("max_cook_time", "greater_than_equal"): "Cook time must be at least 1 minute",
    ("max_cook_time", "less_than_equal"): "Cook time cannot exceed 8 hours",
    ("servings", "greater_than_equal"): "At least 1 serving",
    ("servings", "less_than_equal"): "Max 50 servings",
    ("daily_calories", "greater_than_equal"): "Daily calories must be at least 500",
    ("daily_calories", "less_than_equal"): "Daily calories cannot exceed 10,000",
    ("available_ingredients", "string_too_long"): "Each ingredient must be 100 characters or less",
    ("available_ingredients", "too_long"): "No more than 50 ingredients",
    ("dietary_restrictions", "too_long"): "No more than 7 dietary restrictions",
}


def format_validation_errors(error: ValidationError) -> List[Dict[str, str]]:
    """Flatten a pydantic ValidationError into [{field, message}] in reporting order."""
    details = []
    for issue in error.errors():
        loc = issue.get("loc", ())
        field = ".".join(str(part) for part in loc)
        root = str(loc[0]) if loc else ""
        message = FIELD_MESSAGES.get((root, issue["type"]))
        if message is None:
            message = issue["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            if issue["type"] == "extra_forbidden":
                message = f"Unexpected field '{field}'"
        details.append({"field": field, "message": message})
    return details


def summarize_issues(details: List[Dict[str, str]]) -> str:
    """Message naming the first failing field."""
    first = details[0]
    return f"{first['field']}: {first['message']}" if first["field"] else first["message"]


def validate_generation_request(raw: Any) -> GenerationRequest:
    """
    Validates a raw request body (or an already-built request, which is
    re-validated from scratch) and returns a typed GenerationRequest.

    Every issue is listed in details and the message names the first
    failing field. Raises ContentRejected if any ingredient tripped the
    prompt sanitizer, RequestValidationFailed otherwise.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()

    if not isinstance(raw, dict):
        raise RequestValidationFailed(
            "Request body must be a JSON object",
            details=[{"field": "", "message": "Request body must be a JSON object"}],
        )

    try:
        return GenerationRequest.model_validate(raw)
    except ValidationError as e:
        details = format_validation_errors(e)
        message = summarize_issues(details)
        if any(issue["type"] == CONTENT_REJECTED for issue in e.errors()):
            raise ContentRejected(message, details=details) from e
        raise RequestValidationFailed(message, details=details) from e
