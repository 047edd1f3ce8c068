import math
from datetime import datetime, timezone
from typing import Any, Optional


class MealPlanError(Exception):
    """Base class for every failure the generation pipeline surfaces to a caller."""

    status_code = 500
    code = "internal_error"
    default_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: Optional[str] = None, *, details: Optional[list[dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.details = details or []
        # Set by the chunked generator when earlier chunks already succeeded
        self.partial_meals: Optional[list] = None
        self.generated_through_day: Optional[int] = None
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class RequestValidationFailed(MealPlanError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request. Please check your inputs and try again."


class ContentRejected(RequestValidationFailed):
    code = "content_rejected"
    default_message = "Input contains disallowed content. Please use only food-related terms."


class Unauthenticated(MealPlanError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Your session has expired. Please sign in again."


class RateLimited(MealPlanError):
    status_code = 429
    code = "rate_limited"
    default_message = "You have generated too many meal plans recently. Please wait a bit and try again."

    def __init__(self, reset_at: datetime, message: Optional[str] = None, *, now: Optional[datetime] = None):
        super().__init__(message)
        self.reset_at = reset_at
        now = now or datetime.now(timezone.utc)
        self.retry_after = max(0, math.ceil((reset_at - now).total_seconds()))

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["retryAfter"] = self.retry_after
        payload["resetAt"] = self.reset_at.isoformat()
        return payload


class ResponseTruncated(MealPlanError):
    status_code = 422
    code = "response_truncated"
    default_message = 'Response was cut short. Try generating a shorter meal plan (e.g. "day" instead of "week").'


class ResponseBlocked(MealPlanError):
    status_code = 400
    code = "response_blocked"
    default_message = "The request was blocked by content filters. Please adjust your inputs and try again."


class ResponseMalformed(MealPlanError):
    status_code = 502
    code = "response_malformed"
    default_message = "Failed to parse meal plan. Please try again."


class UpstreamUnavailable(MealPlanError):
    status_code = 502
    code = "upstream_unavailable"
    default_message = "Meal generation failed. Please try again."

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class GenerationCancelled(MealPlanError):
    status_code = 499
    code = "generation_cancelled"
    default_message = "Meal plan generation was cancelled."


class PersistenceFailure(MealPlanError):
    status_code = 500
    code = "persistence_failed"
    default_message = "Could not save meal plan."

    def __init__(self, report, message: Optional[str] = None):
        super().__init__(message)
        self.report = report
        if report is not None and report.saved:
            # Some pairs committed; the caller needs to know which
            self.status_code = 207

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.report is not None:
            payload["report"] = self.report.model_dump(mode="json")
        return payload

