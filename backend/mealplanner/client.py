"""
Meal Plan Client
----------------
Async client for the meal plan API, used by app backends and scripts.

Requests are validated locally before anything is sent (the server
validates again). Month plans are generated as four sequential weekly
calls with progress reporting, and every HTTP failure is mapped back onto
the same exception classes the server raised.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from mealplanner.config import LLM_TIMEOUT_SECONDS, MEALPLANNER_API_URL
from mealplanner.exceptions import (
    ContentRejected,
    MealPlanError,
    PersistenceFailure,
    RateLimited,
    RequestValidationFailed,
    ResponseBlocked,
    ResponseMalformed,
    ResponseTruncated,
    Unauthenticated,
    UpstreamUnavailable,
)
from mealplanner.schemas.generation import GeneratedMeal, GenerationRequest
from mealplanner.schemas.meal_plan import PlanSaveReport, SavePlanRequest
from mealplanner.services.meal_generator import MealPlanGenerator, ProgressCallback
from mealplanner.services.response_parser import validate_meals
from mealplanner.validation import format_validation_errors, summarize_issues, validate_generation_request

logger = logging.getLogger(__name__)

GENERATE_PATH = "/meal-plans/generate"
SAVE_PATH = "/meal-plans/save"
DEFAULT_RETRY_AFTER_SECONDS = 60

# 400 bodies carry a code telling these apart
BAD_REQUEST_ERRORS = {
    RequestValidationFailed.code: RequestValidationFailed,
    ContentRejected.code: ContentRejected,
    ResponseBlocked.code: ResponseBlocked,
}


class MealPlanClient:
    def __init__(
        self,
        token: Optional[str],
        base_url: str = MEALPLANNER_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = LLM_TIMEOUT_SECONDS + 30,
    ):
        self.token = token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "MealPlanClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def generate(
        self,
        request: Any,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[GeneratedMeal]:
        """
        Validates the request (including prompt-injection checks) and returns
        the generated meals. Set cancel_event to stop a month generation
        before its next weekly call.
        """
        validated = validate_generation_request(request)

        if not self.token:
            raise Unauthenticated("You must be signed in to generate meals.")

        generator = MealPlanGenerator(fetch_chunk=self._fetch_chunk)
        return await generator.generate(validated, on_progress=on_progress, cancel_event=cancel_event)

    async def save_plan(self, meals: List[GeneratedMeal], anchor_date: date) -> PlanSaveReport:
        if not self.token:
            raise Unauthenticated("You must be signed in to save meals.")

        try:
            payload = SavePlanRequest(anchor_date=anchor_date, meals=meals).model_dump(mode="json")
        except ValidationError as e:
            details = format_validation_errors(e)
            raise RequestValidationFailed(summarize_issues(details), details=details) from e

        response = await self._post(SAVE_PATH, payload)

        if response.status_code == 201:
            return PlanSaveReport.model_validate(response.json())

        body = _json_body(response)
        if response.status_code in (207, 500) and body.get("report"):
            report = PlanSaveReport.model_validate(body["report"])
            raise PersistenceFailure(report, message=body.get("error"))

        raise self._error_from_response(response)

    async def _fetch_chunk(self, request: GenerationRequest) -> List[GeneratedMeal]:
        response = await self._post(GENERATE_PATH, request.model_dump(exclude_none=True))

        if response.status_code != 200:
            raise self._error_from_response(response)

        body = _json_body(response)
        meals = validate_meals(body.get("meals"), expected_days=request.day_count)
        logger.info(f"[Client] Received {len(meals)} meals (remaining={response.headers.get('X-RateLimit-Remaining')})")
        return meals

    async def _post(self, path: str, payload: dict) -> httpx.Response:
        try:
            return await self._client.post(
                path,
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"[Client] {path} timed out: {e}")
            raise UpstreamUnavailable() from e
        except httpx.HTTPError as e:
            logger.error(f"[Client] {path} request failed: {e}")
            raise UpstreamUnavailable() from e

    def _error_from_response(self, response: httpx.Response) -> MealPlanError:
        status = response.status_code
        body = _json_body(response)
        message = body.get("error")
        details = body.get("details") if isinstance(body.get("details"), list) else None
        logger.error(f"[Client] API error {status}: {body or response.text[:500]}")

        if status == 401:
            return Unauthenticated()
        if status == 429:
            retry_after = _retry_after_seconds(response, body)
            now = datetime.now(timezone.utc)
            return RateLimited(now + timedelta(seconds=retry_after), now=now)
        if status == 422:
            return ResponseTruncated()
        if status == 400:
            error_cls = BAD_REQUEST_ERRORS.get(body.get("code"), RequestValidationFailed)
            return error_cls(message, details=details)
        if status in (502, 503, 504):
            if body.get("code") == ResponseMalformed.code:
                return ResponseMalformed(message)
            return UpstreamUnavailable(message, status_code=status)
        return MealPlanError("Failed to generate meal plan. Please try again.")


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _retry_after_seconds(response: httpx.Response, body: dict) -> int:
    for value in (response.headers.get("Retry-After"), body.get("retryAfter")):
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            continue
    return DEFAULT_RETRY_AFTER_SECONDS
