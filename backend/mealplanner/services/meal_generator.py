"""
Meal Plan Generator
-------------------
Turns a validated GenerationRequest into GeneratedMeal records.

1. Splits a month into 4 weekly sub-requests (budget / 4, rounded to cents).
2. Fetches each chunk sequentially; chunk N is not issued until N-1 finished.
3. Offsets each chunk's days by 7 * chunk index and reports progress.

The chunk fetcher is pluggable: the API server fetches straight from the
model (generate_chunk_from_model), the HTTP client fetches from the API.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from mealplanner.exceptions import (
    GenerationCancelled,
    MealPlanError,
    RequestValidationFailed,
    ResponseBlocked,
    ResponseTruncated,
    UpstreamUnavailable,
)
from mealplanner.schemas.generation import GeneratedMeal, GenerationRequest
from mealplanner.services import llm_service
from mealplanner.services.llm_service import FinishStatus
from mealplanner.services.prompt_builder import build_prompt
from mealplanner.services.response_parser import parse_meals

logger = logging.getLogger(__name__)

MONTH_CHUNKS = 4
DAYS_PER_CHUNK = 7

ChunkFetcher = Callable[[GenerationRequest], Awaitable[List[GeneratedMeal]]]
ProgressCallback = Callable[[int, int], None]


def split_into_chunks(request: GenerationRequest) -> List[GenerationRequest]:
    if request.timeframe != "month":
        return [request]

    weekly_budget = round(request.budget / MONTH_CHUNKS, 2)
    if weekly_budget < 1:
        # Each weekly chunk must itself pass validation on the server
        raise RequestValidationFailed(
            "Monthly budget must be at least $4",
            details=[{"field": "budget", "message": "Monthly budget must be at least $4"}],
        )
    return [
        request.model_copy(update={"timeframe": "week", "budget": weekly_budget})
        for _ in range(MONTH_CHUNKS)
    ]


async def generate_chunk_from_model(request: GenerationRequest) -> List[GeneratedMeal]:
    """One prompt, one model call, one parsed and validated meal list."""
    prompt = build_prompt(request)
    response = await llm_service.invoke_model(prompt)

    if response.finish_status == FinishStatus.BLOCKED:
        logger.error(f"[Generation] Model response blocked: finish_reason={response.raw_finish_reason}")
        raise ResponseBlocked()
    if response.finish_status == FinishStatus.TRUNCATED:
        logger.error(f"[Generation] Model response truncated: finish_reason={response.raw_finish_reason}")
        raise ResponseTruncated()
    if not response.text.strip():
        logger.error("[Generation] Model returned no content")
        raise UpstreamUnavailable("No meal plan was generated. Please try again.")

    return parse_meals(response.text, expected_days=request.day_count)


class MealPlanGenerator:
    def __init__(self, fetch_chunk: ChunkFetcher = generate_chunk_from_model):
        self.fetch_chunk = fetch_chunk

    async def generate(
        self,
        request: GenerationRequest,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[GeneratedMeal]:
        """
        Generates the full plan. If a chunk fails after earlier chunks
        succeeded, that chunk's own error is raised with partial_meals and
        generated_through_day attached, so callers can offer the days that
        were produced without the failure category being lost.
        """
        chunks = split_into_chunks(request)
        total = len(chunks)
        meals: List[GeneratedMeal] = []

        for index, chunk in enumerate(chunks):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"[Generation] Cancelled before chunk {index + 1}/{total}")
                raise self._with_partial(GenerationCancelled(), meals, index)

            try:
                chunk_meals = await self.fetch_chunk(chunk)
            except MealPlanError as e:
                logger.warning(f"[Generation] Chunk {index + 1}/{total} failed: {e.code}")
                self._with_partial(e, meals, index)
                raise

            offset = DAYS_PER_CHUNK * index
            meals.extend(meal.shifted(offset) if offset else meal for meal in chunk_meals)
            logger.info(f"[Generation] Chunk {index + 1}/{total} done ({len(chunk_meals)} meals)")

            if on_progress is not None:
                on_progress(index + 1, total)

        return meals

    @staticmethod
    def _with_partial(error: MealPlanError, meals: List[GeneratedMeal], completed_chunks: int) -> MealPlanError:
        if meals:
            error.partial_meals = list(meals)
            error.generated_through_day = completed_chunks * DAYS_PER_CHUNK
        return error
