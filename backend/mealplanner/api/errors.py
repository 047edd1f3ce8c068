import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mealplanner.exceptions import MealPlanError, RateLimited, RequestValidationFailed, Unauthenticated

logger = logging.getLogger(__name__)


async def meal_plan_error_handler(request: Request, exc: MealPlanError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, Unauthenticated):
        headers["WWW-Authenticate"] = "Bearer"

    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code} - {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Same 400 {error, details} shape as bodies validated by hand
    details = []
    for issue in exc.errors():
        loc = [str(part) for part in issue.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": issue.get("msg", "Invalid value")})
    error = RequestValidationFailed(details=details)
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Generic error - never leak internals to client
    logger.exception(f"{request.method} {request.url.path} raised an unexpected error: {exc}")
    return JSONResponse(status_code=500, content=MealPlanError().to_payload())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(MealPlanError, meal_plan_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
