import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mealplanner.api import meal_plan
from mealplanner.api.errors import register_exception_handlers
from mealplanner.config import ALLOWED_ORIGINS, LOG_LEVEL
from mealplanner.database import init_db
from mealplanner.services.rate_limiter import RateLimiter, RedisCounterStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

init_db()

app = FastAPI(title="Meal Planner API")

# Native app requests carry no Origin header; this only restricts the web build
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    expose_headers=["X-RateLimit-Remaining", "Retry-After"],
    max_age=86400,
)

register_exception_handlers(app)

# Shared counter for every worker; swap the store in tests via dependency overrides
app.state.rate_limiter = RateLimiter(RedisCounterStore())

app.include_router(meal_plan.router)


# Root endpoint
@app.get("/")
def root():
    return {
        "message": "Welcome to the Meal Planner API",
        "docs": "/docs",
        "redoc": "/redoc"
    }


# Health check endpoint
@app.get("/health")
def health_check():
    return {"status": "healthy", "message": "API is running"}
