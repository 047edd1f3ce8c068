import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from mealplanner.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Meal(Base):
    __tablename__ = "meals"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")

    # JSON fields
    ingredients = Column(JSONType, nullable=False, comment="[{name, quantity, unit, estimated_cost}]")
    instructions = Column(JSONType, nullable=False, comment="[{step, text}]")
    meal_type = Column(JSONType, nullable=False, comment="Slots this meal suits, e.g. ['dinner']")
    tags = Column(JSONType, nullable=False, default=list)

    calories = Column(Integer, nullable=False)
    protein_g = Column(Float, nullable=False)
    carbs_g = Column(Float, nullable=False)
    fat_g = Column(Float, nullable=False)
    estimated_cost = Column(Float, nullable=False)
    prep_time_min = Column(Integer, nullable=False)
    cook_time_min = Column(Integer, nullable=False)
    difficulty = Column(String(10), nullable=False)
    is_ai_generated = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=_now)

    plan_items = relationship("MealPlanItem", back_populates="meal", passive_deletes=True)


class MealPlanItem(Base):
    __tablename__ = "meal_plan_items"
    # At most one planned meal per user, date and slot; saves overwrite
    __table_args__ = (UniqueConstraint("user_id", "date", "slot", name="uq_meal_plan_items_user_date_slot"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    meal_id = Column(String(36), ForeignKey("meals.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    slot = Column(String(10), nullable=False)

    created_at = Column(DateTime(timezone=True), default=_now)

    meal = relationship("Meal", back_populates="plan_items")
