import unittest
from datetime import date
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from helpers import make_session_factory, meal_dict, plan_items, week_of_meals
from mealplanner.crud import meal_plan as crud_meal_plan
from mealplanner.exceptions import PersistenceFailure
from mealplanner.models.meal import Meal, MealPlanItem
from mealplanner.schemas.generation import GeneratedMeal
from mealplanner.services.meal_plan_service import persist_generated_plan

ANCHOR = date(2026, 3, 2)


def generated(items):
    return [GeneratedMeal.model_validate(item) for item in items]


class MealPlanCrudTestCase(unittest.TestCase):

    def setUp(self):
        self.db = make_session_factory()()

    def tearDown(self):
        self.db.close()


class TestSaveGeneratedPlan(MealPlanCrudTestCase):

    def test_plan_date_for(self):
        self.assertEqual(crud_meal_plan.plan_date_for(ANCHOR, 1), ANCHOR)
        self.assertEqual(crud_meal_plan.plan_date_for(ANCHOR, 28), date(2026, 3, 29))

    def test_saves_meals_and_plan_items(self):
        meals = generated(week_of_meals(days=2))

        report = crud_meal_plan.save_generated_plan(self.db, "user-1", meals, ANCHOR)

        self.assertTrue(report.ok)
        self.assertEqual(len(report.saved), 8)
        self.assertEqual(self.db.query(Meal).count(), 8)
        self.assertEqual(self.db.query(MealPlanItem).count(), 8)

        first = report.saved[0]
        self.assertEqual((first.index, first.day, first.meal_type, first.date), (0, 1, "breakfast", ANCHOR))

        item = self.db.get(MealPlanItem, first.plan_item_id)
        self.assertEqual(item.meal_id, first.meal_id)
        self.assertEqual(item.slot, "breakfast")

    def test_meal_fields_round_trip(self):
        meal = generated([meal_dict(day=3, meal_type="lunch")])[0]

        report = crud_meal_plan.save_generated_plan(self.db, "user-1", [meal], ANCHOR)

        record = self.db.get(Meal, report.saved[0].meal_id)
        self.assertEqual(record.name, meal.name)
        self.assertEqual(record.meal_type, ["lunch"])
        self.assertEqual(record.tags, ["budget-friendly", "vegetarian"])
        self.assertEqual(record.ingredients[1]["name"], "black beans")
        self.assertEqual(record.instructions[0], {"step": 1, "text": "Cook the rice."})
        self.assertEqual(record.fat_g, 6.5)
        self.assertTrue(record.is_ai_generated)
        self.assertEqual(report.saved[0].date, date(2026, 3, 4))

    def test_saving_same_slot_overwrites(self):
        first = crud_meal_plan.save_generated_plan(
            self.db, "user-1", generated([meal_dict(day=1, meal_type="dinner", name="Chili")]), ANCHOR
        )
        second = crud_meal_plan.save_generated_plan(
            self.db, "user-1", generated([meal_dict(day=1, meal_type="dinner", name="Curry")]), ANCHOR
        )

        items = self.db.query(MealPlanItem).filter_by(user_id="user-1", date=ANCHOR, slot="dinner").all()
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].meal_id, second.saved[0].meal_id)
        self.assertEqual(second.saved[0].plan_item_id, first.saved[0].plan_item_id)
        # Both meal records are kept; only the slot pointer moves
        self.assertEqual(self.db.query(Meal).count(), 2)

    def test_users_do_not_share_slots(self):
        meals = generated([meal_dict(day=1, meal_type="dinner")])
        crud_meal_plan.save_generated_plan(self.db, "user-1", meals, ANCHOR)
        crud_meal_plan.save_generated_plan(self.db, "user-2", meals, ANCHOR)
        self.assertEqual(self.db.query(MealPlanItem).count(), 2)

    def test_failed_meal_does_not_stop_the_rest(self):
        real_upsert = crud_meal_plan.upsert_plan_item
        calls = []

        def flaky_upsert(db, user_id, meal_id, plan_date, slot):
            calls.append(slot)
            if len(calls) == 2:
                raise OperationalError("INSERT INTO meal_plan_items", {}, Exception("database is locked"))
            return real_upsert(db, user_id, meal_id, plan_date, slot)

        meals = generated(week_of_meals(days=1))
        with patch.object(crud_meal_plan, "upsert_plan_item", side_effect=flaky_upsert):
            with self.assertLogs("mealplanner.crud.meal_plan", level="ERROR"):
                report = crud_meal_plan.save_generated_plan(self.db, "user-1", meals, ANCHOR)

        self.assertFalse(report.ok)
        self.assertEqual([s.index for s in report.saved], [0, 2, 3])
        self.assertEqual(len(report.failed), 1)
        self.assertEqual(report.failed[0].index, 1)
        self.assertEqual(report.failed[0].meal_type, "lunch")
        self.assertEqual(report.summary(), "Saved 3 of 4 meals; 1 failed")

        # The failed meal's record was rolled back with its plan item
        self.assertEqual(self.db.query(Meal).count(), 3)
        self.assertEqual(self.db.query(MealPlanItem).count(), 3)

    def test_unplaceable_day_is_recorded_as_failed(self):
        meals = generated([
            meal_dict(day=1, meal_type="dinner"),
            meal_dict(day=3_000_000, meal_type="dinner"),
            meal_dict(day=2, meal_type="dinner"),
        ])

        with self.assertLogs("mealplanner.crud.meal_plan", level="ERROR"):
            report = crud_meal_plan.save_generated_plan(self.db, "user-1", meals, ANCHOR)

        self.assertEqual([s.index for s in report.saved], [0, 2])
        self.assertEqual(len(report.failed), 1)
        self.assertEqual(report.failed[0].index, 1)
        self.assertEqual(report.failed[0].day, 3_000_000)
        self.assertIsNone(report.failed[0].date)
        self.assertEqual(report.failed[0].error, "Could not save this meal.")
        self.assertEqual(self.db.query(Meal).count(), 2)

        items = plan_items(self.db, "user-1", ANCHOR, date(2026, 3, 4))
        self.assertEqual([item.date for item in items], [date(2026, 3, 2), date(2026, 3, 3)])

    def test_plan_items_by_date_range(self):
        crud_meal_plan.save_generated_plan(self.db, "user-1", generated(week_of_meals(days=3)), ANCHOR)

        items = plan_items(self.db, "user-1", date(2026, 3, 3), date(2026, 3, 4))

        self.assertEqual(len(items), 4)
        self.assertTrue(all(item.date == date(2026, 3, 3) for item in items))
        self.assertEqual([item.slot for item in items], ["breakfast", "dinner", "lunch", "snack"])


class TestPersistGeneratedPlan(MealPlanCrudTestCase):

    def test_all_saved_returns_report(self):
        report = persist_generated_plan(self.db, "user-1", generated(week_of_meals(days=1)), ANCHOR)
        self.assertEqual(report.summary(), "Saved 4 meals")

    def test_partial_save_raises_with_report(self):
        real_upsert = crud_meal_plan.upsert_plan_item

        def fail_snacks(db, user_id, meal_id, plan_date, slot):
            if slot == "snack":
                raise OperationalError("INSERT", {}, Exception("boom"))
            return real_upsert(db, user_id, meal_id, plan_date, slot)

        with patch.object(crud_meal_plan, "upsert_plan_item", side_effect=fail_snacks):
            with self.assertRaises(PersistenceFailure) as ctx:
                persist_generated_plan(self.db, "user-1", generated(week_of_meals(days=2)), ANCHOR)

        error = ctx.exception
        self.assertEqual(error.status_code, 207)
        self.assertEqual(len(error.report.saved), 6)
        self.assertEqual([f.day for f in error.report.failed], [1, 2])
        self.assertEqual(error.to_payload()["report"]["failed"][0]["date"], "2026-03-02")

    def test_nothing_saved_is_server_error(self):
        with patch.object(
            crud_meal_plan, "upsert_plan_item", side_effect=OperationalError("INSERT", {}, Exception("down"))
        ):
            with self.assertRaises(PersistenceFailure) as ctx:
                persist_generated_plan(self.db, "user-1", generated(week_of_meals(days=1)), ANCHOR)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.code, "persistence_failed")


if __name__ == '__main__':
    unittest.main()
