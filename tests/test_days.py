import unittest
from datetime import date, datetime, timedelta, timezone

from collegedays.core.days import DayOverride, DayType, MaterializedDay, materialize
from collegedays.core.errors import AmbiguousOverride, InvalidDate, InvalidDayType, InvalidRange
from collegedays.core.semesters import Semester


def _semester(start, end, semester_id="sem-1"):
    return Semester(id=semester_id, name="Spring", start_date=start, end_date=end, user_id="u1")


def _override(day, type=None, description="", override_id="d1", updated_at=None):
    return DayOverride(
        id=override_id,
        semester_id="sem-1",
        user_id="u1",
        date=day,
        type=type,
        description=description,
        updated_at=updated_at,
    )


WEEK = _semester(date(2024, 1, 1), date(2024, 1, 7))


class DayTypeTests(unittest.TestCase):
    def test_parse(self):
        self.assertIs(DayType.parse("exam"), DayType.EXAM)
        self.assertIs(DayType.parse(" Holiday "), DayType.HOLIDAY)
        self.assertIsNone(DayType.parse(""))
        self.assertIsNone(DayType.parse(None))
        with self.assertRaises(InvalidDayType):
            DayType.parse("vacation")


class MaterializeTests(unittest.TestCase):
    def test_past_week_gets_defaults(self):
        days = materialize(WEEK, [], date(2024, 1, 10))
        self.assertEqual(len(days), 7)
        self.assertEqual([d.date for d in days], [date(2024, 1, n) for n in range(1, 8)])
        for day in days[:6]:
            self.assertIs(day.type, DayType.WORKING)
            self.assertEqual(day.description, "")
            self.assertIsNone(day.override_id)
        self.assertIs(days[6].type, DayType.HOLIDAY)
        self.assertEqual(days[6].description, "Sunday")

    def test_future_days_are_blank(self):
        days = materialize(WEEK, [], date(2024, 1, 3))
        self.assertTrue(all(d.type is DayType.WORKING for d in days[:3]))
        for day in days[3:]:
            self.assertTrue(day.is_blank)
            self.assertEqual(day.description, "")

    def test_override_beats_weekday_default(self):
        overrides = [_override(date(2024, 1, 5), DayType.EXAM, "Midterm", "ov-5")]
        days = materialize(WEEK, overrides, date(2024, 1, 10))
        self.assertEqual(days[4], MaterializedDay(date(2024, 1, 5), DayType.EXAM, "Midterm", "ov-5"))

    def test_override_applies_to_future_and_sunday(self):
        overrides = [_override(date(2024, 1, 7), DayType.EVENT, "Fest")]
        days = materialize(WEEK, overrides, date(2023, 12, 1))
        self.assertIs(days[6].type, DayType.EVENT)
        self.assertEqual(days[6].description, "Fest")
        self.assertTrue(all(d.is_blank for d in days[:6]))

    def test_untyped_override_suppresses_default(self):
        overrides = [_override(date(2024, 1, 2))]
        days = materialize(WEEK, overrides, date(2024, 1, 10))
        self.assertTrue(days[1].is_blank)
        self.assertEqual(days[1].override_id, "d1")

    def test_override_matched_by_calendar_day_only(self):
        overrides = [_override(datetime(2024, 1, 3, 17, 45), DayType.BREAK)]
        days = materialize(WEEK, overrides, date(2024, 1, 10))
        self.assertIs(days[2].type, DayType.BREAK)

    def test_single_day_semester(self):
        days = materialize(_semester(date(2024, 1, 7), date(2024, 1, 7)), [], date(2024, 1, 7))
        self.assertEqual(len(days), 1)
        self.assertIs(days[0].type, DayType.HOLIDAY)

    def test_length_matches_span_across_months(self):
        semester = _semester(date(2024, 1, 15), date(2024, 5, 31))
        days = materialize(semester, [], date(2024, 3, 1))
        self.assertEqual(len(days), (semester.end_date - semester.start_date).days + 1)
        for earlier, later in zip(days, days[1:]):
            self.assertEqual(later.date - earlier.date, timedelta(days=1))

    def test_accepts_string_bounds(self):
        semester = _semester("2024-01-01", "2024-01-03")
        self.assertEqual(len(materialize(semester, [], "2024-01-10")), 3)

    def test_idempotent_and_inputs_untouched(self):
        overrides = [_override(date(2024, 1, 5), DayType.EXAM, "Midterm")]
        snapshot = list(overrides)
        first = materialize(WEEK, overrides, date(2024, 1, 4))
        second = materialize(WEEK, overrides, date(2024, 1, 4))
        self.assertEqual(first, second)
        self.assertEqual(overrides, snapshot)

    def test_reversed_range_rejected(self):
        with self.assertRaises(InvalidRange):
            materialize(_semester(date(2024, 1, 7), date(2024, 1, 1)), [], date(2024, 1, 1))

    def test_unparseable_bound_rejected(self):
        with self.assertRaises(InvalidDate):
            materialize(_semester("garbage", date(2024, 1, 1)), [], date(2024, 1, 1))

    def test_duplicate_override_prefers_latest_update(self):
        older = datetime(2024, 1, 1, 8, tzinfo=timezone.utc)
        newer = datetime(2024, 1, 2, 8, tzinfo=timezone.utc)
        overrides = [
            _override(date(2024, 1, 5), DayType.EXAM, "Old", "a", older),
            _override(date(2024, 1, 5), DayType.EVENT, "New", "b", newer),
        ]
        days = materialize(WEEK, overrides, date(2024, 1, 10))
        self.assertEqual(days[4].override_id, "b")
        self.assertEqual(days[4].description, "New")

    def test_duplicate_override_without_timestamps_is_ambiguous(self):
        overrides = [
            _override(date(2024, 1, 5), DayType.EXAM, "", "a"),
            _override(date(2024, 1, 5), DayType.EVENT, "", "b"),
        ]
        with self.assertRaises(AmbiguousOverride):
            materialize(WEEK, overrides, date(2024, 1, 10))

    def test_unparseable_override_date_rejected(self):
        with self.assertRaises(InvalidDate):
            materialize(WEEK, [_override("garbage", DayType.EXAM)], date(2024, 1, 10))

    def test_unparseable_reference_date_rejected(self):
        with self.assertRaises(InvalidDate):
            materialize(WEEK, [], "nope")

    def test_duplicate_override_with_equal_timestamps_is_ambiguous(self):
        stamp = datetime(2024, 1, 2, 8, tzinfo=timezone.utc)
        overrides = [
            _override(date(2024, 1, 5), DayType.EXAM, "", "a", stamp),
            _override(date(2024, 1, 5), DayType.EVENT, "", "b", stamp),
        ]
        with self.assertRaises(AmbiguousOverride):
            materialize(WEEK, overrides, date(2024, 1, 10))

    def test_to_dict(self):
        day = MaterializedDay(date(2024, 1, 7), DayType.HOLIDAY, "Sunday")
        self.assertEqual(
            day.to_dict(),
            {"date": "2024-01-07", "weekday": "Sun", "type": "holiday", "description": "Sunday", "id": None},
        )
        self.assertEqual(MaterializedDay(date(2024, 1, 8), None, "").to_dict()["type"], "")


class DayOverrideFromDictTests(unittest.TestCase):
    def test_from_stored_document(self):
        stored = {
            "semesterId": "sem-1",
            "userId": "u1",
            "date": datetime(2024, 1, 4, 18, 30, tzinfo=timezone.utc),
            "type": "exam",
            "description": "Quiz",
        }
        ist = timezone(timedelta(hours=5, minutes=30))
        override = DayOverride.from_dict(stored, "doc-9", ist)
        self.assertEqual(override.id, "doc-9")
        self.assertEqual(override.date, date(2024, 1, 5))
        self.assertIs(override.type, DayType.EXAM)

    def test_blank_type_and_missing_description(self):
        override = DayOverride.from_dict({"semesterId": "s", "userId": "u", "date": "2024-01-05", "type": ""})
        self.assertIsNone(override.type)
        self.assertEqual(override.description, "")


if __name__ == "__main__":
    unittest.main()
