"""Pure occurrence rules, exercised without a database."""

from datetime import date, time, timedelta
from types import SimpleNamespace

import pytest

from clubdesk.domain.availability_rules import (
    CalendarOverrides,
    OccurrenceStatus,
    OverrideLayer,
    evaluate_occurrence,
    holiday_matches,
    times_overlap,
)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def make_slot(day_of_week="wednesday", **overrides):
    values = dict(
        id="slot-1",
        day_of_week=day_of_week,
        start_time=time(17, 0),
        end_time=time(18, 0),
        valid_from=None,
        valid_to=None,
        is_active=True,
        venue_id="venue-1",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def holiday(name, on, recurring=False):
    return SimpleNamespace(name=name, date=on, is_recurring=recurring)


def booking(title, start, end, venue_id="venue-1", start_time=None, end_time=None, cancels=True):
    return SimpleNamespace(
        title=title,
        venue_id=venue_id,
        start_date=start,
        end_date=end,
        start_time=start_time,
        end_time=end_time,
        cancels_classes=cancels,
    )


class TestScheduleRules:
    def test_runs_on_matching_weekday(self):
        result = evaluate_occurrence(make_slot("wednesday"), date(2027, 3, 3))
        assert result.status is OccurrenceStatus.RUNS
        assert result.reason is None

    def test_other_weekday_is_not_scheduled(self):
        result = evaluate_occurrence(make_slot("wednesday"), date(2027, 3, 4))
        assert result.status is OccurrenceStatus.NOT_SCHEDULED

    def test_day_of_week_is_case_insensitive(self):
        assert evaluate_occurrence(make_slot("Wednesday"), date(2027, 3, 3)).runs

    def test_inactive_slot_never_runs(self):
        result = evaluate_occurrence(make_slot(is_active=False), date(2027, 3, 3))
        assert result.is_cancelled
        assert result.reason == "slot inactive"
        assert result.layer is OverrideLayer.INACTIVE

    def test_before_valid_from_is_cancelled(self):
        slot = make_slot(valid_from=date(2027, 3, 10))
        result = evaluate_occurrence(slot, date(2027, 3, 3))
        assert result.is_cancelled
        assert result.reason == "outside validity window"

    def test_validity_bounds_are_inclusive(self):
        slot = make_slot(valid_from=date(2027, 3, 3), valid_to=date(2027, 3, 3))
        assert evaluate_occurrence(slot, date(2027, 3, 3)).runs

    @pytest.mark.parametrize("weeks_after", [1, 2, 5, 26, 52])
    def test_never_runs_after_valid_to(self, weeks_after):
        valid_to = date(2027, 3, 31)
        slot = make_slot("wednesday", valid_to=valid_to)
        for offset in range(7):
            on_date = valid_to + timedelta(days=7 * (weeks_after - 1) + offset + 1)
            assert not evaluate_occurrence(slot, on_date).runs

    def test_validity_checked_before_weekday(self):
        slot = make_slot("wednesday", valid_to=date(2027, 3, 1))
        result = evaluate_occurrence(slot, date(2027, 3, 4))
        assert result.reason == "outside validity window"


class TestOverrideRules:
    def test_exact_holiday_cancels(self):
        overrides = CalendarOverrides(holidays=(holiday("Club Day", date(2027, 3, 3)),))
        result = evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides)
        assert result.is_cancelled
        assert result.reason == "holiday: Club Day"
        assert result.layer is OverrideLayer.HOLIDAY

    def test_non_recurring_holiday_only_hits_its_year(self):
        assert not holiday_matches(holiday("Club Day", date(2026, 3, 3)), date(2027, 3, 3))

    @pytest.mark.parametrize("year", range(2024, 2040))
    def test_recurring_christmas_cancels_every_year(self, year):
        christmas = date(year, 12, 25)
        slot = make_slot(WEEKDAYS[christmas.weekday()])
        overrides = CalendarOverrides(holidays=(holiday("Christmas", date(2020, 12, 25), True),))
        result = evaluate_occurrence(slot, christmas, overrides)
        assert result.is_cancelled
        assert result.reason == "holiday: Christmas"

    def test_recurring_new_year_2027(self):
        # 2027-01-01 is a Friday
        slot = make_slot("friday")
        overrides = CalendarOverrides(holidays=(holiday("New Year", date(2026, 1, 1), True),))
        result = evaluate_occurrence(slot, date(2027, 1, 1), overrides)
        assert result.reason == "holiday: New Year"

    def test_slot_cancellation(self):
        cancellation = SimpleNamespace(
            slot_id="slot-1", cancelled_date=date(2027, 3, 3), reason="coach sick"
        )
        result = evaluate_occurrence(
            make_slot(), date(2027, 3, 3), CalendarOverrides(cancellation=cancellation)
        )
        assert result.reason == "slot cancelled: coach sick"
        assert result.layer is OverrideLayer.SLOT_CANCELLATION

    def test_slot_cancellation_without_reason(self):
        cancellation = SimpleNamespace(slot_id="slot-1", cancelled_date=date(2027, 3, 3), reason=None)
        result = evaluate_occurrence(
            make_slot(), date(2027, 3, 3), CalendarOverrides(cancellation=cancellation)
        )
        assert result.reason == "slot cancelled: no reason given"

    def test_cancellation_for_another_slot_is_ignored(self):
        cancellation = SimpleNamespace(slot_id="slot-2", cancelled_date=date(2027, 3, 3), reason="x")
        assert evaluate_occurrence(
            make_slot(), date(2027, 3, 3), CalendarOverrides(cancellation=cancellation)
        ).runs

    def test_holiday_takes_precedence_over_cancellation(self):
        overrides = CalendarOverrides(
            holidays=(holiday("Club Day", date(2027, 3, 3)),),
            cancellation=SimpleNamespace(
                slot_id="slot-1", cancelled_date=date(2027, 3, 3), reason="rain"
            ),
        )
        assert evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides).layer is (
            OverrideLayer.HOLIDAY
        )

    @pytest.mark.parametrize(
        "day_of_week,on_date",
        [
            ("wednesday", date(2027, 3, 10)),
            ("thursday", date(2027, 3, 11)),
            ("friday", date(2027, 3, 12)),
        ],
    )
    def test_untimed_special_booking_cancels_every_day_in_range(self, day_of_week, on_date):
        overrides = CalendarOverrides(
            special_bookings=(booking("Regional Tournament", date(2027, 3, 10), date(2027, 3, 12)),)
        )
        result = evaluate_occurrence(make_slot(day_of_week), on_date, overrides)
        assert result.reason == "special booking: Regional Tournament"
        assert result.layer is OverrideLayer.SPECIAL_BOOKING

    def test_special_booking_at_other_venue_is_ignored(self):
        overrides = CalendarOverrides(
            special_bookings=(
                booking("Gala", date(2027, 3, 3), date(2027, 3, 3), venue_id="venue-2"),
            )
        )
        assert evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides).runs

    def test_non_cancelling_special_booking_is_ignored(self):
        overrides = CalendarOverrides(
            special_bookings=(booking("Open day", date(2027, 3, 3), date(2027, 3, 3), cancels=False),)
        )
        assert evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides).runs

    def test_timed_special_booking_only_cancels_overlapping_slot(self):
        morning = booking(
            "Morning clinic",
            date(2027, 3, 3),
            date(2027, 3, 3),
            start_time=time(9, 0),
            end_time=time(12, 0),
        )
        overrides = CalendarOverrides(special_bookings=(morning,))
        assert evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides).runs

        evening = booking(
            "Evening gala",
            date(2027, 3, 3),
            date(2027, 3, 3),
            start_time=time(17, 30),
            end_time=time(21, 0),
        )
        overrides = CalendarOverrides(special_bookings=(evening,))
        assert evaluate_occurrence(make_slot(), date(2027, 3, 3), overrides).is_cancelled


class TestTimesOverlap:
    def test_touching_ranges_do_not_overlap(self):
        assert not times_overlap(time(16, 0), time(17, 0), time(17, 0), time(18, 0))

    def test_open_bounds_overlap_everything(self):
        assert times_overlap(None, None, time(17, 0), time(18, 0))
        assert times_overlap(time(9, 0), None, time(17, 0), time(18, 0))
