# tests/test_recurrence_engine.py

from __future__ import annotations

import json
import logging
from datetime import date, datetime

import pytest
import pytz

from taskdeck.schemas.recurrence import RecurrencePattern
from taskdeck.services.recurrence_engine import RecurrenceEngine

from .factories import FIXED_NOW, make_task


def _next_due(recurrence: RecurrenceEngine, pattern: dict, due: date) -> date | None:
    occurrence = recurrence.next_occurrence(make_task(pattern, due))
    return occurrence.due_date if occurrence else None


# --- candidate dates ---------------------------------------------------------


def test_daily_advances_by_interval(recurrence: RecurrenceEngine) -> None:
    assert _next_due(recurrence, {"type": "daily", "interval": 3}, date(2024, 1, 1)) == date(2024, 1, 4)


def test_weekly_without_days_keeps_weekday(recurrence: RecurrenceEngine) -> None:
    # 2024-01-03 is a Wednesday
    assert _next_due(recurrence, {"type": "weekly", "interval": 2}, date(2024, 1, 3)) == date(2024, 1, 17)


def test_weekly_with_days_picks_next_listed_day_in_same_week(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "weekly", "interval": 1, "days_of_week": [1, 3, 5]}
    assert _next_due(recurrence, pattern, date(2024, 1, 1)) == date(2024, 1, 3)


def test_weekly_with_days_wraps_into_next_week(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "weekly", "interval": 1, "days_of_week": [1, 3, 5]}
    # Friday -> following Monday
    assert _next_due(recurrence, pattern, date(2024, 1, 5)) == date(2024, 1, 8)


def test_weekly_with_days_skips_inactive_weeks(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "weekly", "interval": 2, "days_of_week": [1]}
    # Wednesday; that week's Monday has passed, next week is skipped
    assert _next_due(recurrence, pattern, date(2024, 1, 3)) == date(2024, 1, 15)


def test_weekly_weeks_start_on_sunday(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "weekly", "interval": 2, "days_of_week": [0, 6]}
    # Saturday 2024-01-06 is the last day of its week; next active week starts 2024-01-14
    assert _next_due(recurrence, pattern, date(2024, 1, 6)) == date(2024, 1, 14)


def test_weekly_with_only_invalid_days_is_malformed(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "weekly", "interval": 1, "days_of_week": [7, -1]}
    assert _next_due(recurrence, pattern, date(2024, 1, 1)) is None


def test_monthly_clamps_requested_day_to_month_length(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "monthly", "interval": 1, "day_of_month": 31}
    assert _next_due(recurrence, pattern, date(2024, 1, 31)) == date(2024, 2, 29)


def test_monthly_requested_day_recovers_after_short_month(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "monthly", "interval": 1, "day_of_month": 31}, date(2024, 1, 31))
    dates = [occ.due_date for occ in recurrence.future_occurrences(task, 3)]
    assert dates == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_monthly_without_day_uses_calendar_month_addition(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "monthly", "interval": 1}, date(2023, 1, 31))
    dates = [occ.due_date for occ in recurrence.future_occurrences(task, 2)]
    assert dates == [date(2023, 2, 28), date(2023, 3, 28)]


def test_monthly_sets_requested_day(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "monthly", "interval": 3, "day_of_month": 15}
    assert _next_due(recurrence, pattern, date(2024, 11, 2)) == date(2025, 2, 15)


def test_yearly_from_leap_day(recurrence: RecurrenceEngine) -> None:
    assert _next_due(recurrence, {"type": "yearly", "interval": 1}, date(2024, 2, 29)) == date(2025, 2, 28)


def test_unknown_type_yields_nothing(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "hourly", "interval": 1}, date(2024, 1, 1))
    assert recurrence.next_occurrence(task) is None
    assert recurrence.future_occurrences(task) == []


def test_non_positive_interval_is_treated_as_one(recurrence: RecurrenceEngine) -> None:
    assert _next_due(recurrence, {"type": "daily", "interval": 0}, date(2024, 1, 1)) == date(2024, 1, 2)
    assert _next_due(recurrence, {"type": "daily", "interval": -4}, date(2024, 1, 1)) == date(2024, 1, 2)


def test_malformed_patterns_log_structured_warnings(recurrence: RecurrenceEngine, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="taskdeck.recurrence"):
        _next_due(recurrence, {"type": "hourly", "interval": 1}, date(2024, 1, 1))
        _next_due(recurrence, {"type": "daily", "interval": 0}, date(2024, 1, 1))

    records = [json.loads(record.getMessage()) for record in caplog.records]
    assert {"message": "Unsupported recurrence type", "type": "hourly"}.items() <= records[0].items()
    assert records[1]["message"] == "Non-positive recurrence interval, using 1"
    assert records[1]["interval"] == 0


# --- next occurrence ---------------------------------------------------------


def test_end_date_stops_series(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "daily", "interval": 1, "end_date": date(2024, 1, 5)}
    assert _next_due(recurrence, pattern, date(2024, 1, 5)) is None


def test_occurrence_on_end_date_is_allowed(recurrence: RecurrenceEngine) -> None:
    pattern = {"type": "daily", "interval": 1, "end_date": date(2024, 1, 5)}
    assert _next_due(recurrence, pattern, date(2024, 1, 4)) == date(2024, 1, 5)


def test_non_recurring_task_has_no_next_occurrence(recurrence: RecurrenceEngine) -> None:
    assert recurrence.next_occurrence(make_task(None, date(2024, 1, 1))) is None

    flagged_without_pattern = make_task(None, date(2024, 1, 1), is_recurring=True)
    assert recurrence.next_occurrence(flagged_without_pattern) is None


def test_missing_due_date_anchors_on_clock(recurrence: RecurrenceEngine) -> None:
    assert FIXED_NOW.date() == date(2024, 1, 1)
    assert _next_due(recurrence, {"type": "daily", "interval": 1}, None) == date(2024, 1, 2)


def test_next_occurrence_resets_completion_state(recurrence: RecurrenceEngine) -> None:
    base = make_task(
        {"type": "daily", "interval": 1},
        date(2024, 1, 1),
        completed=True,
        completed_at=datetime(2024, 1, 1, 8, 0, tzinfo=pytz.utc),
        status="completed",
        parent_task_id="project-7",
        priority="high",
        description="Kitchen and balcony",
        created_at=datetime(2023, 12, 1, tzinfo=pytz.utc),
    )

    occurrence = recurrence.next_occurrence(base)

    assert occurrence is not None
    assert occurrence.id == "occurrence-1"
    assert occurrence.completed is False
    assert occurrence.completed_at is None
    assert occurrence.status == "todo"
    assert occurrence.parent_task_id is None
    assert occurrence.created_at == FIXED_NOW
    # everything else is carried forward
    assert occurrence.name == base.name
    assert occurrence.priority == "high"
    assert occurrence.description == "Kitchen and balcony"
    assert occurrence.is_recurring is True
    assert occurrence.recurring_pattern == base.recurring_pattern


def test_next_occurrence_leaves_base_untouched(recurrence: RecurrenceEngine) -> None:
    base = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1), completed=True)
    recurrence.next_occurrence(base)

    assert base.id == "anchor"
    assert base.due_date == date(2024, 1, 1)
    assert base.completed is True


def test_extra_fields_are_copied_forward(recurrence: RecurrenceEngine) -> None:
    base = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1), company_id="acme", tag_ids=["home"])
    occurrence = recurrence.next_occurrence(base)

    assert occurrence is not None
    assert occurrence.model_dump()["company_id"] == "acme"
    assert occurrence.model_dump()["tag_ids"] == ["home"]


# --- series ------------------------------------------------------------------


def test_future_occurrences_bounded_by_end_date(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "daily", "interval": 1, "end_date": date(2024, 1, 4)}, date(2024, 1, 1))

    occurrences = recurrence.future_occurrences(task, 10)

    assert [occ.due_date for occ in occurrences] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]
    assert all(not occ.completed for occ in occurrences)
    assert len({occ.id for occ in occurrences}) == 3


def test_future_occurrences_defaults_to_ten(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    assert len(recurrence.future_occurrences(task)) == 10


def test_future_occurrences_with_zero_count(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    assert recurrence.future_occurrences(task, 0) == []


def test_series_is_recomputed_on_every_call(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "weekly", "interval": 1, "days_of_week": [2, 4]}, date(2024, 1, 1))

    first = recurrence.future_occurrences(task, 4)
    second = recurrence.future_occurrences(task, 4)

    assert [occ.due_date for occ in first] == [occ.due_date for occ in second]
    assert {occ.id for occ in first}.isdisjoint({occ.id for occ in second})


def test_iter_future_occurrences_is_lazy(recurrence: RecurrenceEngine) -> None:
    task = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    series = recurrence.iter_future_occurrences(task)

    assert next(series).due_date == date(2024, 1, 2)
    assert next(series).due_date == date(2024, 1, 3)


@pytest.mark.parametrize(
    ("pattern", "start", "step"),
    [
        ({"type": "daily", "interval": 2}, date(2024, 2, 27), lambda a, b: (b - a).days == 2),
        ({"type": "weekly", "interval": 3}, date(2024, 12, 20), lambda a, b: (b - a).days == 21),
        (
            {"type": "monthly", "interval": 2, "day_of_month": 30},
            date(2024, 8, 30),
            lambda a, b: (b.year * 12 + b.month) - (a.year * 12 + a.month) == 2,
        ),
        ({"type": "yearly", "interval": 1}, date(2024, 2, 29), lambda a, b: b.year - a.year == 1),
        ({"type": "yearly", "interval": 4}, date(2024, 2, 29), lambda a, b: b.year - a.year == 4),
    ],
)
def test_adjacent_occurrences_are_one_interval_apart(recurrence, pattern, start, step) -> None:
    task = make_task(pattern, start)
    dates = [start] + [occ.due_date for occ in recurrence.future_occurrences(task, 8)]

    assert len(dates) == 9
    assert all(step(a, b) for a, b in zip(dates, dates[1:]))


# --- trigger -----------------------------------------------------------------


def test_should_generate_next_requires_completed_recurring_task() -> None:
    pattern = {"type": "daily", "interval": 1}

    assert RecurrenceEngine.should_generate_next(make_task(pattern, completed=True)) is True
    assert RecurrenceEngine.should_generate_next(make_task(pattern, completed=False)) is False
    assert RecurrenceEngine.should_generate_next(make_task(None, completed=True)) is False


# --- descriptions ------------------------------------------------------------


@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ({"type": "daily", "interval": 1}, "Repeats day"),
        ({"type": "daily", "interval": 2}, "Repeats every 2 days"),
        ({"type": "weekly", "interval": 1}, "Repeats week"),
        ({"type": "weekly", "interval": 2, "days_of_week": [1, 3]}, "Repeats every 2 weeks on Mon, Wed"),
        ({"type": "weekly", "interval": 1, "days_of_week": [5, 0]}, "Repeats week on Fri, Sun"),
        ({"type": "monthly", "interval": 1}, "Repeats month"),
        ({"type": "monthly", "interval": 1, "day_of_month": 1}, "Repeats month on the 1st"),
        ({"type": "monthly", "interval": 3, "day_of_month": 2}, "Repeats every 3 months on the 2nd"),
        ({"type": "monthly", "interval": 1, "day_of_month": 3}, "Repeats month on the 3rd"),
        ({"type": "monthly", "interval": 1, "day_of_month": 4}, "Repeats month on the 4th"),
        ({"type": "monthly", "interval": 1, "day_of_month": 12}, "Repeats month on the 12th"),
        ({"type": "monthly", "interval": 1, "day_of_month": 22}, "Repeats month on the 22nd"),
        ({"type": "yearly", "interval": 5}, "Repeats every 5 years"),
        ({"type": "fortnightly", "interval": 1}, "Custom pattern"),
    ],
)
def test_describe_pattern(pattern: dict, expected: str) -> None:
    assert RecurrenceEngine.describe_pattern(RecurrencePattern(**pattern)) == expected


def test_describe_pattern_accepts_camel_case_input() -> None:
    pattern = RecurrencePattern.model_validate({"type": "weekly", "interval": 1, "daysOfWeek": [2]})
    assert RecurrenceEngine.describe_pattern(pattern) == "Repeats week on Tue"


# --- pattern updates ---------------------------------------------------------


def test_update_pattern_replaces_old_series(recurrence: RecurrenceEngine) -> None:
    old = {"type": "weekly", "interval": 1}
    anchor = make_task(old, date(2024, 1, 1))
    instances = recurrence.future_occurrences(anchor, 3)
    unrelated = make_task({"type": "daily", "interval": 1}, date(2024, 1, 2), id="other")

    result = recurrence.update_pattern(
        anchor,
        RecurrencePattern(type="daily", interval=2),
        [anchor, *instances, unrelated],
    )

    assert sorted(result.instance_ids_to_remove) == sorted(occ.id for occ in instances)
    assert result.updated_task.is_recurring is True
    assert result.updated_task.recurring_pattern == RecurrencePattern(type="daily", interval=2)
    assert 0 < len(result.new_instances) <= 5
    assert result.new_instances[0].due_date == date(2024, 1, 3)


def test_update_pattern_matches_parent_linkage(recurrence: RecurrenceEngine) -> None:
    anchor = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    child = make_task({"type": "yearly", "interval": 1}, date(2024, 3, 1), id="child", parent_task_id="anchor")

    result = recurrence.update_pattern(anchor, RecurrencePattern(type="daily", interval=3), [child])

    assert result.instance_ids_to_remove == ["child"]


def test_update_pattern_compares_day_order(recurrence: RecurrenceEngine) -> None:
    anchor = make_task({"type": "weekly", "interval": 1, "days_of_week": [1, 3]}, date(2024, 1, 1))
    reordered = make_task({"type": "weekly", "interval": 1, "days_of_week": [3, 1]}, date(2024, 1, 3), id="x")

    result = recurrence.update_pattern(anchor, None, [reordered])

    assert result.instance_ids_to_remove == []


def test_clearing_pattern_removes_series_and_generates_nothing(recurrence: RecurrenceEngine) -> None:
    anchor = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    instances = recurrence.future_occurrences(anchor, 2)

    result = recurrence.update_pattern(anchor, None, instances)

    assert result.updated_task.is_recurring is False
    assert result.updated_task.recurring_pattern is None
    assert result.new_instances == []
    assert len(result.instance_ids_to_remove) == 2


def test_update_pattern_is_side_effect_free(recurrence: RecurrenceEngine) -> None:
    anchor = make_task({"type": "daily", "interval": 1}, date(2024, 1, 1))
    recurrence.update_pattern(anchor, RecurrencePattern(type="yearly"), [])

    assert anchor.recurring_pattern == RecurrencePattern(type="daily", interval=1)
