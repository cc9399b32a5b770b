"""
Recurrence Engine

Expands a recurring task's pattern into its next occurrence dates and task
instances. The engine holds no series state: each call works only from the task
it is given, an injected clock and an injected id factory. Persisting the
results is the caller's job.
"""

import calendar
import uuid
from datetime import date, datetime, timedelta
from itertools import islice
from typing import Callable, Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import rrule, WEEKLY, SU

from taskdeck import config
from taskdeck.schemas.recurrence import RecurrencePattern
from taskdeck.schemas.task import PatternUpdate, TaskOccurrence
from taskdeck.utils.logger import recurrence_logger
from taskdeck.utils.metrics import metrics_collector

PREVIEW_OCCURRENCE_COUNT = 10
REGENERATE_OCCURRENCE_COUNT = 5

DAY_ABBREVIATIONS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _new_id() -> str:
    return str(uuid.uuid4())


def _same_pattern(first: RecurrencePattern, second: Optional[RecurrencePattern]) -> bool:
    """Value equality over every pattern field, day order included."""
    return second is not None and first.model_dump() == second.model_dump()


def _ordinal(n: int) -> str:
    """1 -> 1st, 12 -> 12th, 22 -> 22nd."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


class RecurrenceEngine:
    """Computes occurrences of recurring tasks."""

    def __init__(
        self,
        clock: Callable[[], datetime] = config.now,
        id_factory: Callable[[], str] = _new_id,
    ):
        """
        Args:
            clock: Returns the current time; used when a task has no due date
                and to stamp created instances.
            id_factory: Returns a fresh identity for each generated instance.
        """
        self.clock = clock
        self.id_factory = id_factory

    @staticmethod
    def _effective_interval(pattern: RecurrencePattern) -> int:
        if pattern.interval < 1:
            recurrence_logger.warning("Non-positive recurrence interval, using 1", interval=pattern.interval)
            return 1
        return pattern.interval

    @staticmethod
    def _next_weekly_day(current: date, days_of_week: Iterable[int], interval: int) -> Optional[date]:
        """Next listed weekday after ``current`` in an active week.

        Weeks start on Sunday; the week containing ``current`` is active and so
        is every ``interval``-th week after it.
        """
        # 0=Sunday here, 0=Monday for dateutil
        byweekday = sorted({(day + 6) % 7 for day in days_of_week if 0 <= day <= 6})
        if not byweekday:
            return None

        start = datetime.combine(current, datetime.min.time())
        rule = rrule(WEEKLY, interval=interval, byweekday=byweekday, wkst=SU, dtstart=start)
        following = rule.after(start)
        return following.date() if following else None

    def calculate_next_due_date(self, current: date, pattern: RecurrencePattern) -> Optional[date]:
        """Calculate the date after ``current`` in the series, or None for a malformed pattern."""
        interval = self._effective_interval(pattern)

        if pattern.type == "daily":
            return current + timedelta(days=interval)
        elif pattern.type == "weekly":
            if not pattern.days_of_week:
                return current + timedelta(weeks=interval)
            return self._next_weekly_day(current, pattern.days_of_week, interval)
        elif pattern.type == "monthly":
            next_month = current + relativedelta(months=interval)
            if not pattern.day_of_month:
                return next_month
            if pattern.day_of_month < 1:
                recurrence_logger.warning(
                    "Invalid day of month in recurrence pattern", day_of_month=pattern.day_of_month
                )
                return None
            max_day = calendar.monthrange(next_month.year, next_month.month)[1]
            return next_month.replace(day=min(pattern.day_of_month, max_day))
        elif pattern.type == "yearly":
            return current + relativedelta(years=interval)
        else:
            recurrence_logger.warning("Unsupported recurrence type", type=pattern.type)
            return None

    def next_occurrence(self, base_task: TaskOccurrence) -> Optional[TaskOccurrence]:
        """Create the instance following ``base_task``.

        Returns None when the task is not recurring, the pattern cannot produce
        a date, or the next date falls after the pattern's end date.
        """
        if not base_task.is_recurring or not base_task.recurring_pattern:
            return None

        pattern = base_task.recurring_pattern
        anchor = base_task.due_date or self.clock().date()
        next_due_date = self.calculate_next_due_date(anchor, pattern)

        if next_due_date is None:
            return None

        if pattern.end_date and next_due_date > pattern.end_date:
            metrics_collector.series_exhausted()
            recurrence_logger.info(
                "Recurrence series exhausted",
                task_id=base_task.id,
                end_date=pattern.end_date,
                candidate=next_due_date,
            )
            return None

        now = self.clock()
        occurrence = base_task.model_copy(
            deep=True,
            update={
                "id": self.id_factory(),
                "due_date": next_due_date,
                "completed": False,
                "completed_at": None,
                "status": "todo",
                "created_at": now,
                "updated_at": now,
                # Instances stand alone, not nested under the previous one
                "parent_task_id": None,
            },
        )

        metrics_collector.occurrence_generated()
        recurrence_logger.debug(
            "Generated occurrence",
            task_id=base_task.id,
            occurrence_id=occurrence.id,
            due_date=next_due_date,
        )
        return occurrence

    def iter_future_occurrences(self, base_task: TaskOccurrence) -> Iterator[TaskOccurrence]:
        """Yield successive occurrences after ``base_task`` until the series ends.

        A series without an end date never ends; bound it with islice or use
        ``future_occurrences``.
        """
        current = base_task
        while True:
            following = self.next_occurrence(current)
            if following is None:
                return
            yield following
            current = following

    def future_occurrences(
        self,
        base_task: TaskOccurrence,
        count: int = PREVIEW_OCCURRENCE_COUNT,
    ) -> List[TaskOccurrence]:
        """Generate up to ``count`` future occurrences of a recurring task."""
        if count <= 0:
            return []
        return list(islice(self.iter_future_occurrences(base_task), count))

    @staticmethod
    def should_generate_next(task: TaskOccurrence) -> bool:
        """Only a completed recurring task produces its next occurrence."""
        return bool(task.is_recurring and task.recurring_pattern and task.completed)

    @staticmethod
    def describe_pattern(pattern: RecurrencePattern) -> str:
        """
        Get a human-readable description of a recurrence pattern.

        Examples:
            "Repeats day", "Repeats every 2 weeks on Mon, Wed",
            "Repeats month on the 31st"
        """
        interval = "" if pattern.interval == 1 else f"every {pattern.interval} "
        plural = "s" if pattern.interval > 1 else ""

        if pattern.type == "daily":
            return f"Repeats {interval}day{plural}"
        elif pattern.type == "weekly":
            days = [DAY_ABBREVIATIONS[day] for day in (pattern.days_of_week or []) if 0 <= day <= 6]
            if days:
                return f"Repeats {interval}week{plural} on {', '.join(days)}"
            return f"Repeats {interval}week{plural}"
        elif pattern.type == "monthly":
            if pattern.day_of_month:
                return f"Repeats {interval}month{plural} on the {_ordinal(pattern.day_of_month)}"
            return f"Repeats {interval}month{plural}"
        elif pattern.type == "yearly":
            return f"Repeats {interval}year{plural}"
        else:
            return "Custom pattern"

    def update_pattern(
        self,
        task: TaskOccurrence,
        new_pattern: Optional[RecurrencePattern],
        existing_tasks: Iterable[TaskOccurrence],
    ) -> PatternUpdate:
        """
        Replace a task's pattern and work out which instances change with it.

        Instances of the old series are those linked to the anchor through
        ``parent_task_id`` or carrying a pattern equal to the anchor's old one.
        A None pattern makes the task non-recurring and generates nothing.
        """
        old_pattern = task.recurring_pattern
        updated_task = task.model_copy(
            deep=True,
            update={
                "is_recurring": new_pattern is not None,
                "recurring_pattern": new_pattern,
            },
        )

        instance_ids_to_remove = [
            existing.id
            for existing in existing_tasks
            if (task.id is not None and existing.parent_task_id == task.id)
            or (
                existing.recurring_pattern is not None
                and _same_pattern(existing.recurring_pattern, old_pattern)
                and existing.id != task.id
            )
        ]

        if new_pattern is not None:
            new_instances = self.future_occurrences(updated_task, REGENERATE_OCCURRENCE_COUNT)
        else:
            new_instances = []

        metrics_collector.pattern_updated(removed=len(instance_ids_to_remove))
        recurrence_logger.info(
            "Recurrence pattern replaced",
            task_id=task.id,
            removed=len(instance_ids_to_remove),
            created=len(new_instances),
            recurring=new_pattern is not None,
        )

        return PatternUpdate(
            updated_task=updated_task,
            new_instances=new_instances,
            instance_ids_to_remove=instance_ids_to_remove,
        )


recurrence_engine = RecurrenceEngine()
