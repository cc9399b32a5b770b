"""Task service: persistence around the recurrence engine."""
from sqlmodel import Session, select
from sqlalchemy import case
from typing import List, Optional, Tuple
from datetime import date
import logging

from taskdeck.models.task import Task
from taskdeck.schemas.recurrence import RecurrencePattern
from taskdeck.schemas.task import TaskCreate, TaskOccurrence
from taskdeck.services.recurrence_engine import (
    PREVIEW_OCCURRENCE_COUNT,
    RecurrenceEngine,
    recurrence_engine,
)
from taskdeck.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


def _dump_pattern(pattern: Optional[RecurrencePattern]) -> Optional[dict]:
    """JSON-safe form of a pattern for the JSON column."""
    if pattern is None:
        return None
    return pattern.model_dump(mode="json")


class TaskService:
    """Task CRUD plus the recurrence lifecycle: completion and pattern edits."""

    def __init__(self, session: Session, engine: RecurrenceEngine = recurrence_engine):
        self.session = session
        self.engine = engine

    @staticmethod
    def to_occurrence(task: Task) -> TaskOccurrence:
        """Convert a stored task into the engine's record type."""
        return TaskOccurrence.model_validate(task)

    @staticmethod
    def to_row(occurrence: TaskOccurrence) -> Task:
        """Convert an engine record into a storable task, dropping unknown fields."""
        data = occurrence.model_dump(include=set(Task.model_fields))
        data["recurring_pattern"] = _dump_pattern(occurrence.recurring_pattern)
        return Task(**data)

    def _today(self) -> date:
        return self.engine.clock().date()

    def create_task(self, task_data: TaskCreate) -> Task:
        """Create a task; a pattern makes it the anchor of a recurring series."""
        now = self.engine.clock()
        task = Task(
            name=task_data.name,
            description=task_data.description,
            priority=task_data.priority or "medium",
            due_date=task_data.due_date,
            due_time=task_data.due_time,
            parent_task_id=task_data.parent_task_id,
            is_recurring=task_data.recurring_pattern is not None,
            recurring_pattern=_dump_pattern(task_data.recurring_pattern),
            created_at=now,
            updated_at=now,
        )

        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        logger.info(f"Created task {task.id} (recurring={task.is_recurring})")
        return task

    def get_by_id(self, task_id: str) -> Optional[Task]:
        """Get a specific task by ID."""
        return self.session.get(Task, task_id)

    def list_tasks(
        self,
        filter_type: str = "all",
        status: Optional[str] = None,
        recurring: Optional[bool] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        sort_by: str = "created_at",
    ) -> List[Task]:
        """Get tasks with filtering and sorting."""
        statement = select(Task)

        # Apply filter by completion status
        if filter_type == "pending":
            statement = statement.where(Task.completed == False)  # noqa: E712
        elif filter_type == "completed":
            statement = statement.where(Task.completed == True)  # noqa: E712

        if status:
            statement = statement.where(Task.status == status)
        if recurring is not None:
            statement = statement.where(Task.is_recurring == recurring)
        if due_from:
            statement = statement.where(Task.due_date >= due_from)
        if due_to:
            statement = statement.where(Task.due_date <= due_to)

        if sort_by == "due_date":
            statement = statement.order_by(Task.due_date.asc().nullslast())
        elif sort_by == "priority":
            statement = statement.order_by(
                case(
                    (Task.priority == 'high', 1),
                    (Task.priority == 'medium', 2),
                    (Task.priority == 'low', 3),
                    else_=4
                ).asc(),
                Task.created_at.desc()
            )
        elif sort_by == "name":
            statement = statement.order_by(Task.name.asc())
        else:  # Default to created_at
            statement = statement.order_by(Task.created_at.desc())

        return list(self.session.exec(statement).all())

    def delete(self, task_id: str) -> bool:
        """Delete a task."""
        task = self.get_by_id(task_id)
        if not task:
            return False

        self.session.delete(task)
        self.session.commit()
        return True

    def _scheduled_occurrence(self, occurrence: TaskOccurrence) -> Optional[Task]:
        """Pending task of the same series already due on ``occurrence``'s date."""
        pattern = _dump_pattern(occurrence.recurring_pattern)
        statement = select(Task).where(
            Task.completed == False,  # noqa: E712
            Task.is_recurring == True,  # noqa: E712
            Task.name == occurrence.name,
            Task.due_date == occurrence.due_date,
        )
        for row in self.session.exec(statement).all():
            if row.recurring_pattern == pattern:
                return row
        return None

    @metrics_collector.time_operation("complete_task_seconds")
    def complete_task(self, task_id: str) -> Optional[Tuple[Task, Optional[Task]]]:
        """
        Mark a task complete and, for recurring tasks, store the next occurrence.

        When that occurrence is already stored (a pattern edit generated it, or
        the task was completed before and then reopened) the stored task is
        returned instead of a new one.

        Returns:
            (completed task, next occurrence or None), or None if the task does not exist
        """
        task = self.get_by_id(task_id)
        if not task:
            return None

        if task.completed:
            # Already complete: its successor was generated the first time
            return task, None

        now = self.engine.clock()
        task.completed = True
        task.completed_at = now
        task.status = "completed"
        task.updated_at = now

        next_task = None
        completed = self.to_occurrence(task)
        if self.engine.should_generate_next(completed):
            following = self.engine.next_occurrence(completed)
            if following is None:
                logger.info(f"Recurring task {task.id} has no further occurrences")
            else:
                next_task = self._scheduled_occurrence(following)
                if next_task is not None:
                    logger.info(f"Next occurrence of task {task.id} already scheduled as {next_task.id}")
                else:
                    next_task = self.to_row(following)
                    self.session.add(next_task)
                    logger.info(f"Created next occurrence of task {task.id}: new task {next_task.id}")

        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        if next_task is not None:
            self.session.refresh(next_task)

        return task, next_task

    def reopen_task(self, task_id: str) -> Optional[Task]:
        """Mark a completed task as not done."""
        task = self.get_by_id(task_id)
        if not task:
            return None

        task.completed = False
        task.completed_at = None
        task.status = "todo"
        task.updated_at = self.engine.clock()
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def _pending_instances(self, task: Task) -> List[Task]:
        """Recurring tasks that may belong to ``task``'s series and have not happened yet.

        Rows without a pattern are never series instances, so plain subtasks
        linked through ``parent_task_id`` are not candidates.
        """
        today = self._today()
        statement = select(Task).where(
            Task.id != task.id,
            Task.completed == False,  # noqa: E712
            Task.is_recurring == True,  # noqa: E712
            (Task.parent_task_id == task.id) | (Task.name == task.name),
        )
        return [
            row for row in self.session.exec(statement).all()
            if row.due_date is None or row.due_date >= today
        ]

    @metrics_collector.time_operation("update_recurrence_seconds")
    def update_recurrence(
        self,
        task_id: str,
        new_pattern: Optional[RecurrencePattern],
    ) -> Optional[Tuple[Task, List[Task], List[str]]]:
        """
        Replace a task's pattern, discarding its pending instances and storing
        a fresh batch generated from the new pattern.

        Removal and insertion happen in a single commit. Candidates for removal
        are pending recurring tasks that share the anchor's name or point to it
        through ``parent_task_id``; of those, the ones linked to the anchor or
        carrying the old pattern are deleted.

        Returns:
            (anchor, created instances, removed ids), or None if the task does not exist
        """
        task = self.get_by_id(task_id)
        if not task:
            return None

        candidates = {row.id: row for row in self._pending_instances(task)}
        result = self.engine.update_pattern(
            self.to_occurrence(task),
            new_pattern,
            [self.to_occurrence(row) for row in candidates.values()],
        )

        for instance_id in result.instance_ids_to_remove:
            self.session.delete(candidates[instance_id])

        task.is_recurring = result.updated_task.is_recurring
        task.recurring_pattern = _dump_pattern(result.updated_task.recurring_pattern)
        task.updated_at = self.engine.clock()
        self.session.add(task)

        created = [self.to_row(instance) for instance in result.new_instances]
        self.session.add_all(created)

        self.session.commit()
        self.session.refresh(task)
        for row in created:
            self.session.refresh(row)

        logger.info(
            f"Updated recurrence of task {task.id}: "
            f"removed {len(result.instance_ids_to_remove)}, created {len(created)}"
        )
        return task, created, result.instance_ids_to_remove

    def preview_occurrences(
        self,
        task_id: str,
        count: int = PREVIEW_OCCURRENCE_COUNT,
    ) -> Optional[List[TaskOccurrence]]:
        """Upcoming occurrences of a task without storing them."""
        task = self.get_by_id(task_id)
        if not task:
            return None
        return self.engine.future_occurrences(self.to_occurrence(task), count)
