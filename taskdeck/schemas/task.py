"""Task schemas for recurring task management."""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from taskdeck.schemas.recurrence import RecurrencePattern


class TaskOccurrence(BaseModel):
    """Task-shaped record exchanged with the recurrence engine.

    Unknown fields are kept so callers can carry extra data forward into
    generated instances.
    """

    model_config = ConfigDict(extra="allow", from_attributes=True)

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    priority: str = "medium"
    status: str = "todo"
    completed: bool = False
    completed_at: Optional[datetime] = None
    due_date: Optional[date] = None
    due_time: Optional[str] = None  # "HH:MM", 24-hour
    parent_task_id: Optional[str] = None
    is_recurring: bool = False
    recurring_pattern: Optional[RecurrencePattern] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatternUpdate(BaseModel):
    """Result of replacing a task's recurrence pattern.

    Applying it is left to the caller: delete ``instance_ids_to_remove`` and
    persist ``new_instances`` in one transaction.
    """

    updated_task: TaskOccurrence
    new_instances: List[TaskOccurrence] = []
    instance_ids_to_remove: List[str] = []


class TaskCreate(BaseModel):
    """Schema for creating a task, optionally recurring."""
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    priority: Optional[str] = Field(default="medium", pattern=r"^(high|medium|low)$")
    due_date: Optional[date] = None
    due_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    parent_task_id: Optional[str] = None
    recurring_pattern: Optional[RecurrencePattern] = None


class RecurrenceUpdate(BaseModel):
    """Replace (or clear, with null) a task's recurrence pattern."""
    recurring_pattern: Optional[RecurrencePattern] = None


class TaskResponse(TaskOccurrence):
    """Schema for task API responses."""
    id: str


class TaskCreateResponse(TaskResponse):
    """Created task plus any validation warnings about its pattern."""
    warnings: List[str] = []


class CompleteTaskResponse(BaseModel):
    """Completed task plus the occurrence generated from it, if any."""
    task: TaskResponse
    next_occurrence: Optional[TaskResponse] = None


class RecurrenceUpdateResponse(BaseModel):
    """Anchor after a pattern change and the instances that changed with it."""
    task: TaskResponse
    created: List[TaskResponse] = []
    removed: List[str] = []
    warnings: List[str] = []


class OccurrencePreviewResponse(BaseModel):
    """Upcoming occurrences of a recurring task, not persisted."""
    task_id: str
    description: Optional[str] = None
    occurrences: List[TaskOccurrence] = []
    count: int = 0
