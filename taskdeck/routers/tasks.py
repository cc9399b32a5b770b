"""Task router for recurring task management."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Any, Dict, List, Optional
from datetime import date
import logging

from taskdeck.schemas.recurrence import DescribePatternResponse, RecurrencePattern
from taskdeck.schemas.task import (
    CompleteTaskResponse,
    OccurrencePreviewResponse,
    RecurrenceUpdate,
    RecurrenceUpdateResponse,
    TaskCreate,
    TaskCreateResponse,
    TaskResponse,
)
from taskdeck.services.recurrence_engine import PREVIEW_OCCURRENCE_COUNT, RecurrenceEngine
from taskdeck.services.recurrence_validator import RecurrenceValidator
from taskdeck.services.task_service import TaskService
from taskdeck.db.config import get_session
from sqlmodel import Session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tasks"])  # No prefix since main.py adds /api prefix


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


def _check_recurrence(validation: Dict[str, Any]) -> List[str]:
    """Raise 400 on validation errors; otherwise return the warnings."""
    if not validation["valid"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=", ".join(validation["errors"])
        )
    for warning in validation["warnings"]:
        logger.warning(f"Recurrence pattern warning: {warning}")
    return validation["warnings"]


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Task not found"
    )


@router.get("/tasks", response_model=Dict[str, Any])
async def list_tasks(
    service: TaskService = Depends(get_task_service),
    filter_type: str = Query("all", description="Filter by completion: all, pending, completed"),
    task_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    recurring: Optional[bool] = Query(None, description="Only recurring (true) or one-off (false) tasks"),
    due_from: Optional[date] = Query(None, description="Due date >= this date"),
    due_to: Optional[date] = Query(None, description="Due date <= this date"),
    sort_by: str = Query("created_at", description="Sort by field: created_at, due_date, priority, name"),
):
    """List tasks with filtering and sorting."""
    tasks = service.list_tasks(
        filter_type=filter_type,
        status=task_status,
        recurring=recurring,
        due_from=due_from,
        due_to=due_to,
        sort_by=sort_by,
    )

    return {
        "tasks": [TaskResponse.model_validate(task) for task in tasks],
        "count": len(tasks)
    }


@router.post("/tasks", response_model=TaskCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    """Create a task; include a recurring pattern to make it repeat."""
    warnings = _check_recurrence(
        RecurrenceValidator.validate_task_with_recurrence(task_data.recurring_pattern, task_data.due_date)
    )

    task = service.create_task(task_data)
    return TaskCreateResponse.model_validate(task).model_copy(update={"warnings": warnings})


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Get a specific task by ID."""
    task = service.get_by_id(task_id)
    if not task:
        raise _not_found()
    return TaskResponse.model_validate(task)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Delete a task."""
    if not service.delete(task_id):
        raise _not_found()


@router.patch("/tasks/{task_id}/complete", response_model=CompleteTaskResponse)
async def complete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Mark a task complete; recurring tasks get their next occurrence created."""
    result = service.complete_task(task_id)
    if result is None:
        raise _not_found()

    task, next_task = result
    return CompleteTaskResponse(
        task=TaskResponse.model_validate(task),
        next_occurrence=TaskResponse.model_validate(next_task) if next_task else None,
    )


@router.patch("/tasks/{task_id}/reopen", response_model=TaskResponse)
async def reopen_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """Mark a completed task as not done."""
    task = service.reopen_task(task_id)
    if not task:
        raise _not_found()
    return TaskResponse.model_validate(task)


@router.put("/tasks/{task_id}/recurrence", response_model=RecurrenceUpdateResponse)
async def update_recurrence(
    task_id: str,
    update: RecurrenceUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Replace or clear a task's recurrence pattern and regenerate its pending instances."""
    task = service.get_by_id(task_id)
    if not task:
        raise _not_found()

    warnings = _check_recurrence(
        RecurrenceValidator.validate_task_with_recurrence(update.recurring_pattern, task.due_date)
    )

    task, created, removed = service.update_recurrence(task_id, update.recurring_pattern)
    return RecurrenceUpdateResponse(
        task=TaskResponse.model_validate(task),
        created=[TaskResponse.model_validate(row) for row in created],
        removed=removed,
        warnings=warnings,
    )


@router.get("/tasks/{task_id}/occurrences", response_model=OccurrencePreviewResponse)
async def preview_occurrences(
    task_id: str,
    count: int = Query(PREVIEW_OCCURRENCE_COUNT, ge=1, le=100, description="Number of occurrences"),
    service: TaskService = Depends(get_task_service),
):
    """Preview upcoming occurrences of a recurring task without creating them."""
    task = service.get_by_id(task_id)
    if not task:
        raise _not_found()

    occurrences = service.preview_occurrences(task_id, count) or []
    pattern = service.to_occurrence(task).recurring_pattern
    return OccurrencePreviewResponse(
        task_id=task_id,
        description=RecurrenceEngine.describe_pattern(pattern) if pattern else None,
        occurrences=occurrences,
        count=len(occurrences),
    )


@router.post("/recurrence/describe", response_model=DescribePatternResponse)
async def describe_pattern(pattern: RecurrencePattern):
    """Human-readable summary of a recurrence pattern."""
    return DescribePatternResponse(description=RecurrenceEngine.describe_pattern(pattern))
