"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, Text
from datetime import date, datetime
from typing import Optional
import uuid

from taskdeck import config


class Task(SQLModel, table=True):
    """Task entity; recurring anchors and their generated instances share this table."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True
    )
    name: str = Field(max_length=500, min_length=1)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    priority: str = Field(default="medium", max_length=20)  # high, medium, low
    status: str = Field(default="todo", max_length=50)  # todo, in_progress, completed, cancelled
    completed: bool = Field(default=False)
    completed_at: Optional[datetime] = Field(default=None)
    due_date: Optional[date] = Field(default=None, index=True)
    due_time: Optional[str] = Field(default=None, max_length=8)  # HH:MM
    parent_task_id: Optional[str] = Field(default=None, index=True)

    is_recurring: bool = Field(default=False)
    recurring_pattern: Optional[dict] = Field(default=None, sa_column=Column(JSON))  # {type, interval, end_date, ...}

    created_at: datetime = Field(default_factory=config.now)
    updated_at: datetime = Field(default_factory=config.now)
