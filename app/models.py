from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"


class TaskBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)
    priority: Priority = Field(default=Priority.MED, index=True)


class Task(TaskBase, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    started_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True),
    )
    completed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True, index=True),
    )


class TaskCreate(TaskBase):
    """Schema for creating a task"""

    pass


class TaskUpdate(SQLModel):
    """Schema for updating a task - all fields optional, at least one required"""

    title: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=200)
    priority: Priority | None = None

    @field_validator("title", "priority")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class TaskResponse(TaskBase):
    """Schema for task responses"""

    id: int
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class TaskFilter(BaseModel):
    """Optional equality filters for task listings."""

    priority: Priority | None = None
    complete: bool | None = None


class TaskSummary(BaseModel):
    total_tasks: int
    completed_tasks: int
    incomplete_tasks: int
    average_completion_time_seconds: float | None = None
    percent_complete: float
