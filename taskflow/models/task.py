"""
Task Model Module

This module defines the Task table, its workflow enumerations and the schemas
used to create, update, move and read tasks. Assignees are stored as a JSON
array of denormalized user snapshots taken at assignment time, so a renamed
user keeps their old name on existing tasks.
"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from sqlmodel import SQLModel, Field, JSON, Column, AutoString
from pydantic import field_validator


class TaskStatus(str, Enum):
    """
    Workflow states of a task, which are also the board columns.

    Transitions are unrestricted: any state can move to any other state.
    """
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Board columns in display order: (status, title)
BOARD_COLUMNS = [
    (TaskStatus.TODO, "To Do"),
    (TaskStatus.IN_PROGRESS, "In Progress"),
    (TaskStatus.REVIEW, "Review"),
    (TaskStatus.DONE, "Done"),
]


def parse_deadline(v):
    """Normalize a deadline to an ISO date string; empty values clear it."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        v = v.date()
    if isinstance(v, date):
        return v.isoformat()
    try:
        return datetime.fromisoformat(str(v)).date().isoformat()
    except ValueError:
        raise ValueError(f"deadline must be an ISO date, got {v!r}")


class Assignee(SQLModel):
    """Denormalized snapshot of a user at assignment time."""
    uid: str
    display_name: str
    photo_url: Optional[str] = None


class TaskBase(SQLModel):
    """
    Base Task model containing the user-editable fields.
    """
    title: str = Field(nullable=False)
    description: Optional[str] = None

    status: TaskStatus = Field(default=TaskStatus.TODO, sa_type=AutoString)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, sa_type=AutoString)

    # Deadline stored as ISO format date string
    deadline: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is None or not v.strip():
            raise ValueError("title must not be empty")
        return v.strip()

    @field_validator("deadline", mode="before")
    @classmethod
    def deadline_is_date(cls, v):
        return parse_deadline(v)


class Task(TaskBase, table=True):
    """
    Task table model.

    Attributes:
        id: Store-generated identifier
        assignees: JSON array of Assignee snapshots
        created_by: Account id of the creator, never changed after creation
        company_id: Owning workspace, never changed after creation
        created_at: Server-assigned ISO timestamp
    """
    __tablename__ = "tasks"

    id: Optional[str] = Field(default=None, primary_key=True)
    assignees: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    created_by: str = Field(nullable=False)
    company_id: str = Field(index=True, nullable=False)
    created_at: Optional[str] = None


class TaskRead(TaskBase):
    """Schema for reading a task."""
    id: str
    assignees: List[Assignee] = []
    created_by: str
    company_id: str
    created_at: Optional[str] = None

    @field_validator("assignees", mode="before")
    @classmethod
    def default_assignees(cls, v):
        return v or []

    @property
    def assignee_ids(self) -> List[str]:
        return [a.uid for a in self.assignees]


class TaskCreate(TaskBase):
    """
    Schema for creating a task.

    assignees holds user ids; display data is resolved when the task is written.
    """
    assignees: List[str] = []


class TaskUpdate(SQLModel):
    """Schema for a partial task update. Only fields that are set are merged."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    deadline: Optional[str] = None
    assignees: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("title must not be empty")
        return v.strip() if v is not None else v

    @field_validator("deadline", mode="before")
    @classmethod
    def deadline_is_date(cls, v):
        return parse_deadline(v)


class TaskMove(SQLModel):
    """Drop target of a drag gesture: a column id or another task's id."""
    over_id: Optional[str] = None
