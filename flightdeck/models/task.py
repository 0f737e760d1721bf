"""
Task Model Module

This module defines the Task model and its companions: roles, checklist items,
per-task links and named task groups. These are plain SQLModel schemas (not
tables); they live inside a project snapshot and are persisted as JSON.
"""
import re
import uuid
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import field_validator
from sqlmodel import SQLModel, Field

# Placeholder date used by template and freshly generated tasks
SENTINEL_DATE = "00-00-00"

_DATE_PATTERN = re.compile(r"^(\d{6}|\d{2}-\d{2}-\d{2}|\d{4}-\d{2}-\d{2})$")


def short_date(day: Optional[date] = None) -> str:
    """Format a date as YY-MM-DD, the stamp format used for tasks and lock dates."""
    day = day or date.today()
    return day.strftime("%y-%m-%d")


class Role(str, Enum):
    """
    Roles a task can be assigned to.

    ALL is a filter value as much as a role: a task assigned to ALL is
    relevant to everybody.
    """
    ALL = "all"
    CLIENT = "client"
    PM = "pm"
    DESIGNER = "designer"
    MANAGER = "manager"
    DEVELOPER = "developer"


class ChecklistItem(SQLModel):
    """One line of a task's sub-checklist."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    completed: bool = False


class TaskLink(SQLModel):
    """Optional external reference attached to a task."""
    url: str
    label: str = ""


class Task(SQLModel):
    """
    The atomic unit of work inside a phase.

    Attributes:
        id: Structured identifier (see flightdeck.pipeline.task_ids)
        roles: Ordered list of assigned roles
        title: Display title (required)
        description: Optional longer description
        due_date: Date string in YYMMDD or dashed form; SENTINEL_DATE when unset.
            Completing a task stamps today's date here when it is still unset.
        checklist: Optional sub-checklist
        has_file: Whether the task expects a file attachment
    """
    id: str
    roles: List[Role] = Field(default_factory=list)
    title: str
    description: Optional[str] = None
    due_date: str = SENTINEL_DATE
    checklist: List[ChecklistItem] = Field(default_factory=list)
    has_file: bool = False

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v):
        if v is None:
            return SENTINEL_DATE
        v = str(v).strip()
        if not v:
            return SENTINEL_DATE
        if not _DATE_PATTERN.match(v):
            raise ValueError(f"Invalid date '{v}', expected YYMMDD or YY-MM-DD")
        return v

    @field_validator("title")
    @classmethod
    def require_title(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Task title cannot be empty")
        return v

    @property
    def has_date(self) -> bool:
        return self.due_date != SENTINEL_DATE


class TaskGroup(SQLModel):
    """
    A named folder of tasks inside one phase.

    A task belongs to at most one group per phase; task_ids keeps the
    members in display order.
    """
    id: str
    title: str
    task_ids: List[str] = Field(default_factory=list)
