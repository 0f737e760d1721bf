"""
Project Model Module

This module defines two models:
1. Project: the in-memory project snapshot the pipeline engine operates on
2. ProjectRecord: the `projects` table row the snapshot is persisted to

Snapshots are replaced, never mutated in place: every engine operation
returns a new Project.
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlmodel import SQLModel, Field, JSON, Column

from flightdeck.models.task import Task, TaskGroup, TaskLink

# Status sentinels; any other status value is the progress percentage (0-100)
STATUS_TEMPLATE = -1
STATUS_DELETED = -99


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> datetime:
    """
    Parse an ISO timestamp; missing or unreadable values sort first.

    Naive timestamps are read as UTC.
    """
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def next_timestamp(previous: Optional[str]) -> str:
    """Return a timestamp strictly later than `previous`, normally the current time."""
    now = datetime.now(timezone.utc)
    before = parse_timestamp(previous)
    if now <= before:
        now = before + timedelta(microseconds=1)
    return now.isoformat()


class Project(SQLModel):
    """
    Project snapshot: identity, phase configuration and all task state.

    Attributes:
        id: Opaque unique identifier (UUID string)
        created_at / last_updated: ISO timestamps; last_updated advances on every mutation
        status: Progress percentage, or STATUS_TEMPLATE / STATUS_DELETED
        is_locked: When set, every mutation except unlock is ignored
        rounds_navigation_count / rounds_count / rounds2_count: Round counters for
            phases 2, 3 and 4; None means the value was never stored
        expedition2_hidden: Hides phase 4 from progress and export
        phase_titles: Free-text title overrides keyed by phase number
        custom_tasks: Task overrides and ad-hoc tasks keyed by phase number
        task_order: Explicit task order keyed by phase number
        deleted_tasks: Task IDs suppressed from materialization
        completed: IDs of completed tasks
        links: Task ID -> external link
        groups: Named groups keyed by phase number
        client_visible_tasks: IDs shown to the read-only client audience
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = Field(default_factory=utcnow_iso)
    last_updated: str = Field(default_factory=utcnow_iso)

    # Identity
    name: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    pm_name: Optional[str] = None
    pm_phone: Optional[str] = None
    pm_email: Optional[str] = None
    designer_name: Optional[str] = None  # Designer A
    designer_phone: Optional[str] = None
    designer_email: Optional[str] = None
    designer_2_name: Optional[str] = None  # Designer B
    designer_2_phone: Optional[str] = None
    designer_2_email: Optional[str] = None
    designer_3_name: Optional[str] = None  # Designer C
    designer_3_phone: Optional[str] = None
    designer_3_email: Optional[str] = None
    template_name: Optional[str] = None
    nas_folder_path: Optional[str] = None

    # Lifecycle
    status: int = 0
    is_locked: bool = False
    deleted_at: Optional[str] = None
    original_status: Optional[int] = None  # Status before soft delete

    # Phase configuration
    rounds_navigation_count: Optional[int] = 2
    rounds_count: Optional[int] = 2
    rounds2_count: Optional[int] = 2
    expedition2_hidden: bool = False
    phase_titles: Dict[int, str] = Field(default_factory=dict)

    # Task state
    custom_tasks: Dict[int, List[Task]] = Field(default_factory=dict)
    task_order: Dict[int, List[str]] = Field(default_factory=dict)
    deleted_tasks: List[str] = Field(default_factory=list)
    completed: List[str] = Field(default_factory=list)
    links: Dict[str, TaskLink] = Field(default_factory=dict)
    groups: Dict[int, List[TaskGroup]] = Field(default_factory=dict)
    client_visible_tasks: List[str] = Field(default_factory=list)

    @property
    def is_deleted(self) -> bool:
        return self.status == STATUS_DELETED

    @property
    def is_template(self) -> bool:
        return self.status == STATUS_TEMPLATE

    def designer_names(self) -> List[str]:
        names = [self.designer_name, self.designer_2_name, self.designer_3_name]
        return [n for n in names if n]


class ProjectRecord(SQLModel, table=True):
    """
    Persisted project row.

    Complex state lives in JSON columns. `task_states` holds
    {completed, links, meta}; the meta bag redundantly backs up round counts,
    overrides, order, deletions, groups, the hidden flag and phase titles so a
    lagging or failed narrower column write can be recovered on next load.
    """
    __tablename__ = "projects"

    # Primary key - UUID string shared with the snapshot
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)

    # Audit timestamps
    created_at: Optional[str] = None
    last_updated: Optional[str] = Field(default=None, index=True)

    # Basic project information
    name: str = Field(default="", nullable=False)
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    # Progress percentage, or -1 (template) / -99 (soft deleted)
    status: int = Field(default=0, index=True)
    is_locked: bool = False
    deleted_at: Optional[str] = None

    # People
    pm_name: Optional[str] = None
    pm_phone: Optional[str] = None
    pm_email: Optional[str] = None
    designer_name: Optional[str] = None
    designer_phone: Optional[str] = None
    designer_email: Optional[str] = None
    designer_2_name: Optional[str] = None
    designer_2_phone: Optional[str] = None
    designer_2_email: Optional[str] = None
    designer_3_name: Optional[str] = None
    designer_3_phone: Optional[str] = None
    designer_3_email: Optional[str] = None

    template_name: Optional[str] = None
    nas_folder_path: Optional[str] = None

    # Round counters - may lag behind the meta bag on partial writes
    rounds_count: Optional[int] = None
    rounds2_count: Optional[int] = None
    rounds_navigation_count: Optional[int] = None

    # JSON state
    custom_tasks: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    task_order: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    deleted_tasks: Optional[list] = Field(default=None, sa_column=Column(JSON))
    client_visible_tasks: Optional[list] = Field(default=None, sa_column=Column(JSON))
    task_states: Optional[dict] = Field(default=None, sa_column=Column(JSON))
