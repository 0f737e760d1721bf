from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from flightdeck.models.project import Project
from flightdeck.models.task import ChecklistItem, Role, Task, TaskGroup, TaskLink
from flightdeck.pipeline.materializer import arrange
from flightdeck.pipeline.phases import PHASES, HIDEABLE_PHASE, phase_title, round_count
from flightdeck.pipeline.progress import compute_progress, is_phase_locked


# Properties to receive via API on creation
class ProjectCreate(BaseModel):
    name: str
    template_id: Optional[str] = None
    start_date: Optional[str] = None
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


class TemplateCreate(BaseModel):
    name: str


class LockUpdate(BaseModel):
    locked: bool


class ChangeNotice(BaseModel):
    project_id: Optional[str] = None


# Task payloads
class TaskCreate(BaseModel):
    phase: int
    title: Optional[str] = None
    description: Optional[str] = None
    roles: Optional[List[Role]] = None
    due_date: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    roles: Optional[List[Role]] = None
    due_date: Optional[str] = None
    checklist: Optional[List[ChecklistItem]] = None
    has_file: Optional[bool] = None


class ReorderRequest(BaseModel):
    phase: int
    source_index: int
    target_index: int


class LinkUpdate(BaseModel):
    url: Optional[str] = None
    label: str = ""


class ChecklistItemCreate(BaseModel):
    text: str


class TaskSelection(BaseModel):
    task_ids: List[str]
    title: Optional[str] = None


class GroupRename(BaseModel):
    phase: int
    title: str


class RoundCountUpdate(BaseModel):
    phase: int
    count: int


class PhaseHiddenUpdate(BaseModel):
    hidden: bool
    phase: int = HIDEABLE_PHASE


class PhaseTitleUpdate(BaseModel):
    phase: int
    title: Optional[str] = None


# Properties to return to client
class ProgressRead(BaseModel):
    total: int
    completed: int
    percentage: int


class TaskRead(Task):
    completed: bool = False
    link: Optional[TaskLink] = None
    client_visible: bool = False
    group_id: Optional[str] = None


class PhaseRead(BaseModel):
    number: int
    title: str
    hidden: bool
    locked: bool
    round_count: Optional[int] = None
    tasks: List[TaskRead]
    groups: List[TaskGroup]


class ProjectDetail(BaseModel):
    project: Project
    progress: ProgressRead
    phases: List[PhaseRead]
    warnings: List[str] = []


class ImportResult(ProjectDetail):
    applied: int
    skipped: int
    failed: int
    errors: List[str]


def build_detail(project: Project, warnings: Optional[List[str]] = None) -> Dict[str, Any]:
    """Project snapshot plus its materialized phases and progress."""
    progress = compute_progress(project)
    done = set(project.completed)
    visible = set(project.client_visible_tasks)
    phases = []
    for phase in PHASES:
        tasks = []
        for item in arrange(phase.number, project):
            for task in item.tasks:
                tasks.append(TaskRead(
                    **task.model_dump(),
                    completed=task.id in done,
                    link=project.links.get(task.id),
                    client_visible=task.id in visible,
                    group_id=item.group.id if item.group else None,
                ))
        phases.append(PhaseRead(
            number=phase.number,
            title=phase_title(project, phase),
            hidden=phase.number == HIDEABLE_PHASE and project.expedition2_hidden,
            locked=is_phase_locked(project, phase.number),
            round_count=round_count(project, phase) if phase.has_rounds else None,
            tasks=tasks,
            groups=project.groups.get(phase.number, []),
        ))
    return {
        "project": project,
        "progress": ProgressRead(total=progress.total, completed=progress.completed, percentage=progress.percentage),
        "phases": phases,
        "warnings": warnings or [],
    }
