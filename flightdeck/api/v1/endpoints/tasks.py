"""
Task Endpoints Module

This module provides the task and phase editing endpoints of a project:
completion toggles, ad-hoc task creation, edits, deletion, reordering,
links, checklists, grouping, round counts and phase settings.

Every endpoint returns the full project detail so clients can replace their
snapshot in one step. A locked project answers 423.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from flightdeck.api import deps
from flightdeck.models.task import Role, Task
from flightdeck.pipeline import mutations
from flightdeck.pipeline.task_ids import new_adhoc_id
from flightdeck.schemas.project import (
    ChecklistItemCreate,
    GroupRename,
    LinkUpdate,
    PhaseHiddenUpdate,
    PhaseTitleUpdate,
    ProjectDetail,
    ReorderRequest,
    RoundCountUpdate,
    TaskCreate,
    TaskSelection,
    TaskUpdate,
    build_detail,
)
from flightdeck.services.project_service import COMPLETION_FIELDS, PHASE_FIELDS, TASK_FIELDS, ProjectService

router = APIRouter()


@router.post("/{project_id}/tasks/{task_id}/toggle", response_model=ProjectDetail)
def toggle_task(
    project_id: str,
    task_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Toggle completion of a task.

    Completing a task that has no date stamps today's date on it.

    Args:
        project_id: ID of the project
        task_id: ID of the task to toggle
        service: Project service

    Returns:
        ProjectDetail: The updated project

    Raises:
        HTTPException 404: If the project or task doesn't exist
        HTTPException 423: If the project is locked
    """
    outcome = service.mutate(project_id, mutations.toggle_task, task_id, fields=COMPLETION_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/tasks", response_model=ProjectDetail, status_code=status.HTTP_201_CREATED)
def add_task(
    project_id: str,
    task_in: TaskCreate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Add an ad-hoc task at the end of a phase.

    Raises:
        HTTPException 400: If the phase is unknown or still locked by the previous phase
    """
    task = Task(
        id=new_adhoc_id(task_in.phase),
        roles=task_in.roles or [Role.PM],
        title=task_in.title or mutations.NEW_TASK_TITLE,
        description=task_in.description,
        due_date=task_in.due_date,
        has_file=True,
    )
    outcome = service.mutate(project_id, mutations.add_task, task_in.phase, task, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.patch("/{project_id}/tasks/{task_id}", response_model=ProjectDetail)
def update_task(
    project_id: str,
    task_id: str,
    task_update: TaskUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Edit a task. Only the fields present in the request are changed.

    Raises:
        HTTPException 400: If the title is empty or the date malformed
    """
    changes = task_update.model_dump(exclude_unset=True)
    outcome = service.mutate(project_id, mutations.update_task, task_id, changes, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.delete("/{project_id}/tasks/{task_id}", response_model=ProjectDetail)
def delete_task(
    project_id: str,
    task_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Delete a task. Template tasks are suppressed, ad-hoc tasks removed.
    """
    outcome = service.mutate(project_id, mutations.delete_task, task_id, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/tasks/reorder", response_model=ProjectDetail)
def reorder_tasks(
    project_id: str,
    reorder_in: ReorderRequest,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Move the row at source_index to target_index within a phase.

    Groups and round pairs move as a whole.
    """
    outcome = service.mutate(
        project_id,
        mutations.reorder_tasks,
        reorder_in.phase,
        reorder_in.source_index,
        reorder_in.target_index,
        fields=TASK_FIELDS,
    )
    return build_detail(outcome.project, outcome.warnings)


@router.put("/{project_id}/tasks/{task_id}/link", response_model=ProjectDetail)
def set_task_link(
    project_id: str,
    task_id: str,
    link_in: LinkUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Set or clear (empty url) the external link of a task.
    """
    outcome = service.mutate(
        project_id, mutations.set_task_link, task_id, link_in.url, link_in.label, fields=TASK_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/tasks/{task_id}/checklist", response_model=ProjectDetail)
def add_checklist_item(
    project_id: str,
    task_id: str,
    item_in: ChecklistItemCreate,
    service: ProjectService = Depends(deps.get_project_service),
):
    outcome = service.mutate(project_id, mutations.add_checklist_item, task_id, item_in.text, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/tasks/{task_id}/checklist/{item_id}/toggle", response_model=ProjectDetail)
def toggle_checklist_item(
    project_id: str,
    task_id: str,
    item_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    outcome = service.mutate(project_id, mutations.toggle_checklist_item, task_id, item_id, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.put("/{project_id}/client-visible", response_model=ProjectDetail)
def set_client_visible_tasks(
    project_id: str,
    task_ids: List[str],
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Replace the set of tasks shown to the client.
    """
    outcome = service.mutate(project_id, mutations.set_client_visible_tasks, task_ids, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/groups", response_model=ProjectDetail, status_code=status.HTTP_201_CREATED)
def group_tasks(
    project_id: str,
    selection: TaskSelection,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Group two or more tasks of the same phase.

    Raises:
        HTTPException 400: Fewer than two tasks, tasks from different phases,
            or a task that is already grouped
    """
    outcome = service.mutate(
        project_id, mutations.group_tasks, selection.task_ids, selection.title, fields=TASK_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/groups/ungroup", response_model=ProjectDetail)
def ungroup_tasks(
    project_id: str,
    selection: TaskSelection,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Dissolve every group that contains one of the selected tasks.
    """
    outcome = service.mutate(project_id, mutations.ungroup_tasks, selection.task_ids, fields=TASK_FIELDS)
    return build_detail(outcome.project, outcome.warnings)


@router.patch("/{project_id}/groups/{group_id}", response_model=ProjectDetail)
def rename_group(
    project_id: str,
    group_id: str,
    rename_in: GroupRename,
    service: ProjectService = Depends(deps.get_project_service),
):
    outcome = service.mutate(
        project_id, mutations.rename_group, rename_in.phase, group_id, rename_in.title, fields=TASK_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)


@router.put("/{project_id}/rounds", response_model=ProjectDetail)
def set_round_count(
    project_id: str,
    rounds_in: RoundCountUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Change the round count of a round-bearing phase.

    Raises:
        HTTPException 400: If the phase has no rounds or the count is below its minimum
    """
    outcome = service.mutate(
        project_id, mutations.set_round_count, rounds_in.phase, rounds_in.count, fields=PHASE_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)


@router.put("/{project_id}/phases/hidden", response_model=ProjectDetail)
def set_phase_hidden(
    project_id: str,
    hidden_in: PhaseHiddenUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Hide or show the optional phase.
    """
    outcome = service.mutate(
        project_id, mutations.set_phase_hidden, hidden_in.hidden, hidden_in.phase, fields=PHASE_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)


@router.put("/{project_id}/phases/title", response_model=ProjectDetail)
def set_phase_title(
    project_id: str,
    title_in: PhaseTitleUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    outcome = service.mutate(
        project_id, mutations.set_phase_title, title_in.phase, title_in.title, fields=PHASE_FIELDS
    )
    return build_detail(outcome.project, outcome.warnings)
