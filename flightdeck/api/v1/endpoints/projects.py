"""
Project Endpoints Module

This module provides the project lifecycle endpoints: listing, creation
(blank or from a template), identity edits, soft delete and restore, locking,
saving as a template, and the change-notification webhook.

Engine and service errors (not found, validation, lock, concurrent change)
are turned into HTTP responses by the exception handlers in flightdeck.main.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from flightdeck.api import deps
from flightdeck.models.project import Project
from flightdeck.schemas.project import (
    ChangeNotice,
    LockUpdate,
    ProjectCreate,
    ProjectDetail,
    TemplateCreate,
    build_detail,
)
from flightdeck.services.notifications import RefreshDebouncer
from flightdeck.services.project_service import ProjectService
from flightdeck.services.repository import ProjectFilter

router = APIRouter()


@router.get("", response_model=List[Project])
def list_projects(
    filter: ProjectFilter = ProjectFilter.ACTIVE,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Retrieve projects, most recently updated first.

    Args:
        filter: active (default), deleted, templates or all
        service: Project service

    Returns:
        List[Project]: Cached and remote copies merged per project
    """
    return service.list(filter)


@router.post("", response_model=ProjectDetail, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Create a new project.

    When template_id is given, the template's round counts, task overrides,
    order, deletions, groups and phase titles are copied; task dates are reset.

    Args:
        project_in: Name, optional template and identity fields
        service: Project service

    Returns:
        ProjectDetail: The new project with its materialized phases

    Raises:
        HTTPException 404: If the template doesn't exist
        HTTPException 400: If the name is empty
    """
    data = project_in.model_dump(exclude_none=True)
    name = data.pop("name")
    template_id = data.pop("template_id", None)
    outcome = service.create(name, template_id=template_id, **data)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/changes", status_code=status.HTTP_202_ACCEPTED)
def notify_change(
    notice: ChangeNotice,
    debouncer: RefreshDebouncer = Depends(deps.get_debouncer),
) -> Dict[str, Any]:
    """
    Receive a "project changed" signal from the remote store.

    Signals are debounced; one refresh runs after a burst settles.
    """
    debouncer.signal(notice.project_id)
    return {"status": "scheduled"}


@router.get("/{project_id}", response_model=ProjectDetail)
def read_project(
    project_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Get a project with its materialized phases and progress.

    Raises:
        HTTPException 404: If the project doesn't exist
    """
    return build_detail(service.get(project_id))


@router.patch("/{project_id}", response_model=ProjectDetail)
def update_project(
    project_id: str,
    project_update: Dict[str, Any],
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Update project identity fields (name, dates, PM and designer contacts).

    Name, date or people changes also rename the NAS folder; a NAS failure is
    returned as a warning, the edit itself is kept.

    Args:
        project_id: ID of the project to update
        project_update: Dictionary of fields to update
        service: Project service

    Returns:
        ProjectDetail: The updated project

    Raises:
        HTTPException 404: If the project doesn't exist
        HTTPException 400: If a field is unknown or the name is empty
        HTTPException 423: If the project is locked
    """
    outcome = service.update_info(project_id, project_update)
    return build_detail(outcome.project, outcome.warnings)


@router.delete("/{project_id}", response_model=ProjectDetail)
def delete_project(
    project_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Soft-delete a project. It can be brought back with restore.
    """
    outcome = service.delete(project_id)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/restore", response_model=ProjectDetail)
def restore_project(
    project_id: str,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Restore a soft-deleted project with the status it had before deletion.
    """
    outcome = service.restore(project_id)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/lock", response_model=ProjectDetail)
def lock_project(
    project_id: str,
    lock_in: LockUpdate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Lock or unlock a project.

    Locking stamps today's date as the end date and moves the NAS folder to
    its completed location.
    """
    outcome = service.set_lock(project_id, lock_in.locked)
    return build_detail(outcome.project, outcome.warnings)


@router.post("/{project_id}/template", response_model=Project, status_code=status.HTTP_201_CREATED)
def save_as_template(
    project_id: str,
    template_in: TemplateCreate,
    service: ProjectService = Depends(deps.get_project_service),
):
    """
    Save the project's phase configuration as a new template.
    """
    return service.save_as_template(project_id, template_in.name).project
