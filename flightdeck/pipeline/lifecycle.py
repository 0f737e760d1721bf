"""
Project Lifecycle

Creation (blank or from a template project), saving a project as a template,
soft delete and restore. Unlike the mutations, these are not blocked by the
lock flag: deleting a finished, locked project is a normal operation.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from flightdeck.core.exceptions import ValidationRejected
from flightdeck.models.project import STATUS_DELETED, STATUS_TEMPLATE, Project, next_timestamp, utcnow_iso
from flightdeck.models.task import SENTINEL_DATE

TEMPLATE_PM_NAME = "TEMPLATE"


def create_project(name: str, template: Optional[Project] = None, **identity) -> Project:
    """
    Create a new project.

    Args:
        name: Project name (required)
        template: Template project whose phase configuration is copied
        **identity: Other identity fields (start_date, pm_name, designer_name, ...)

    Returns:
        A fresh Project with status 0. Task dates copied from a template are
        reset to the sentinel; completion state is never copied.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationRejected("Project name cannot be empty")

    now = utcnow_iso()
    project = Project(id=str(uuid.uuid4()), created_at=now, last_updated=now, name=name, **identity)
    if template is None:
        return project

    source = template.model_copy(deep=True)
    project.rounds_navigation_count = source.rounds_navigation_count
    project.rounds_count = source.rounds_count
    project.rounds2_count = source.rounds2_count
    project.expedition2_hidden = source.expedition2_hidden
    project.phase_titles = source.phase_titles
    project.task_order = source.task_order
    project.deleted_tasks = source.deleted_tasks
    project.groups = source.groups
    project.template_name = source.template_name or source.name
    for tasks in source.custom_tasks.values():
        for task in tasks:
            task.due_date = SENTINEL_DATE
            for item in task.checklist:
                item.completed = False
    project.custom_tasks = source.custom_tasks
    return project


def as_template(project: Project, name: str) -> Project:
    """
    Copy a project's phase configuration into a new, locked template project.

    People, completion state, links and the client-visible set are not part
    of a template.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationRejected("Template name cannot be empty")
    source = project.model_copy(deep=True)
    now = utcnow_iso()
    return Project(
        id=str(uuid.uuid4()),
        created_at=now,
        last_updated=now,
        name=name,
        pm_name=TEMPLATE_PM_NAME,
        template_name=name,
        status=STATUS_TEMPLATE,
        is_locked=True,
        rounds_navigation_count=source.rounds_navigation_count,
        rounds_count=source.rounds_count,
        rounds2_count=source.rounds2_count,
        expedition2_hidden=source.expedition2_hidden,
        phase_titles=source.phase_titles,
        custom_tasks=source.custom_tasks,
        task_order=source.task_order,
        deleted_tasks=source.deleted_tasks,
        groups=source.groups,
    )


def soft_delete(project: Project) -> Project:
    """Mark a project deleted, remembering its status for restore."""
    if project.is_deleted:
        return project
    draft = project.model_copy(deep=True)
    draft.original_status = project.status
    draft.status = STATUS_DELETED
    draft.deleted_at = datetime.now(timezone.utc).isoformat()
    draft.last_updated = next_timestamp(project.last_updated)
    return draft


def restore(project: Project) -> Project:
    """Bring a soft-deleted project back with the status it had before deletion."""
    if not project.is_deleted:
        return project
    draft = project.model_copy(deep=True)
    draft.status = project.original_status if project.original_status is not None else 0
    draft.original_status = None
    draft.deleted_at = None
    draft.last_updated = next_timestamp(project.last_updated)
    return draft
