"""
Mutation Engine

State transitions on a project snapshot. Every operation takes a Project and
returns a new Project; the input is never modified. Each mutation:

1. refuses to act on a locked project (returns the input unchanged),
2. applies its change to a deep copy,
3. recomputes the progress status from the materialized task lists,
4. advances last_updated.

Validation problems raise ValidationRejected before anything is returned, so
a rejected mutation has no effect.
"""
import functools
import logging
import uuid
from datetime import date
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from flightdeck.core.exceptions import TaskNotFoundError, ValidationRejected
from flightdeck.models.project import Project, next_timestamp
from flightdeck.models.task import ChecklistItem, Role, Task, TaskGroup, TaskLink, short_date
from flightdeck.pipeline.materializer import (
    arrange,
    find_task,
    flatten,
    group_index,
    locate_materialized,
    materialized_ids,
)
from flightdeck.pipeline.phases import HIDEABLE_PHASE, MAX_ROUNDS, get_phase
from flightdeck.pipeline.progress import compute_progress, is_phase_locked
from flightdeck.pipeline.task_ids import is_template_id, new_adhoc_id

logger = logging.getLogger(__name__)

NEW_TASK_TITLE = "새로운 태스크"
NEW_GROUP_TITLE = "새 그룹"

# Identity fields editable through update_project_info
INFO_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "pm_name",
    "pm_phone",
    "pm_email",
    "designer_name",
    "designer_phone",
    "designer_email",
    "designer_2_name",
    "designer_2_phone",
    "designer_2_email",
    "designer_3_name",
    "designer_3_phone",
    "designer_3_email",
    "nas_folder_path",
)

# Changing any of these renames the project folder
FOLDER_FIELDS = ("name", "start_date", "pm_name", "designer_name", "designer_2_name", "designer_3_name")


def finalize(draft: Project, previous: Optional[Project] = None) -> Project:
    """Recompute the status of a mutated draft and advance its timestamp."""
    if not (draft.is_template or draft.is_deleted):
        draft.status = compute_progress(draft).percentage
    draft.last_updated = next_timestamp((previous or draft).last_updated)
    return draft


def mutation(func):
    """
    Wrap an in-place change function into a copy-on-write project mutation.

    The wrapped function receives a deep copy of the project and edits it;
    the wrapper handles the lock check and finalization.
    """
    @functools.wraps(func)
    def wrapper(project: Project, *args, **kwargs) -> Project:
        if project.is_locked:
            logger.debug("Ignoring %s on locked project %s", func.__name__, project.id)
            return project
        draft = project.model_copy(deep=True)
        func(draft, *args, **kwargs)
        return finalize(draft, project)
    return wrapper


def _resolve(project: Project, task_id: str):
    found = find_task(project, task_id)
    if found is None:
        raise TaskNotFoundError(task_id)
    phase_number, task = found
    return locate_materialized(project, task_id) or phase_number, task


def _upsert_override(project: Project, phase_number: int, task: Task) -> None:
    overrides = project.custom_tasks.setdefault(phase_number, [])
    for idx, existing in enumerate(overrides):
        if existing.id == task.id:
            overrides[idx] = task
            return
    overrides.append(task)


@mutation
def toggle_task(project: Project, task_id: str, today: Optional[date] = None) -> None:
    """
    Flip the completion state of a task.

    Completing a task without a date stamps today's date (YY-MM-DD) into its
    override entry. Un-completing leaves the date alone.
    """
    phase_number, task = _resolve(project, task_id)
    if task_id in project.completed:
        project.completed = [t for t in project.completed if t != task_id]
        return
    project.completed.append(task_id)
    if not task.has_date:
        task.due_date = short_date(today)
        _upsert_override(project, phase_number, task)


@mutation
def add_task(project: Project, phase_number: int, task: Optional[Task] = None) -> None:
    """
    Add an ad-hoc task at the end of a phase.

    Args:
        project: Project to change
        phase_number: Target phase
        task: Task to add; a default "new task" with a fresh ID when omitted
    """
    get_phase(phase_number)
    if is_phase_locked(project, phase_number):
        raise ValidationRejected("Complete the previous phase before adding tasks here")
    if task is None:
        task = Task(id=new_adhoc_id(phase_number), roles=[Role.PM], title=NEW_TASK_TITLE, has_file=True)
    current = materialized_ids(phase_number, project)
    if task.id in current:
        raise ValidationRejected(f"Task {task.id} already exists")

    project.custom_tasks.setdefault(phase_number, []).append(task)
    order = project.task_order.get(phase_number)
    if order:
        order.append(task.id)
    else:
        project.task_order[phase_number] = current + [task.id]


@mutation
def delete_task(project: Project, task_id: str) -> None:
    """
    Remove a task from the project.

    Ad-hoc tasks are dropped from the overrides; template tasks (static and
    round) are additionally put in the deletion set since they would
    otherwise be generated again.
    """
    found = False
    for phase_number in list(project.custom_tasks):
        overrides = project.custom_tasks[phase_number]
        kept = [t for t in overrides if t.id != task_id]
        found = found or len(kept) != len(overrides)
        project.custom_tasks[phase_number] = kept
    for phase_number, order in project.task_order.items():
        project.task_order[phase_number] = [t for t in order if t != task_id]
    for phase_number, groups in project.groups.items():
        for group in groups:
            group.task_ids = [t for t in group.task_ids if t != task_id]
        project.groups[phase_number] = [g for g in groups if g.task_ids]

    if is_template_id(task_id):
        found = True
        if task_id not in project.deleted_tasks:
            project.deleted_tasks.append(task_id)
    if not found:
        raise TaskNotFoundError(task_id)

    project.completed = [t for t in project.completed if t != task_id]
    project.client_visible_tasks = [t for t in project.client_visible_tasks if t != task_id]
    project.links.pop(task_id, None)


@mutation
def update_task(project: Project, task_id: str, changes: Dict[str, Any]) -> None:
    """
    Edit task attributes (title, description, roles, due_date, checklist, has_file).

    Raises:
        ValidationRejected: the resulting task is invalid (empty title, bad date)
    """
    phase_number, task = _resolve(project, task_id)
    data = task.model_dump()
    data.update({k: v for k, v in changes.items() if k != "id"})
    try:
        updated = Task.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        raise ValidationRejected(str(first.get("msg", "Invalid task")))
    _upsert_override(project, phase_number, updated)


@mutation
def toggle_checklist_item(project: Project, task_id: str, item_id: str) -> None:
    phase_number, task = _resolve(project, task_id)
    for item in task.checklist:
        if item.id == item_id:
            item.completed = not item.completed
            break
    else:
        raise ValidationRejected(f"Checklist item {item_id} not found")
    _upsert_override(project, phase_number, task)


@mutation
def add_checklist_item(project: Project, task_id: str, text: str) -> None:
    if not text or not text.strip():
        raise ValidationRejected("Checklist text cannot be empty")
    phase_number, task = _resolve(project, task_id)
    task.checklist.append(ChecklistItem(text=text.strip()))
    _upsert_override(project, phase_number, task)


def _logical_position(items, row_index: int) -> int:
    offset = 0
    for idx, item in enumerate(items):
        offset += len(item.tasks)
        if row_index < offset:
            return idx
    return len(items) - 1


@mutation
def reorder_tasks(project: Project, phase_number: int, source_index: int, target_index: int) -> None:
    """
    Move a task row within a phase.

    Rows are mapped to the logical item (single task, group or round pair)
    they fall into, and the whole item is moved. The resulting row order
    becomes the phase's explicit order list.
    """
    items = arrange(phase_number, project)
    row_count = sum(len(item.tasks) for item in items)
    if not (0 <= source_index < row_count) or not (0 <= target_index < row_count):
        raise ValidationRejected("Row index out of range")

    source = _logical_position(items, source_index)
    target = _logical_position(items, target_index)
    if source == target:
        return
    moved = items.pop(source)
    items.insert(target, moved)
    project.task_order[phase_number] = [t.id for t in flatten(items)]


@mutation
def set_round_count(project: Project, phase_number: int, count: int) -> None:
    """
    Change the round count of a round-bearing phase.

    Overrides and completions of rounds above the new count are kept; they
    come back if the count is raised again.
    """
    phase = get_phase(phase_number)
    if not phase.has_rounds:
        raise ValidationRejected(f"Phase {phase_number} has no rounds")
    if count < phase.min_rounds:
        raise ValidationRejected(f"{phase.title} needs at least {phase.min_rounds} rounds")
    if count > MAX_ROUNDS:
        raise ValidationRejected(f"{phase.title} allows at most {MAX_ROUNDS} rounds")
    setattr(project, phase.round_field, count)


@mutation
def group_tasks(project: Project, task_ids: Iterable[str], title: Optional[str] = None) -> None:
    """
    Put two or more tasks of one phase into a new named group.

    Members are moved next to each other in the phase order, at the position
    of the first member.

    Raises:
        ValidationRejected: fewer than two tasks, tasks from different
            phases, or a task that already belongs to a group
    """
    selected = list(dict.fromkeys(task_ids))
    if len(selected) < 2:
        raise ValidationRejected("Select at least two tasks to group")

    phases = {locate_materialized(project, task_id) for task_id in selected}
    if None in phases:
        missing = next(t for t in selected if locate_materialized(project, t) is None)
        raise TaskNotFoundError(missing)
    if len(phases) > 1:
        raise ValidationRejected("Tasks from different phases cannot be grouped")
    phase_number = phases.pop()

    membership = group_index(project, phase_number)
    if any(task_id in membership for task_id in selected):
        raise ValidationRejected("A selected task already belongs to a group")

    current = materialized_ids(phase_number, project)
    chosen = set(selected)
    members = [t for t in current if t in chosen]
    anchor = current.index(members[0])
    rest = [t for t in current if t not in chosen]
    project.task_order[phase_number] = rest[:anchor] + members + rest[anchor:]

    project.groups.setdefault(phase_number, []).append(
        TaskGroup(
            id=f"group-{uuid.uuid4().hex[:12]}",
            title=(title or "").strip() or NEW_GROUP_TITLE,
            task_ids=members,
        )
    )


@mutation
def ungroup_tasks(project: Project, task_ids: Iterable[str]) -> None:
    """Dissolve every group containing at least one of the given tasks."""
    selected = set(task_ids)
    for phase_number, groups in project.groups.items():
        project.groups[phase_number] = [
            g for g in groups if not selected.intersection(g.task_ids)
        ]


@mutation
def rename_group(project: Project, phase_number: int, group_id: str, title: str) -> None:
    title = (title or "").strip()
    if not title:
        raise ValidationRejected("Group name cannot be empty")
    for group in project.groups.get(phase_number, []):
        if group.id == group_id:
            group.title = title
            return
    raise ValidationRejected(f"Group {group_id} not found")


@mutation
def set_phase_hidden(project: Project, hidden: bool, phase_number: int = HIDEABLE_PHASE) -> None:
    if phase_number != HIDEABLE_PHASE:
        raise ValidationRejected(f"Only phase {HIDEABLE_PHASE} can be hidden")
    project.expedition2_hidden = bool(hidden)


@mutation
def set_phase_title(project: Project, phase_number: int, title: Optional[str]) -> None:
    """Override a phase title; an empty title restores the default."""
    get_phase(phase_number)
    title = (title or "").strip()
    if title:
        project.phase_titles[phase_number] = title
    else:
        project.phase_titles.pop(phase_number, None)


@mutation
def set_task_link(project: Project, task_id: str, url: Optional[str], label: str = "") -> None:
    """Attach a link to a task; an empty URL removes it."""
    _resolve(project, task_id)
    url = (url or "").strip()
    if url:
        project.links[task_id] = TaskLink(url=url, label=label or "")
    else:
        project.links.pop(task_id, None)


@mutation
def set_client_visible_tasks(project: Project, task_ids: Iterable[str]) -> None:
    project.client_visible_tasks = list(dict.fromkeys(task_ids))


@mutation
def update_project_info(project: Project, changes: Dict[str, Any]) -> None:
    """
    Edit project identity fields (name, dates, PM and designer contacts).

    Raises:
        ValidationRejected: unknown field or empty project name
    """
    unknown = set(changes) - set(INFO_FIELDS)
    if unknown:
        raise ValidationRejected(f"Unknown project field(s): {', '.join(sorted(unknown))}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationRejected("Project name cannot be empty")
    for field, value in changes.items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(project, field, value)


def set_lock(project: Project, locked: bool, today: Optional[date] = None) -> Project:
    """
    Lock or unlock a project.

    This is the only operation accepted on a locked project. Locking stamps
    today's date as the end date; unlocking keeps it.
    """
    draft = project.model_copy(deep=True)
    draft.is_locked = bool(locked)
    if locked:
        draft.end_date = short_date(today)
    return finalize(draft, project)


def touches_folder(changes: Dict[str, Any]) -> bool:
    return any(field in changes for field in FOLDER_FIELDS)
