"""
Task Materializer

Computes the visible, ordered task list of a phase from the phase template,
generated rounds, the project's overrides, deletions and explicit order.
Everything else in the engine (progress, mutations, spreadsheet) is built on
`materialize()` and `arrange()`.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from flightdeck.models.project import Project
from flightdeck.models.task import Task, TaskGroup
from flightdeck.pipeline.phases import PHASES, get_phase, round_count, find_static_task
from flightdeck.pipeline.rounds import default_round_task, expand_rounds, round_partner
from flightdeck.pipeline.task_ids import RoundTaskId, parse_task_id

ITEM_TASK = "task"
ITEM_GROUP = "group"
ITEM_ROUND_PAIR = "round_pair"


@dataclass
class LogicalItem:
    """
    A block of tasks that moves as one: a single task, a named group or a
    round pair.
    """
    kind: str
    tasks: List[Task]
    group: Optional[TaskGroup] = None

    @property
    def task_ids(self) -> List[str]:
        return [t.id for t in self.tasks]


def base_tasks(phase_number: int, project: Project) -> List[Task]:
    """Template and generated tasks of a phase, before overrides and deletions."""
    phase = get_phase(phase_number)
    generated = expand_rounds(phase_number, round_count(project, phase))
    return list(phase.leading) + generated + list(phase.trailing)


def materialize(phase_number: int, project: Project) -> List[Task]:
    """
    Final ordered, deduplicated list of visible tasks for a phase.

    1. Base set: template tasks plus rounds 1..N for round-bearing phases.
    2. Overrides with the same ID replace the base definition.
    3. Deleted IDs are dropped.
    4. Remaining overrides are appended as ad-hoc tasks. Round IDs of this
       phase above the current count stay stored but are not shown.
    5. An explicit order list, when present, stable-sorts the result; IDs
       missing from it keep their relative order after the listed ones.

    The returned tasks are copies; callers may modify them freely.
    """
    overrides = project.custom_tasks.get(phase_number, [])
    override_by_id: Dict[str, Task] = {}
    for task in overrides:
        override_by_id.setdefault(task.id, task)

    deleted = set(project.deleted_tasks)
    base = base_tasks(phase_number, project)
    base_ids = {t.id for t in base}

    result: List[Task] = []
    seen = set()
    for task in base:
        if task.id in deleted or task.id in seen:
            continue
        seen.add(task.id)
        result.append(override_by_id.get(task.id, task).model_copy(deep=True))

    for task in overrides:
        if task.id in seen or task.id in deleted or task.id in base_ids:
            continue
        parsed = parse_task_id(task.id)
        if isinstance(parsed, RoundTaskId) and parsed.phase == phase_number:
            continue
        seen.add(task.id)
        result.append(task.model_copy(deep=True))

    order = project.task_order.get(phase_number)
    if order:
        position: Dict[str, int] = {}
        for idx, task_id in enumerate(order):
            position.setdefault(task_id, idx)
        last = len(order)
        result.sort(key=lambda t: position.get(t.id, last))
    return result


def materialized_ids(phase_number: int, project: Project) -> List[str]:
    return [t.id for t in materialize(phase_number, project)]


def locate_materialized(project: Project, task_id: str) -> Optional[int]:
    """Phase whose materialized list currently shows `task_id`."""
    for phase in PHASES:
        if task_id in materialized_ids(phase.number, project):
            return phase.number
    return None


def find_task(project: Project, task_id: str) -> Optional[Tuple[int, Task]]:
    """
    Current definition of a task, visible or not.

    Looks at overrides first, then template tasks, then the round naming
    convention. Returns (phase number, task copy) or None.
    """
    for phase_number, tasks in project.custom_tasks.items():
        for task in tasks:
            if task.id == task_id:
                return phase_number, task.model_copy(deep=True)
    static = find_static_task(task_id)
    if static:
        return static[0], static[1].model_copy(deep=True)
    generated = default_round_task(task_id)
    if generated:
        return parse_task_id(task_id).phase, generated
    return None


def group_index(project: Project, phase_number: int) -> Dict[str, TaskGroup]:
    """Map of task ID -> group for a phase."""
    membership: Dict[str, TaskGroup] = {}
    for group in project.groups.get(phase_number, []):
        for task_id in group.task_ids:
            membership.setdefault(task_id, group)
    return membership


def arrange(phase_number: int, project: Project) -> List[LogicalItem]:
    """
    Materialized tasks of a phase folded into logical items.

    A group is emitted where its first visible member appears, with all its
    visible members in group order. An ungrouped round lead directly followed
    by its partner forms a round pair.
    """
    tasks = materialize(phase_number, project)
    by_id = {t.id: t for t in tasks}
    membership = group_index(project, phase_number)

    items: List[LogicalItem] = []
    emitted = set()
    i = 0
    while i < len(tasks):
        task = tasks[i]
        if task.id in emitted:
            i += 1
            continue

        group = membership.get(task.id)
        if group is not None:
            members = [by_id[m] for m in group.task_ids if m in by_id and m not in emitted]
            items.append(LogicalItem(ITEM_GROUP, members, group))
            emitted.update(m.id for m in members)
            i += 1
            continue

        partner = round_partner(task.id)
        if (
            partner
            and i + 1 < len(tasks)
            and tasks[i + 1].id == partner
            and partner not in membership
        ):
            items.append(LogicalItem(ITEM_ROUND_PAIR, [task, tasks[i + 1]]))
            emitted.update((task.id, partner))
            i += 2
            continue

        items.append(LogicalItem(ITEM_TASK, [task]))
        emitted.add(task.id)
        i += 1
    return items


def flatten(items: List[LogicalItem]) -> List[Task]:
    return [task for item in items for task in item.tasks]
