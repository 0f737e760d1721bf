"""
Progress Aggregator

Counts materialized tasks across visible phases and derives the completion
percentage that is stored as the project status. Also answers the phase lock
question ("is the previous phase finished?").
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from flightdeck.models.project import Project
from flightdeck.pipeline.materializer import materialize
from flightdeck.pipeline.phases import HIDEABLE_PHASE, PHASE_NUMBERS


@dataclass(frozen=True)
class Progress:
    total: int
    completed: int

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        value = math.floor(self.completed * 100 / self.total + 0.5)
        return min(100, max(0, value))


def visible_phases(project: Project) -> List[int]:
    return [n for n in PHASE_NUMBERS if not (n == HIDEABLE_PHASE and project.expedition2_hidden)]


def compute_progress(project: Project, completed_override: Optional[Iterable[str]] = None) -> Progress:
    """
    Progress of a project over its materialized tasks.

    Args:
        project: Snapshot to measure
        completed_override: Completion set to use instead of project.completed,
            e.g. to preview the result of a toggle before committing it

    Returns:
        Progress with total and completed counts; deleted tasks and the hidden
        phase never count.
    """
    done = set(project.completed if completed_override is None else completed_override)
    total = 0
    completed = 0
    for phase_number in visible_phases(project):
        tasks = materialize(phase_number, project)
        total += len(tasks)
        completed += sum(1 for t in tasks if t.id in done)
    return Progress(total=total, completed=completed)


def is_phase_complete(project: Project, phase_number: int) -> bool:
    done = set(project.completed)
    return all(t.id in done for t in materialize(phase_number, project))


def is_phase_locked(project: Project, phase_number: int) -> bool:
    """
    Whether work on a phase is blocked by an unfinished previous phase.

    Phase 1 is never locked. When phase 4 is hidden, phase 5 depends on
    phase 3 instead.
    """
    if phase_number <= PHASE_NUMBERS[0]:
        return False
    previous = phase_number - 1
    if previous == HIDEABLE_PHASE and project.expedition2_hidden:
        previous -= 1
    return not is_phase_complete(project, previous)
