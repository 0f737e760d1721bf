"""
Round Expander

Synthesizes the task pairs of round-bearing phases from a round count and the
phase's naming convention, and recognises round tasks again from their
titles. Pure functions of their arguments.
"""
import re
from typing import List, Optional, Tuple

from flightdeck.models.task import Task
from flightdeck.pipeline.phases import MAX_ROUNDS, RoundSlot, get_phase
from flightdeck.pipeline.task_ids import RoundTaskId, parse_task_id, round_task_id

_ROUND_TITLE = re.compile(r"^\s*(\d+)\s*차")


def round_task(phase_number: int, round_number: int, slot: RoundSlot) -> Task:
    return Task(
        id=round_task_id(phase_number, round_number, slot.slot),
        roles=list(slot.roles),
        title=slot.title.format(n=round_number),
        description=slot.description,
    )


def expand_rounds(phase_number: int, count: int) -> List[Task]:
    """
    Generate the round tasks for rounds 1..count of a phase.

    Each round yields its lead task followed by its partner task. Phases
    without rounds yield nothing.
    """
    scheme = get_phase(phase_number).rounds
    if scheme is None:
        return []
    tasks = []
    for n in range(1, count + 1):
        tasks.append(round_task(phase_number, n, scheme.lead))
        tasks.append(round_task(phase_number, n, scheme.partner))
    return tasks


def default_round_task(task_id: str) -> Optional[Task]:
    """Template definition for any round ID, regardless of the current round count."""
    parsed = parse_task_id(task_id)
    if not isinstance(parsed, RoundTaskId):
        return None
    scheme = get_phase(parsed.phase).rounds if parsed.phase in (2, 3, 4) else None
    if scheme is None:
        return None
    slot = scheme.slot(parsed.slot)
    if slot is None:
        return None
    return round_task(parsed.phase, parsed.round, slot)


def round_partner(task_id: str) -> Optional[str]:
    """ID of the partner task when `task_id` is the lead half of a round pair."""
    parsed = parse_task_id(task_id)
    if not isinstance(parsed, RoundTaskId):
        return None
    scheme = get_phase(parsed.phase).rounds
    if scheme is None or parsed.slot != scheme.lead.slot:
        return None
    return round_task_id(parsed.phase, parsed.round, scheme.partner.slot)


def match_round_title(phase_number: int, title: str) -> Optional[Tuple[int, str]]:
    """
    Recognise a round task from its title.

    The title must start with "<n>차" with n between 1 and MAX_ROUNDS; the
    slot is picked by the phase's keywords, partner keyword first (a
    feedback title also mentions the proposal it answers).

    Returns:
        (round number, slot name) or None
    """
    scheme = get_phase(phase_number).rounds
    if scheme is None:
        return None
    match = _ROUND_TITLE.match(title)
    if not match:
        return None
    round_number = int(match.group(1))
    if not 1 <= round_number <= MAX_ROUNDS:
        return None
    for slot in (scheme.partner, scheme.lead):
        if slot.keyword in title:
            return round_number, slot.slot
    return None
