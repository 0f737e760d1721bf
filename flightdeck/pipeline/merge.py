"""
Merge-on-fetch

Reconciles the locally cached copy of each project with the copy fetched from
the remote store.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from flightdeck.models.project import Project, parse_timestamp
from flightdeck.pipeline.phases import PHASES

logger = logging.getLogger(__name__)


def _lost_round_count(local: Project, remote: Project) -> bool:
    """
    True when the remote copy lacks a round count the local copy has.

    A missing value, or the bare default of 1 where the local copy holds a
    real count, is the trace of a partial write that never reached the
    round columns.
    """
    for phase in PHASES:
        if not phase.has_rounds:
            continue
        remote_value = getattr(remote, phase.round_field)
        local_value = getattr(local, phase.round_field)
        if local_value is None:
            continue
        if remote_value is None:
            return True
        if remote_value <= 1 < local_value and phase.min_rounds > 1:
            return True
    return False


def choose(local: Optional[Project], remote: Optional[Project]) -> Optional[Project]:
    """
    Pick the winning copy of one project.

    Rules, first match wins:
    1. Only one side exists: that side.
    2. The remote copy is soft-deleted: remote.
    3. The remote copy lost a round count the local copy has: local.
    4. Otherwise the later last_updated wins; ties go to local.
    """
    if local is None or remote is None:
        return local or remote
    if remote.is_deleted:
        return remote
    if _lost_round_count(local, remote):
        logger.info("Keeping local copy of %s: remote is missing round counts", local.id)
        return local
    if parse_timestamp(local.last_updated) >= parse_timestamp(remote.last_updated):
        return local
    return remote


def merge_project_lists(local: Iterable[Project], remote: Iterable[Project]) -> Tuple[List[Project], List[Project]]:
    """
    Merge cached and fetched project lists.

    Local-only templates are dropped: templates are only trusted from the
    remote store.

    Returns:
        (active, deleted), each sorted by last_updated, newest first. Remote
        templates appear in neither list.
    """
    remote_by_id: Dict[str, Project] = {p.id: p for p in remote}
    local_by_id: Dict[str, Project] = {p.id: p for p in local if not p.is_template}

    merged = []
    for project_id in dict.fromkeys(list(remote_by_id) + list(local_by_id)):
        winner = choose(local_by_id.get(project_id), remote_by_id.get(project_id))
        if winner is not None:
            merged.append(winner)

    merged.sort(key=lambda p: parse_timestamp(p.last_updated), reverse=True)
    active = [p for p in merged if not p.is_deleted and not p.is_template]
    deleted = [p for p in merged if p.is_deleted]
    return active, deleted
