"""
Project Service Module

Local-first orchestration around the pipeline engine:

1. the engine computes a new snapshot in memory,
2. the snapshot is written to the local cache,
3. the snapshot is saved remotely, guarded by the last known persisted
   timestamp (compare-and-swap).

A failed remote save or NAS call is reported back as a warning; the local
change stays committed. A compare-and-swap conflict is the one remote failure
that is raised, after the cache has been reset to the remote copy.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from flightdeck.core.exceptions import FolderServiceError, ProjectLockedError, ProjectNotFoundError, StaleSnapshotError
from flightdeck.models.project import Project, next_timestamp
from flightdeck.pipeline import lifecycle, mutations
from flightdeck.pipeline.merge import choose, merge_project_lists
from flightdeck.pipeline.spreadsheet import ImportReport, export_filename, export_workbook, import_workbook
from flightdeck.services.cache import SnapshotCache
from flightdeck.services.nas import FolderClient
from flightdeck.services.repository import ProjectFilter, ProjectRepository

logger = logging.getLogger(__name__)

# Fields written by each family of operations
COMPLETION_FIELDS = ("completed", "custom_tasks", "status")
TASK_FIELDS = (
    "custom_tasks",
    "task_order",
    "deleted_tasks",
    "groups",
    "completed",
    "links",
    "client_visible_tasks",
    "status",
)
PHASE_FIELDS = (
    "rounds_navigation_count",
    "rounds_count",
    "rounds2_count",
    "expedition2_hidden",
    "phase_titles",
    "status",
)
INFO_FIELDS = mutations.INFO_FIELDS
LIFECYCLE_FIELDS = ("status", "deleted_at", "original_status")
LOCK_FIELDS = ("is_locked", "end_date", "status")


@dataclass
class Outcome:
    """Result of a service operation: the committed snapshot plus non-fatal problems."""
    project: Project
    warnings: List[str] = field(default_factory=list)
    report: Optional[ImportReport] = None


class ProjectService:
    """
    Usage:
        service = ProjectService(ProjectRepository(session), SnapshotCache(path))
        outcome = service.mutate(project_id, mutations.toggle_task, "t1-1",
                                 fields=COMPLETION_FIELDS)
    """

    def __init__(
        self,
        repository: ProjectRepository,
        cache: SnapshotCache,
        folders: Optional[FolderClient] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.folders = folders
        # project id -> last_updated of the copy last read from / written to the remote store
        self._persisted: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, project_id: str) -> Project:
        """Current snapshot of a project, merged from the cache and the remote store."""
        remote = self.repository.get(project_id)
        if remote is not None:
            self._persisted[project_id] = remote.last_updated
        local = self.cache.get(project_id)
        project = choose(local, remote)
        if project is None:
            raise ProjectNotFoundError(project_id)
        if project is not local:
            self.cache.put(project)
        return project

    def list(self, filter: ProjectFilter = ProjectFilter.ACTIVE) -> List[Project]:
        if filter == ProjectFilter.TEMPLATES:
            return self.repository.list(ProjectFilter.TEMPLATES)
        remote = self.repository.list(ProjectFilter.ALL)
        active, deleted = merge_project_lists(self.cache.all(), remote)
        if filter == ProjectFilter.ACTIVE:
            return active
        if filter == ProjectFilter.DELETED:
            return deleted
        return active + deleted + [p for p in remote if p.is_template]

    def refresh(self, project_ids: Iterable[str]) -> List[Project]:
        """
        Re-read projects after a change notification.

        Re-running it for the same IDs gives the same result; a pending local
        change newer than the remote copy is kept.
        """
        ids = set(project_ids) or {p.id for p in self.cache.all()}
        refreshed = []
        for project_id in sorted(ids):
            try:
                refreshed.append(self.get(project_id))
            except ProjectNotFoundError:
                logger.debug("Change signal for unknown project %s", project_id)
        return refreshed

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit(self, project: Project, fields: Optional[Iterable[str]] = None, warnings: Optional[List[str]] = None) -> Outcome:
        """
        Write a snapshot locally, then remotely.

        Raises:
            StaleSnapshotError: the remote row changed since it was last read
        """
        warnings = warnings if warnings is not None else []
        self.cache.put(project)
        try:
            self.repository.save(project, fields=fields, expected_last_updated=self._persisted.get(project.id))
        except StaleSnapshotError:
            self.repository.session.rollback()
            remote = self.repository.get(project.id)
            if remote is not None:
                self.cache.put(remote)
                self._persisted[project.id] = remote.last_updated
            logger.warning("Concurrent change on project %s, local copy reset", project.id)
            raise
        except SQLAlchemyError as e:
            self.repository.session.rollback()
            logger.warning("Remote save of project %s failed: %s", project.id, e)
            warnings.append("Saved locally; the server could not be updated")
            return Outcome(project, warnings)
        self._persisted[project.id] = project.last_updated
        return Outcome(project, warnings)

    def mutate(
        self,
        project_id: str,
        operation: Callable[..., Project],
        *args,
        fields: Optional[Iterable[str]] = None,
        **kwargs,
    ) -> Outcome:
        """
        Apply an engine mutation to a project and commit the result.

        Raises:
            ProjectLockedError: the project is locked
        """
        project = self.get(project_id)
        if project.is_locked:
            raise ProjectLockedError(project_id)
        updated = operation(project, *args, **kwargs)
        if updated is project:
            return Outcome(project)
        return self.commit(updated, fields)

    def update_info(self, project_id: str, changes: Dict[str, object]) -> Outcome:
        outcome = self.mutate(project_id, mutations.update_project_info, changes, fields=INFO_FIELDS)
        if mutations.touches_folder(changes):
            outcome = self._sync_folder(outcome, "rename")
        return outcome

    def set_lock(self, project_id: str, locked: bool) -> Outcome:
        outcome = self.commit(mutations.set_lock(self.get(project_id), locked), LOCK_FIELDS)
        if locked:
            outcome = self._sync_folder(outcome, "complete")
        return outcome

    def import_spreadsheet(self, project_id: str, data: bytes) -> Outcome:
        project = self.get(project_id)
        if project.is_locked:
            raise ProjectLockedError(project_id)
        updated, report = import_workbook(project, data)
        outcome = self.commit(updated)
        outcome.report = report
        if report.failed:
            outcome.warnings.append(f"{report.failed} row(s) could not be imported")
        return outcome

    def export_spreadsheet(self, project_id: str) -> Tuple[str, bytes]:
        project = self.get(project_id)
        return export_filename(project), export_workbook(project)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, name: str, template_id: Optional[str] = None, **identity) -> Outcome:
        template = self.repository.load(template_id) if template_id else None
        project = lifecycle.create_project(name, template=template, **identity)
        outcome = self.commit(project)
        return self._sync_folder(outcome, "create")

    def save_as_template(self, project_id: str, name: str) -> Outcome:
        return self.commit(lifecycle.as_template(self.get(project_id), name))

    def delete(self, project_id: str) -> Outcome:
        return self.commit(lifecycle.soft_delete(self.get(project_id)), LIFECYCLE_FIELDS)

    def restore(self, project_id: str) -> Outcome:
        return self.commit(lifecycle.restore(self.get(project_id)), LIFECYCLE_FIELDS)

    # ------------------------------------------------------------------
    # NAS folder
    # ------------------------------------------------------------------

    def _sync_folder(self, outcome: Outcome, action: str) -> Outcome:
        """
        Call the folder service and store a changed folder path.

        Never raises: the mutation that triggered it is already committed.
        """
        project = outcome.project
        if self.folders is None:
            return outcome
        if action != "create" and not project.nas_folder_path:
            return outcome
        try:
            if action == "create":
                path = self.folders.create_folder(project)
            elif action == "rename":
                path = self.folders.rename_folder(project)
            else:
                path = self.folders.complete_folder(project)
        except FolderServiceError as e:
            logger.error("NAS %s for project %s failed: %s", action, project.id, e)
            outcome.warnings.append(f"NAS folder {action} failed: {e}")
            return outcome

        if not path or path == project.nas_folder_path:
            return outcome
        updated = project.model_copy(update={
            "nas_folder_path": path,
            "last_updated": next_timestamp(project.last_updated),
        })
        return self.commit(updated, ("nas_folder_path",), outcome.warnings)


def debounced_refresh(service_factory: Callable[[], "ProjectService"]) -> Callable[[Set[str]], None]:
    """Refresh callback for RefreshDebouncer that builds its own service (and session)."""
    def refresh(project_ids: Set[str]) -> None:
        service = service_factory()
        try:
            service.refresh(project_ids)
        finally:
            service.repository.session.close()
    return refresh
