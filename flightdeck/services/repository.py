"""
Project Repository Module

Persistence of project snapshots in the `projects` table.

Complex state is written twice: into its own top-level JSON/int column and
into the meta bag inside `task_states`. On load the meta bag wins, so a
narrower column write that failed or lagged is recovered from the meta copy.
Saves can be partial (only the columns behind the named fields) and guarded
by a compare-and-swap on `last_updated`.
"""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from flightdeck.core.exceptions import ProjectNotFoundError, StaleSnapshotError
from flightdeck.models.project import STATUS_DELETED, STATUS_TEMPLATE, Project, ProjectRecord

logger = logging.getLogger(__name__)


class ProjectFilter(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    TEMPLATES = "templates"
    ALL = "all"


# Plain columns copied one to one
SCALAR_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "status",
    "is_locked",
    "deleted_at",
    "created_at",
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

# Project field -> (top-level column, meta bag key, task_states key)
FIELD_COLUMNS: Dict[str, Tuple[Optional[str], Optional[str], Optional[str]]] = {
    "rounds_navigation_count": ("rounds_navigation_count", "rounds_navigation_count", None),
    "rounds_count": ("rounds_count", "rounds_count", None),
    "rounds2_count": ("rounds2_count", "rounds2_count", None),
    "custom_tasks": ("custom_tasks", "custom_tasks", None),
    "task_order": ("task_order", "task_order", None),
    "deleted_tasks": ("deleted_tasks", "deleted_tasks", None),
    "client_visible_tasks": ("client_visible_tasks", "client_visible_tasks", None),
    "template_name": ("template_name", "template_name", None),
    "groups": (None, "task_groups", None),
    "expedition2_hidden": (None, "is_expedition2_hidden", None),
    "phase_titles": (None, "step_titles", None),
    "original_status": (None, "original_status", None),
    "completed": (None, None, "completed"),
    "links": (None, None, "links"),
}
FIELD_COLUMNS.update({name: (name, None, None) for name in SCALAR_FIELDS})

ALL_FIELDS = tuple(FIELD_COLUMNS)


def _json_value(project: Project, field: str) -> Any:
    value = getattr(project, field)
    if field in ("custom_tasks", "groups"):
        return {str(k): [item.model_dump(mode="json") for item in v] for k, v in value.items()}
    if field in ("task_order", "phase_titles"):
        return {str(k): list(v) if isinstance(v, list) else v for k, v in value.items()}
    if field == "links":
        return {k: link.model_dump(mode="json") for k, link in value.items()}
    if isinstance(value, list):
        return list(value)
    return value


def record_values(project: Project, fields: Iterable[str], task_states: Optional[dict] = None) -> Dict[str, Any]:
    """
    Column values for saving the given project fields.

    task_states is merged key by key into the existing value so a partial
    write never drops the other parts of the bag.
    """
    states = dict(task_states or {})
    meta = dict(states.get("meta") or {})
    values: Dict[str, Any] = {}
    touched_states = False

    for field in fields:
        try:
            column, meta_key, states_key = FIELD_COLUMNS[field]
        except KeyError:
            raise ValueError(f"Unknown project field '{field}'")
        value = _json_value(project, field)
        if column:
            values[column] = value
        if meta_key:
            meta[meta_key] = value
            touched_states = True
        if states_key:
            states[states_key] = value
            touched_states = True

    if touched_states:
        states["meta"] = meta
        states.setdefault("completed", [])
        states.setdefault("links", {})
        values["task_states"] = states
    values["last_updated"] = project.last_updated
    return values


def project_from_record(record: ProjectRecord) -> Project:
    """Rebuild a snapshot from a row, preferring meta bag values over columns."""
    states = record.task_states or {}
    meta = states.get("meta") or {}

    def pick(meta_key: str, column_value: Any) -> Any:
        value = meta.get(meta_key)
        return column_value if value is None else value

    data: Dict[str, Any] = {name: getattr(record, name) for name in SCALAR_FIELDS}
    data.update(
        id=record.id,
        last_updated=record.last_updated,
        rounds_navigation_count=pick("rounds_navigation_count", record.rounds_navigation_count),
        rounds_count=pick("rounds_count", record.rounds_count),
        rounds2_count=pick("rounds2_count", record.rounds2_count),
        custom_tasks=pick("custom_tasks", record.custom_tasks) or {},
        task_order=pick("task_order", record.task_order) or {},
        deleted_tasks=pick("deleted_tasks", record.deleted_tasks) or [],
        client_visible_tasks=pick("client_visible_tasks", record.client_visible_tasks) or [],
        template_name=pick("template_name", record.template_name),
        groups=meta.get("task_groups") or {},
        expedition2_hidden=bool(meta.get("is_expedition2_hidden", False)),
        phase_titles=meta.get("step_titles") or {},
        original_status=meta.get("original_status"),
        completed=states.get("completed") or [],
        links=states.get("links") or {},
    )
    # Older rows may hold a legacy flat {task_id: group name} mapping
    if not isinstance(data["groups"], dict) or any(not isinstance(v, list) for v in data["groups"].values()):
        data["groups"] = {}
    # Timestamps are optional on the row but required on the snapshot
    for key in ("created_at", "last_updated", "name"):
        if data[key] is None:
            del data[key]
    return Project.model_validate(data)


class ProjectRepository:
    """
    Persistence collaborator backed by a SQLModel session.

    Usage:
        repo = ProjectRepository(session)
        project = repo.load(project_id)
        repo.save(project, fields=["completed"], expected_last_updated=known)
    """

    def __init__(self, session: Session):
        self.session = session

    def load(self, project_id: str) -> Project:
        record = self.session.get(ProjectRecord, project_id)
        if record is None:
            raise ProjectNotFoundError(project_id)
        return project_from_record(record)

    def get(self, project_id: str) -> Optional[Project]:
        record = self.session.get(ProjectRecord, project_id)
        return project_from_record(record) if record else None

    def save(
        self,
        project: Project,
        fields: Optional[Iterable[str]] = None,
        expected_last_updated: Optional[str] = None,
    ) -> Project:
        """
        Persist a snapshot.

        Args:
            project: Snapshot to write
            fields: Project fields to write; all fields when None. The
                timestamp is always written.
            expected_last_updated: When given, the stored row must still carry
                this timestamp, otherwise nothing is written

        Returns:
            The project as stored

        Raises:
            StaleSnapshotError: the row changed since expected_last_updated
        """
        fields = tuple(fields) if fields is not None else None
        record = self.session.get(ProjectRecord, project.id)
        if (
            record is not None
            and expected_last_updated is not None
            and record.last_updated != expected_last_updated
        ):
            raise StaleSnapshotError(project.id, expected_last_updated, record.last_updated)

        if record is None:
            # New rows are always written in full
            record = ProjectRecord(id=project.id)
            fields = None
        values = record_values(project, fields or ALL_FIELDS, record.task_states)
        for column, value in values.items():
            setattr(record, column, value)

        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.debug("Saved project %s (%s)", project.id, ", ".join(fields) if fields else "all fields")
        return project_from_record(record)

    def list(self, filter: ProjectFilter = ProjectFilter.ACTIVE) -> List[Project]:
        """Projects matching a filter, most recently updated first."""
        statement = select(ProjectRecord)
        if filter == ProjectFilter.ACTIVE:
            statement = statement.where(ProjectRecord.status != STATUS_DELETED).where(
                ProjectRecord.status != STATUS_TEMPLATE
            )
        elif filter == ProjectFilter.DELETED:
            statement = statement.where(ProjectRecord.status == STATUS_DELETED)
        elif filter == ProjectFilter.TEMPLATES:
            statement = statement.where(ProjectRecord.status == STATUS_TEMPLATE)
        statement = statement.order_by(ProjectRecord.last_updated.desc())
        return [project_from_record(r) for r in self.session.exec(statement).all()]
