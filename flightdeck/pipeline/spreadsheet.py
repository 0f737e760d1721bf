"""
Spreadsheet Reconciler

Two-way mapping between a project and a two-sheet workbook:

    프로젝트 정보   field/value rows with the project identity
    태스크 목록     one row per materialized task, phases in order

Export walks the arranged task list so group members come out as contiguous
rows. Import treats the sheet as the source of truth for every phase it
mentions: the phase is wiped on its first row, rows are matched back to task
IDs, template tasks missing from the sheet are suppressed and the row order
becomes the phase order. Imports are best-effort per row.
"""
import io
import logging
import uuid
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from flightdeck.core.exceptions import SpreadsheetFormatError
from flightdeck.models.project import Project, parse_timestamp
from flightdeck.models.task import SENTINEL_DATE, ChecklistItem, Role, Task, TaskGroup, TaskLink
from flightdeck.pipeline.materializer import ITEM_GROUP, arrange, find_task, materialize
from flightdeck.pipeline.mutations import finalize
from flightdeck.pipeline.phases import MAX_ROUNDS, PHASE_NUMBERS, get_phase, phase_title, round_count
from flightdeck.pipeline.progress import visible_phases
from flightdeck.pipeline.rounds import expand_rounds, match_round_title
from flightdeck.pipeline.task_ids import RoundTaskId, new_adhoc_id, parse_task_id, round_task_id

logger = logging.getLogger(__name__)

INFO_SHEET = "프로젝트 정보"
TASK_SHEET = "태스크 목록"

INFO_FIELD = "필드"
INFO_VALUE = "값"

COL_INDEX = "Index"
COL_PHASE = "스텝"
COL_GROUP = "그룹"
COL_TITLE = "태스크명"
COL_DESCRIPTION = "설명"
COL_ROLES = "담당자"
COL_DATE = "완료일"
COL_DONE = "완료여부"
COL_LINK = "링크"
COL_LINK_LABEL = "링크라벨"
COL_CHECKLIST = "할일"
COL_CLIENT = "클라이언트공개"

TASK_COLUMNS = [
    COL_INDEX,
    COL_PHASE,
    COL_GROUP,
    COL_TITLE,
    COL_DESCRIPTION,
    COL_ROLES,
    COL_DATE,
    COL_DONE,
    COL_LINK,
    COL_LINK_LABEL,
    COL_CHECKLIST,
    COL_CLIENT,
]

CONTINUATION = "/"
EMPTY_VALUE = "-"
DONE = "완료"
NOT_DONE = "미완료"
VISIBLE = "O"
NOT_VISIBLE = "X"
CHECKED = "☑"
UNCHECKED = "☐"
PHASE_MARKER = "Step "

ROLE_LABELS = {
    Role.PM: "PM",
    Role.DESIGNER: "디자이너",
    Role.CLIENT: "클라이언트",
    Role.MANAGER: "매니저",
    Role.DEVELOPER: "개발자",
    Role.ALL: "전체",
}
_ROLES_BY_LABEL = {label: role for role, label in ROLE_LABELS.items()}

# Info sheet label -> project attribute (None: export only)
INFO_LABELS = [
    ("프로젝트명", "name"),
    ("시작일", "start_date"),
    ("종료일", "end_date"),
    ("진행률", None),
    ("PM", "pm_name"),
    ("PM 전화", "pm_phone"),
    ("PM 이메일", "pm_email"),
    ("디자이너 A", "designer_name"),
    ("디자이너 A 전화", "designer_phone"),
    ("디자이너 A 이메일", "designer_email"),
    ("디자이너 B", "designer_2_name"),
    ("디자이너 B 전화", "designer_2_phone"),
    ("디자이너 B 이메일", "designer_2_email"),
    ("디자이너 C", "designer_3_name"),
    ("디자이너 C 전화", "designer_3_phone"),
    ("디자이너 C 이메일", "designer_3_email"),
    ("최종 업데이트", None),
]
_INFO_ATTRS = {label: attr for label, attr in INFO_LABELS if attr}


@dataclass
class ImportReport:
    """Outcome of an import: rows applied, rows skipped (no title), rows that failed."""
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    phases: List[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def format_roles(roles: List[Role]) -> str:
    return ", ".join(ROLE_LABELS.get(r, ROLE_LABELS[Role.ALL]) for r in roles) or EMPTY_VALUE


def format_checklist(task: Task) -> str:
    return "\n".join(
        f"{CHECKED if item.completed else UNCHECKED} {item.text}" for item in task.checklist
    )


def export_info_rows(project: Project) -> List[Tuple[str, str]]:
    """Field/value pairs of the info sheet."""
    rows = []
    for label, attr in INFO_LABELS:
        if label == "진행률":
            value = f"{max(project.status, 0)}%"
        elif label == "최종 업데이트":
            value = (
                parse_timestamp(project.last_updated).strftime("%Y-%m-%d %H:%M:%S")
                if project.last_updated else EMPTY_VALUE
            )
        elif attr == "name":
            value = project.name
        else:
            value = getattr(project, attr) or EMPTY_VALUE
        rows.append((label, value))
    return rows


def export_task_rows(project: Project) -> List[Dict[str, str]]:
    """
    Task table rows for all visible phases.

    The Index and phase title columns are filled on the first row of a phase
    and carry the continuation marker after that. The group column repeats
    the group name on every member row.
    """
    done = set(project.completed)
    client_visible = set(project.client_visible_tasks)
    rows = []
    for phase_number in visible_phases(project):
        phase = get_phase(phase_number)
        first = True
        for item in arrange(phase_number, project):
            group_name = item.group.title if item.kind == ITEM_GROUP else ""
            for task in item.tasks:
                link = project.links.get(task.id)
                rows.append({
                    COL_INDEX: f"{PHASE_MARKER}{phase_number}" if first else CONTINUATION,
                    COL_PHASE: phase_title(project, phase) if first else CONTINUATION,
                    COL_GROUP: group_name,
                    COL_TITLE: task.title,
                    COL_DESCRIPTION: task.description or "",
                    COL_ROLES: format_roles(task.roles),
                    COL_DATE: task.due_date or SENTINEL_DATE,
                    COL_DONE: DONE if task.id in done else NOT_DONE,
                    COL_LINK: link.url if link else "",
                    COL_LINK_LABEL: link.label if link else "",
                    COL_CHECKLIST: format_checklist(task),
                    COL_CLIENT: VISIBLE if task.id in client_visible else NOT_VISIBLE,
                })
                first = False
    return rows


def _append_text_row(sheet, values: List[str]) -> None:
    """Append a row whose cells are always stored as text, never as formulas."""
    sheet.append(values)
    for cell in sheet[sheet.max_row]:
        if cell.data_type == "f":
            cell.data_type = "s"


def export_workbook(project: Project) -> bytes:
    """Render the project as an xlsx workbook."""
    wb = Workbook()
    info = wb.active
    info.title = INFO_SHEET
    info.append([INFO_FIELD, INFO_VALUE])
    for label, value in export_info_rows(project):
        _append_text_row(info, [label, value])

    tasks = wb.create_sheet(TASK_SHEET)
    tasks.append(TASK_COLUMNS)
    for row in export_task_rows(project):
        _append_text_row(tasks, [row[col] for col in TASK_COLUMNS])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_filename(project: Project, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{project.name}_프로젝트_{today.isoformat()}.xlsx"


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%y-%m-%d")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _sheet_rows(sheet) -> List[Dict[str, str]]:
    rows = sheet.iter_rows(values_only=True)
    header = next(rows, None)
    if not header:
        return []
    names = [_cell_text(h) for h in header]
    result = []
    for values in rows:
        row = {name: _cell_text(v) for name, v in zip(names, values) if name}
        if any(row.values()):
            result.append(row)
    return result


def read_workbook(data: bytes) -> Tuple[List[Tuple[str, str]], List[Dict[str, str]]]:
    """
    Read an uploaded workbook.

    Sheets are found by name fragment ("정보" / "태스크") so renamed copies
    still load.

    Returns:
        (info rows as (field, value) pairs, task rows as column -> text dicts)

    Raises:
        SpreadsheetFormatError: unreadable file, no task sheet or no task rows
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise SpreadsheetFormatError(f"Cannot read workbook: {e}")

    try:
        info_name = next((n for n in wb.sheetnames if "정보" in n), None)
        task_name = next((n for n in wb.sheetnames if "태스크" in n), None)
        if task_name is None:
            raise SpreadsheetFormatError(f"Workbook has no '{TASK_SHEET}' sheet")

        info_rows = []
        if info_name is not None:
            for row in _sheet_rows(wb[info_name]):
                label = row.get(INFO_FIELD, "")
                if label:
                    info_rows.append((label, row.get(INFO_VALUE, "")))

        task_rows = _sheet_rows(wb[task_name])
    finally:
        wb.close()

    if not task_rows:
        raise SpreadsheetFormatError("Task sheet has no rows")
    return info_rows, task_rows


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def apply_info_rows(project: Project, rows: List[Tuple[str, str]]) -> None:
    """Copy info sheet values onto the project in place. "-" clears a field."""
    for label, value in rows:
        attr = _INFO_ATTRS.get(label)
        if attr is None:
            continue
        value = (value or "").strip()
        if attr == "name":
            if value and value != EMPTY_VALUE:
                project.name = value
            continue
        setattr(project, attr, None if value in ("", EMPTY_VALUE) else value)


def parse_roles(text: str) -> List[Role]:
    roles = []
    for part in (text or "").split(","):
        role = _ROLES_BY_LABEL.get(part.strip())
        if role is not None and role not in roles:
            roles.append(role)
    return roles


def parse_checklist(text: str, previous: Optional[List[ChecklistItem]] = None) -> List[ChecklistItem]:
    """Parse ☑/☐ lines; item IDs are kept where the text is unchanged at the same position."""
    previous = previous or []
    items = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        completed = line.startswith(CHECKED)
        body = line.lstrip(CHECKED + UNCHECKED).strip()
        idx = len(items)
        if idx < len(previous) and previous[idx].text == body:
            items.append(ChecklistItem(id=previous[idx].id, text=body, completed=completed))
        else:
            items.append(ChecklistItem(text=body, completed=completed))
    return items


def parse_phase_marker(text: str) -> Optional[int]:
    if not text.startswith(PHASE_MARKER):
        return None
    try:
        return int(text[len(PHASE_MARKER):].strip())
    except ValueError:
        return None


class _PhaseImport:
    """
    Matching state for one phase during an import.

    Holds the phase's tasks as they were before the wipe, which rows have
    already been mapped, and the new overrides, order and groups built from
    the rows.
    """

    def __init__(self, phase_number: int, before: Project):
        self.phase_number = phase_number
        self.before = before
        self.consumed: Set[str] = set()
        self.tasks: List[Task] = []
        self.order: List[str] = []
        self.groups: List[TaskGroup] = []
        self.open_group: Optional[TaskGroup] = None
        self.max_round = 0

        visible = materialize(phase_number, before)
        visible_ids = {t.id for t in visible}
        stored = [t for t in before.custom_tasks.get(phase_number, []) if t.id not in visible_ids]
        self.by_title: Dict[str, List[Task]] = {}
        for task in visible + stored:
            self.by_title.setdefault(task.title.strip(), []).append(task)

        self.static_by_title: Dict[str, Task] = {}
        for task in get_phase(phase_number).static_tasks:
            self.static_by_title.setdefault(task.title.strip(), task)

        self.unused_groups = list(before.groups.get(phase_number, []))

    def match(self, title: str) -> Tuple[str, Optional[Task]]:
        """
        Map a row title to a task ID.

        Priority: a task the phase already had with this title, the round
        naming pattern, a template task title, else a new ad-hoc ID. Titles
        are compared without surrounding whitespace.
        """
        title = title.strip()
        for task in self.by_title.get(title, []):
            if task.id not in self.consumed:
                return task.id, task

        matched = match_round_title(self.phase_number, title)
        if matched:
            task_id = round_task_id(self.phase_number, matched[0], matched[1])
            if task_id not in self.consumed:
                found = find_task(self.before, task_id)
                return task_id, found[1] if found else None

        static = self.static_by_title.get(title)
        if static is not None and static.id not in self.consumed:
            found = find_task(self.before, static.id)
            return static.id, found[1] if found else static

        return new_adhoc_id(self.phase_number), None

    def place_in_group(self, task_id: str, name: str) -> None:
        if name == CONTINUATION:
            name = self.open_group.title if self.open_group else ""
        if not name:
            self.open_group = None
            return
        if self.open_group is not None and self.open_group.title == name:
            self.open_group.task_ids.append(task_id)
            return
        group_id = None
        for previous in self.unused_groups:
            if previous.title == name:
                group_id = previous.id
                self.unused_groups.remove(previous)
                break
        self.open_group = TaskGroup(
            id=group_id or f"group-{uuid.uuid4().hex[:12]}",
            title=name,
            task_ids=[task_id],
        )
        self.groups.append(self.open_group)


def _build_task(task_id: str, base: Optional[Task], row: Dict[str, str]) -> Task:
    title = row.get(COL_TITLE, "")
    roles = parse_roles(row.get(COL_ROLES, ""))
    data = base.model_dump() if base is not None else {"roles": [Role.PM]}
    data.update(
        id=task_id,
        title=title,
        description=row.get(COL_DESCRIPTION) or None,
        due_date=row.get(COL_DATE) or SENTINEL_DATE,
        checklist=parse_checklist(row.get(COL_CHECKLIST, ""), base.checklist if base else None),
    )
    if roles:
        data["roles"] = roles
    return Task.model_validate(data)


def _apply_row(draft: Project, state: _PhaseImport, row: Dict[str, str]) -> None:
    task_id, base = state.match(row[COL_TITLE])
    task = _build_task(task_id, base, row)

    state.consumed.add(task_id)
    state.tasks.append(task)
    if task_id not in state.order:
        state.order.append(task_id)
    parsed = parse_task_id(task_id)
    if isinstance(parsed, RoundTaskId) and parsed.phase == state.phase_number:
        state.max_round = max(state.max_round, parsed.round)

    if row.get(COL_DONE) == DONE:
        if task_id not in draft.completed:
            draft.completed.append(task_id)
    else:
        draft.completed = [t for t in draft.completed if t != task_id]

    url = row.get(COL_LINK, "")
    if url:
        draft.links[task_id] = TaskLink(url=url, label=row.get(COL_LINK_LABEL, ""))
    else:
        draft.links.pop(task_id, None)

    if row.get(COL_CLIENT) == VISIBLE:
        if task_id not in draft.client_visible_tasks:
            draft.client_visible_tasks.append(task_id)
    else:
        draft.client_visible_tasks = [t for t in draft.client_visible_tasks if t != task_id]

    state.place_in_group(task_id, row.get(COL_GROUP, ""))


def _finish_phase(draft: Project, state: _PhaseImport) -> None:
    phase = get_phase(state.phase_number)
    max_round = min(state.max_round, MAX_ROUNDS)
    if phase.has_rounds and max_round > round_count(draft, phase):
        logger.info("Raising %s round count to %d for imported rows", phase.title, max_round)
        setattr(draft, phase.round_field, max_round)

    draft.custom_tasks[state.phase_number] = state.tasks
    draft.task_order[state.phase_number] = state.order
    draft.groups[state.phase_number] = state.groups

    template_ids = [t.id for t in phase.static_tasks]
    template_ids += [t.id for t in expand_rounds(state.phase_number, round_count(draft, phase))]
    deleted = [t for t in draft.deleted_tasks if t not in state.consumed]
    seen = set(deleted)
    for task_id in template_ids:
        if task_id not in state.consumed and task_id not in seen:
            deleted.append(task_id)
            seen.add(task_id)
    draft.deleted_tasks = deleted


def apply_task_rows(draft: Project, rows: List[Dict[str, str]]) -> ImportReport:
    """
    Reconcile task rows into a project in place.

    A malformed row is logged, counted as failed and skipped; the rest of
    the import continues.
    """
    report = ImportReport()
    before = draft.model_copy(deep=True)
    states: Dict[int, _PhaseImport] = {}
    current: Optional[_PhaseImport] = None

    for line, row in enumerate(rows, start=2):
        marker = parse_phase_marker(row.get(COL_INDEX, ""))
        if marker is not None:
            if marker not in PHASE_NUMBERS:
                report.failed += 1
                report.errors.append(f"Row {line}: unknown phase {marker}")
                current = None
                continue
            current = states.get(marker)
            if current is None:
                # First row of a phase: the sheet now owns this phase
                current = states[marker] = _PhaseImport(marker, before)
                report.phases.append(marker)
            phase_label = row.get(COL_PHASE, "")
            if phase_label and phase_label != CONTINUATION:
                if phase_label == get_phase(marker).title:
                    draft.phase_titles.pop(marker, None)
                else:
                    draft.phase_titles[marker] = phase_label

        if current is None:
            report.skipped += 1
            continue
        if not row.get(COL_TITLE):
            report.skipped += 1
            continue

        try:
            _apply_row(draft, current, row)
        except Exception as e:
            logger.exception("Skipping task row %d (%s)", line, row.get(COL_TITLE))
            report.failed += 1
            report.errors.append(f"Row {line}: {e}")
            continue
        report.applied += 1

    for state in states.values():
        _finish_phase(draft, state)
    return report


def import_rows(
    project: Project,
    task_rows: List[Dict[str, str]],
    info_rows: Optional[List[Tuple[str, str]]] = None,
) -> Tuple[Project, ImportReport]:
    """Apply parsed sheet rows to a copy of the project; locked projects are returned unchanged."""
    if project.is_locked:
        logger.debug("Ignoring import on locked project %s", project.id)
        return project, ImportReport()
    draft = project.model_copy(deep=True)
    apply_info_rows(draft, info_rows or [])
    report = apply_task_rows(draft, task_rows)
    logger.info(
        "Imported project %s: %d applied, %d skipped, %d failed",
        project.id, report.applied, report.skipped, report.failed,
    )
    return finalize(draft, project), report


def import_workbook(project: Project, data: bytes) -> Tuple[Project, ImportReport]:
    """Read an xlsx upload and reconcile it into the project."""
    info_rows, task_rows = read_workbook(data)
    return import_rows(project, task_rows, info_rows)
